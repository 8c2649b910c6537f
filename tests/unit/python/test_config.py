"""Tests for services/dialhub/config.py: the config loader every service depends on."""

import json
import logging

from dialhub.config import cfg, load_config, reload_config


# --- cfg() getter logic ---


class TestCfgGetter:
    def test_single_key(self, write_config):
        write_config({"dial": "anything"})
        assert cfg("dial") == "anything"

    def test_two_key_nested(self, write_config):
        write_config({"serial": {"port": "/dev/ttyACM0", "baudrate": 9600}})
        assert cfg("serial", "port") == "/dev/ttyACM0"

    def test_default_when_key_missing(self, write_config):
        write_config({"dial": {"transport": "serial"}})
        assert cfg("nonexistent", default="fallback") == "fallback"

    def test_default_when_nested_key_missing(self, write_config):
        write_config({"hub": {"host": "0.0.0.0"}})
        assert cfg("hub", "port", default=5173) == 5173

    def test_default_when_section_not_dict(self, write_config):
        """cfg("dial", "sub") should return default when dial is a string, not crash."""
        write_config({"dial": "serial"})
        assert cfg("dial", "sub", default="safe") == "safe"

    def test_returns_none_when_missing_no_default(self, write_config):
        write_config({})
        assert cfg("anything") is None

    def test_returns_whole_dict_for_section(self, write_config):
        ble = {"device_name": "Arduino Dial", "scan_timeout": 5}
        write_config({"ble": ble})
        assert cfg("ble") == ble

    def test_numeric_values(self, write_config):
        write_config({"network": {"connect_timeout": 10}})
        assert cfg("network", "connect_timeout") == 10


# --- Loading behavior ---


class TestLoadBehavior:
    def test_loads_from_first_valid_path(self, tmp_path, monkeypatch):
        import dialhub.config as config_mod

        first = tmp_path / "first.json"
        second = tmp_path / "second.json"
        first.write_text(json.dumps({"dial": {"transport": "ble"}}))
        second.write_text(json.dumps({"dial": {"transport": "wifi"}}))
        monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(first), str(second)])

        assert cfg("dial", "transport") == "ble"

    def test_skips_invalid_json(self, tmp_path, monkeypatch, caplog):
        import dialhub.config as config_mod

        bad = tmp_path / "bad.json"
        good = tmp_path / "good.json"
        bad.write_text("{invalid json")
        good.write_text(json.dumps({"hub": {"port": 8080}}))
        monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(bad), str(good)])

        with caplog.at_level(logging.ERROR):
            result = cfg("hub", "port")

        assert result == 8080
        assert any("Invalid JSON" in r.message for r in caplog.records)

    def test_empty_config_when_no_files(self, tmp_path, monkeypatch):
        import dialhub.config as config_mod
        monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(tmp_path / "nope.json")])

        assert load_config() == {}

    def test_caches_after_first_load(self, write_config, config_file):
        write_config({"serial": {"port": "/dev/ttyACM0"}})
        assert cfg("serial", "port") == "/dev/ttyACM0"

        # Overwrite file: should still return cached value
        config_file.write_text(json.dumps({"serial": {"port": "/dev/ttyUSB0"}}))
        assert cfg("serial", "port") == "/dev/ttyACM0"

    def test_reload_forces_reread(self, write_config, config_file):
        write_config({"serial": {"port": "/dev/ttyACM0"}})
        assert cfg("serial", "port") == "/dev/ttyACM0"

        config_file.write_text(json.dumps({"serial": {"port": "/dev/ttyUSB0"}}))
        reload_config()
        assert cfg("serial", "port") == "/dev/ttyUSB0"

    def test_repo_default_config_is_valid(self, monkeypatch, caplog):
        """config/default.json is the last fallback and must load cleanly."""
        import dialhub.config as config_mod

        monkeypatch.setattr(config_mod, "_SEARCH_PATHS", config_mod._SEARCH_PATHS[-1:])
        with caplog.at_level(logging.WARNING):
            load_config()

        assert not caplog.records
        assert cfg("hub", "path") == "/api/arduino"
        assert cfg("network", "connect_timeout") == 10
        assert cfg("serial", "baudrate") == 9600


# --- Validation warnings ---


class TestValidation:
    def test_warns_on_unknown_transport(self, write_config, caplog):
        with caplog.at_level(logging.WARNING):
            write_config({"dial": {"transport": "carrier-pigeon"}})
            load_config()
        assert any("unknown dial.transport 'carrier-pigeon'" in r.message for r in caplog.records)

    def test_no_warning_for_valid_transports(self, write_config, caplog):
        for kind in ("serial", "bluetooth", "ble", "wifi", "network", "BLE"):
            with caplog.at_level(logging.WARNING):
                caplog.clear()
                write_config({"dial": {"transport": kind}})
                load_config()
            assert not any("unknown dial.transport" in r.message for r in caplog.records), \
                f"Unexpected warning for transport '{kind}'"

    def test_warns_on_bad_connect_timeout(self, write_config, caplog):
        with caplog.at_level(logging.WARNING):
            write_config({"network": {"connect_timeout": -1}})
            load_config()
        assert any("connect_timeout must be a positive number" in r.message for r in caplog.records)
