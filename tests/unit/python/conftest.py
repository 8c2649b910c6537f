"""Shared fixtures for dial hub Python unit tests."""

import json
import sys
from pathlib import Path

import pytest

# Add services/ to sys.path so `from dialhub.config import cfg` works
SERVICES_DIR = Path(__file__).resolve().parents[3] / "services"
sys.path.insert(0, str(SERVICES_DIR))


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Reset the config module's cache before each test."""
    import dialhub.config as config_mod
    config_mod._config = None
    yield
    config_mod._config = None


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Provide a temp config file path and patch _SEARCH_PATHS to use it.

    Returns the Path object: write JSON to it with write_text() or use
    the write_config fixture for convenience.
    """
    import dialhub.config as config_mod

    path = tmp_path / "config.json"
    monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(path)])
    return path


@pytest.fixture
def write_config(config_file):
    """Write a dict as JSON to the temp config file.

    Usage:
        def test_something(write_config):
            write_config({"dial": {"transport": "ble"}})
            assert cfg("dial", "transport") == "ble"
    """
    import dialhub.config as config_mod

    def _write(data: dict):
        config_file.write_text(json.dumps(data))
        config_mod._config = None  # force re-read
        return config_file

    return _write


@pytest.fixture
def mock_config(monkeypatch):
    """Directly set the config dict without file I/O.

    Usage:
        def test_something(mock_config):
            mock_config({"serial": {"port": "loop://"}})
            assert cfg("serial", "port") == "loop://"
    """
    import dialhub.config as config_mod

    def _mock(data: dict):
        monkeypatch.setattr(config_mod, "_config", data)

    return _mock


@pytest.fixture
def recorder():
    """Collects dial events and clicks from a transport's handlers.

    Usage:
        transport.set_dial_change_handler(recorder.on_dial)
        transport.set_click_handler(recorder.on_click)
        ...
        assert [e.delta for e in recorder.events] == [5, 4]
    """

    class Recorder:
        def __init__(self):
            self.events = []
            self.clicks = 0
            self.queue = None

        def on_dial(self, event):
            self.events.append(event)
            if self.queue is not None:
                self.queue.put_nowait(("dial", event))

        def on_click(self):
            self.clicks += 1
            if self.queue is not None:
                self.queue.put_nowait(("click", None))

        def attach(self, transport):
            transport.set_dial_change_handler(self.on_dial)
            transport.set_click_handler(self.on_click)
            return self

    return Recorder()
