"""
Shared configuration loader for the dial hub services.

Loads a single JSON config file per machine.  Search order:
  1. /etc/dialhub/config.json      (system install)
  2. config.json                   (CWD, for local dev)
  3. ../../config/default.json     (repo fallback)

Usage:
    from dialhub.config import cfg

    transport    = cfg("dial", "transport", default="serial")
    serial_port  = cfg("serial", "port", default="auto")
    hub_port     = cfg("hub", "port", default=5173)
    ble          = cfg("ble")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/dialhub/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

KNOWN_TRANSPORTS = ("serial", "bluetooth", "ble", "wifi", "network")


def _validate(config: dict) -> None:
    """Log warnings for settings that would fail later at connect time."""
    dial = config.get("dial")
    if isinstance(dial, dict) and "transport" in dial:
        kind = str(dial["transport"]).lower()
        if kind not in KNOWN_TRANSPORTS:
            logger.warning("Config: unknown dial.transport '%s'", dial["transport"])

    network = config.get("network")
    if isinstance(network, dict) and "connect_timeout" in network:
        timeout = network["connect_timeout"]
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            logger.warning("Config: network.connect_timeout must be a positive number")


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found: using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("dial")                       → config["dial"]
    cfg("serial", "port")             → config["serial"]["port"]
    cfg("hub", "port", default=5173)  → config["hub"]["port"] or 5173
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
