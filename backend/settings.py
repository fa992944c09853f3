from __future__ import annotations

"""Loading and saving of user settings.

The settings are stored as a list of dictionaries to preserve order.
Each dictionary contains ``key``, ``value`` and ``type`` entries.
"""

from pathlib import Path
import json
import logging
from typing import Any, List, Dict

from backend import DEFAULT_REST_DURATION

# Path to the JSON file where settings are persisted.
SETTINGS_PATH = Path(__file__).resolve().parents[1] / "data" / "settings.json"

# Default settings written on first run.
DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "rest_duration", "value": DEFAULT_REST_DURATION, "type": "int"},
    {"key": "notifications_on", "value": True, "type": "bool"},
    {"key": "live_display_on", "value": True, "type": "bool"},
]

# Internal cache so settings are only read from disk once.
_settings_cache: List[Dict[str, Any]] | None = None


def load_settings() -> List[Dict[str, Any]]:
    """Load settings from :data:`SETTINGS_PATH` or create defaults.

    Keys missing from an older file are filled in from
    :data:`DEFAULT_SETTINGS`.
    """
    if SETTINGS_PATH.exists():
        try:
            with SETTINGS_PATH.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logging.exception("Unreadable settings file %s, using defaults", SETTINGS_PATH)
        else:
            if isinstance(data, list):
                known = {item.get("key") for item in data if isinstance(item, dict)}
                data.extend(
                    dict(item) for item in DEFAULT_SETTINGS if item["key"] not in known
                )
                return data
    defaults = [dict(item) for item in DEFAULT_SETTINGS]
    save_settings(defaults)
    return defaults


def save_settings(settings: List[Dict[str, Any]]) -> None:
    """Persist ``settings`` to :data:`SETTINGS_PATH`."""
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    with SETTINGS_PATH.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh)


def get_settings() -> List[Dict[str, Any]]:
    """Return the cached settings list, loading from disk if needed."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def get_value(key: str, default: Any = None) -> Any:
    """Fetch the value associated with ``key``."""
    for item in get_settings():
        if item.get("key") == key:
            return item.get("value")
    return default


def set_value(key: str, value: Any) -> None:
    """Update ``key`` with ``value`` and persist the change."""
    settings = get_settings()
    for item in settings:
        if item.get("key") == key:
            item["value"] = value
            break
    else:
        settings.append({"key": key, "value": value, "type": type(value).__name__})
    save_settings(settings)


def get_rest_duration() -> int:
    """Return the configured rest cooldown in seconds."""
    try:
        value = int(get_value("rest_duration", DEFAULT_REST_DURATION))
    except (TypeError, ValueError):
        logging.warning("Invalid rest_duration setting, using %s", DEFAULT_REST_DURATION)
        return DEFAULT_REST_DURATION
    return value if value > 0 else DEFAULT_REST_DURATION
