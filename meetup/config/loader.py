from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_MEETING_LIMITS = {
    "min_capacity": 2,
    "max_capacity": 100,
    "default_page_size": 10,
    "max_page_size": 50,
}
_DEFAULT_PARTICIPATION = {
    "withdraw_reason_max_length": 200,
}
_DEFAULT_ATTENDANCE = {
    "default_duration_minutes": 120,
    "calendar_timezone": "UTC",
}
_DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 30


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def get_meeting_limits() -> Dict[str, int]:
    """Return capacity bounds and listing page sizes with safe defaults."""
    config = load_config()
    section = config.get("meetings") or {}
    limits = dict(_DEFAULT_MEETING_LIMITS)

    for key in limits:
        limits[key] = _coerce_positive_int(section.get(key), limits[key])

    # Capacity below two would let a meeting exist with no room besides its host.
    limits["min_capacity"] = max(2, limits["min_capacity"])
    limits["max_capacity"] = max(limits["min_capacity"], limits["max_capacity"])
    limits["max_page_size"] = max(limits["default_page_size"], limits["max_page_size"])
    return limits


def get_participation_settings() -> Dict[str, int]:
    """Return participation settings sourced from config with safe defaults."""
    config = load_config()
    section = config.get("participation") or {}
    defaults = dict(_DEFAULT_PARTICIPATION)
    return {
        "withdraw_reason_max_length": _coerce_positive_int(
            section.get("withdraw_reason_max_length"),
            defaults["withdraw_reason_max_length"],
        ),
    }


def get_attendance_settings() -> Dict[str, Any]:
    """Return the conflict window default and the calendar timezone name."""
    config = load_config()
    section = config.get("attendance") or {}
    defaults = dict(_DEFAULT_ATTENDANCE)

    timezone_name = section.get("calendar_timezone")
    if not isinstance(timezone_name, str) or not timezone_name.strip():
        timezone_name = defaults["calendar_timezone"]

    return {
        "default_duration_minutes": _coerce_positive_int(
            section.get("default_duration_minutes"),
            defaults["default_duration_minutes"],
        ),
        "calendar_timezone": timezone_name.strip(),
    }


def get_access_token_expire_minutes() -> int:
    """
    Return the access token lifetime.

    Priority:
    1) config.yaml auth.access_token_expire_minutes
    2) MEETUP_ACCESS_TOKEN_EXPIRE_MINUTES env var
    3) default 30
    """
    config = load_config()
    section = config.get("auth") or {}
    configured = _coerce_positive_int(section.get("access_token_expire_minutes"), 0)
    if configured:
        return configured
    return _coerce_positive_int(
        os.getenv("MEETUP_ACCESS_TOKEN_EXPIRE_MINUTES"),
        _DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES,
    )
