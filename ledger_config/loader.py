"""
Configuration loader (``ledger_config.loader``).

Reads one YAML document, applies environment overrides and validates the
result into a ``LedgerConfig``.  Runtime callers go through
``ledger_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown, missing or out-of-range keys  -> ``ConfigurationError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ledger_config.schema import ConfigurationError, LedgerConfig

# Environment variable -> config key
ENV_OVERRIDES: dict[str, str] = {
    "LEDGER_DATABASE_URL": "database_url",
    "LEDGER_TIMEZONE": "timezone",
    "LEDGER_LOG_LEVEL": "log_level",
}

_KNOWN_KEYS = frozenset(
    {
        "database_url",
        "timezone",
        "actor_id",
        "retention_days",
        "tick_interval_seconds",
        "log_level",
        "pool_size",
        "max_overflow",
        "echo",
    }
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from ``path`` (empty file -> empty dict)."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def apply_env_overrides(
    raw: Mapping[str, Any], environ: Mapping[str, str],
) -> dict[str, Any]:
    merged = dict(raw)
    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged[key] = value
    return merged


def _int(raw: Mapping[str, Any], key: str, default: int, minimum: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(key, f"must be >= {minimum}, got {value}")
    return value


def _timezone(raw: Mapping[str, Any]) -> str:
    name = raw.get("timezone")
    if not name or not isinstance(name, str):
        raise ConfigurationError("timezone", "is required (IANA name, e.g. 'Europe/London')")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError("timezone", f"unknown timezone {name!r}") from None
    return name


def _log_level(raw: Mapping[str, Any]) -> str:
    level = str(raw.get("log_level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError("log_level", f"unknown level {level!r}")
    return level


def _actor_id(raw: Mapping[str, Any]) -> UUID:
    value = raw.get("actor_id")
    if value is None:
        return uuid4()
    try:
        return UUID(str(value))
    except ValueError:
        raise ConfigurationError("actor_id", f"not a UUID: {value!r}") from None


def parse_config(raw: Mapping[str, Any]) -> LedgerConfig:
    """Validate a raw mapping into a LedgerConfig."""
    unknown = sorted(set(raw) - _KNOWN_KEYS)
    if unknown:
        raise ConfigurationError(unknown[0], "unknown setting")

    database_url = raw.get("database_url")
    if not database_url or not isinstance(database_url, str):
        raise ConfigurationError("database_url", "is required")

    echo = raw.get("echo", False)
    if not isinstance(echo, bool):
        raise ConfigurationError("echo", f"must be true or false, got {echo!r}")

    return LedgerConfig(
        database_url=database_url,
        timezone=_timezone(raw),
        actor_id=_actor_id(raw),
        retention_days=_int(raw, "retention_days", 30, minimum=0),
        tick_interval_seconds=_int(raw, "tick_interval_seconds", 60, minimum=1),
        log_level=_log_level(raw),
        pool_size=_int(raw, "pool_size", 5, minimum=1),
        max_overflow=_int(raw, "max_overflow", 10, minimum=0),
        echo=echo,
    )
