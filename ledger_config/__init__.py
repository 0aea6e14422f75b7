"""
ledger_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the ONLY place configuration files and
    environment variables are read.  Everything else receives a
    ``LedgerConfig``.

Architecture position:
    Sits beside ``ledger_kernel``.  The kernel MUST NEVER import from
    ``ledger_config``; ``ledger_batch.orchestrator`` translates the config
    into kernel and batch objects.

Resolution order:
    1. ``config_path`` argument, else the ``LEDGER_CONFIG`` environment
       variable, else the bundled ``defaults.yaml``.
    2. ``LEDGER_DATABASE_URL``, ``LEDGER_TIMEZONE`` and ``LEDGER_LOG_LEVEL``
       override individual keys.

Failure modes:
    - ``FileNotFoundError`` -- the selected YAML file does not exist.
    - ``ConfigurationError`` (a ``ValueError``) -- validation failed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import apply_env_overrides, load_yaml_file, parse_config
from ledger_config.schema import ConfigurationError, LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """Load, override and validate the runtime configuration.

    Args:
        config_path: YAML file to read.  Falls back to ``LEDGER_CONFIG``,
            then to the bundled defaults.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ConfigurationError: If any setting is invalid.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get("LEDGER_CONFIG") or DEFAULT_CONFIG_PATH)

    raw = apply_env_overrides(load_yaml_file(path), env)
    config = parse_config(raw)

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_path": str(path),
            "timezone": config.timezone,
            "retention_days": config.retention_days,
            "tick_interval_seconds": config.tick_interval_seconds,
        },
    )
    return config


__all__ = [
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "LedgerConfig",
    "get_active_config",
]
