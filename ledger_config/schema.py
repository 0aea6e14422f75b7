"""
Configuration schema (``ledger_config.schema``).

Frozen dataclass describing a fully validated runtime configuration.
Produced only by ``ledger_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID
from zoneinfo import ZoneInfo


class ConfigurationError(ValueError):
    """A configuration value is missing or invalid.

    ``key`` names the offending setting.
    """

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key!r}: {reason}")


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime configuration for the ledger and its triggers."""

    database_url: str
    timezone: str
    actor_id: UUID
    retention_days: int = 30
    tick_interval_seconds: int = 60
    log_level: str = "INFO"
    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False

    @property
    def tz(self) -> ZoneInfo:
        """The configured timezone as a tzinfo."""
        return ZoneInfo(self.timezone)
