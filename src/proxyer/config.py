"""Startup configuration.

Read once by the CLI and never changed afterwards.
"""

import os
from dataclasses import dataclass

DEFAULT_LOG_LEVEL = "debug"
DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 3000

# Accepted by logfire's console min_log_level
LOG_LEVELS = ("trace", "debug", "info", "notice", "warn", "warning", "error", "fatal")

# When set, wins over the command-line log level
LOG_ENV_VAR = "PROXYER_LOG"


@dataclass(frozen=True)
class ProxyConfig:
    """Validated startup settings."""

    log_level: str = DEFAULT_LOG_LEVEL
    address: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT

    def __post_init__(self):
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"unknown log level {self.log_level!r}")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")

    def resolve_log_level(self) -> str:
        """The effective log level: $PROXYER_LOG if it is set and valid, else log_level."""
        override = os.environ.get(LOG_ENV_VAR, "").strip().lower()
        if override in LOG_LEVELS:
            return override
        return self.log_level.lower()
