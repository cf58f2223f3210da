"""
Configuration management for the cidery MCP server.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from cidery_common.exceptions import ConfigurationError
from cidery_common.write_buffer import DEFAULT_FLUSH_DELAY

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class CideryConfig:
    """Configuration for the cidery server."""

    data_path: Path | None = None
    log_level: str = "INFO"
    edit_flush_delay: float = DEFAULT_FLUSH_DELAY

    def __post_init__(self):
        self.log_level = self.log_level.upper()

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)


def get_config() -> CideryConfig:
    """
    Get cidery configuration from environment.

    Environment variables:
        CIDERY_DATA_PATH: JSON export to load (optional; empty data when unset)
        CIDERY_LOG_LEVEL: Logging level, default INFO
        CIDERY_EDIT_FLUSH_DELAY: Seconds of quiet before grid edits are written

    Returns:
        CideryConfig instance

    Raises:
        ConfigurationError: If a value is invalid or the data file is missing
    """
    data_path = None
    raw_path = os.environ.get("CIDERY_DATA_PATH")
    if raw_path:
        data_path = Path(raw_path).expanduser()
        if not data_path.is_file():
            raise ConfigurationError(
                f"CIDERY_DATA_PATH points to {data_path}, which does not exist. "
                "Set it to a JSON export of your cidery data or unset it."
            )

    log_level = os.environ.get("CIDERY_LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"CIDERY_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level}"
        )

    raw_delay = os.environ.get("CIDERY_EDIT_FLUSH_DELAY")
    delay = DEFAULT_FLUSH_DELAY
    if raw_delay:
        try:
            delay = float(raw_delay)
        except ValueError as e:
            raise ConfigurationError(
                f"CIDERY_EDIT_FLUSH_DELAY must be a number of seconds, got {raw_delay!r}"
            ) from e
        if delay < 0:
            raise ConfigurationError("CIDERY_EDIT_FLUSH_DELAY cannot be negative")

    return CideryConfig(data_path=data_path, log_level=log_level, edit_flush_delay=delay)
