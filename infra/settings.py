"""Runtime settings for narrowssh (logging only; control data lives elsewhere)."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from core.errors import UsageError

# Absolute path to main control file. Never configurable.
MAIN_CONTROL_FILE = "/etc/narrowssh/control.toml"

# Optional runtime settings file
DEFAULT_SETTINGS_FILE = "/etc/narrowssh/narrowssh.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RuntimeSettings:
    """narrowssh runtime settings."""

    # Logging
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise UsageError(
                f"unknown log level {self.log_level!r}, "
                f"expected one of {', '.join(LOG_LEVELS)}"
            )
        if self.log_file is not None and not isinstance(self.log_file, str):
            raise UsageError(f"log file must be a path, not {self.log_file!r}")

    @property
    def level(self) -> int:
        """Numeric logging level."""
        return getattr(logging, self.log_level)

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        """Load settings from environment variables."""
        return cls(
            log_level=os.getenv("NARROWSSH_LOG_LEVEL", "WARNING"),
            log_file=os.getenv("NARROWSSH_LOG_FILE") or None,
        )

    @classmethod
    def from_file(cls, settings_file: str) -> "RuntimeSettings":
        """Load settings from a YAML file, falling back to the environment."""
        path = Path(settings_file)
        if not path.exists():
            return cls.from_env()

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise UsageError(f"{path} is not valid YAML") from e

        if not isinstance(data, dict):
            raise UsageError(f"{path} must contain a mapping")

        env = cls.from_env()
        return cls(
            log_level=data.get("log_level", env.log_level),
            log_file=data.get("log_file", env.log_file),
        )
