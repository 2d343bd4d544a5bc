"""Configuration management for medialend.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .clock import Clock, SimulatedClock, SystemClock

# Load .env file if present
load_dotenv()


DEFAULT_ESCALATION_DAYS = 7
DEFAULT_MEMBERSHIP_DAYS = 365


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Library
    library_name: str

    # Lending policy
    escalation_days: int
    membership_days: int

    # Simulated "today" (ISO date string), None means system date
    today_override: Optional[str]

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "MEDIALEND_DB_PATH",
            str(Path.home() / ".medialend" / "medialend.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            library_name=os.environ.get("MEDIALEND_NAME", "mediatheque"),
            escalation_days=int(
                os.environ.get("MEDIALEND_ESCALATION_DAYS", str(DEFAULT_ESCALATION_DAYS))
            ),
            membership_days=int(
                os.environ.get("MEDIALEND_MEMBERSHIP_DAYS", str(DEFAULT_MEMBERSHIP_DAYS))
            ),
            today_override=os.environ.get("MEDIALEND_TODAY") or None,
            log_level=os.environ.get("MEDIALEND_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.escalation_days <= 0:
            errors.append(
                f"MEDIALEND_ESCALATION_DAYS must be positive, got {self.escalation_days}"
            )
        if self.membership_days <= 0:
            errors.append(
                f"MEDIALEND_MEMBERSHIP_DAYS must be positive, got {self.membership_days}"
            )

        if self.today_override:
            try:
                date.fromisoformat(self.today_override)
            except ValueError:
                errors.append(f"MEDIALEND_TODAY is not an ISO date: {self.today_override}")

        # Check database directory is writable
        if not self.is_memory_db and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors

    @property
    def is_memory_db(self) -> bool:
        return str(self.db_path) == ":memory:"

    def make_clock(self) -> Clock:
        """Build the clock matching MEDIALEND_TODAY."""
        if self.today_override:
            return SimulatedClock(date.fromisoformat(self.today_override))
        return SystemClock()


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
