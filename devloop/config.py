"""
Configuration for devloop.

Loads settings from environment variables (and a .env file) with sensible
defaults. Command-line options override these values.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def split_list(value: str) -> tuple[str, ...]:
    """Split a comma separated setting into a tuple of stripped items."""
    return tuple(item.strip() for item in value.split(",") if item.strip())


def env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """devloop configuration."""

    # Paths
    data_dir: Path = Path(os.environ.get("DEVLOOP_HOME", str(Path.home() / ".devloop")))
    log_file: Path = None

    # Logging
    log_to_file: bool = env_flag("DEVLOOP_LOG_TO_FILE", "false")
    log_level: str = os.environ.get("DEVLOOP_LOG_LEVEL", "INFO").upper()
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

    # Change filter
    extensions: tuple[str, ...] = field(
        default_factory=lambda: split_list(os.environ.get("DEVLOOP_EXTENSIONS", ".py"))
    )
    exclude_dirs: tuple[str, ...] = field(
        default_factory=lambda: split_list(os.environ.get("DEVLOOP_EXCLUDE", ""))
    )

    # Process management
    interpreter: str = os.environ.get("DEVLOOP_INTERPRETER", sys.executable)
    kill_process_group: bool = env_flag("DEVLOOP_KILL_GROUP", "true")
    drain_timeout: float = float(os.environ.get("DEVLOOP_DRAIN_TIMEOUT", "1.0"))

    def __post_init__(self):
        """Initialize derived paths."""
        self.data_dir = Path(self.data_dir).expanduser()
        if self.log_file is None:
            self.log_file = self.data_dir / "devloop.log"

    def ensure_dirs(self):
        """Create the data directory used for the log file."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


config = Config()
