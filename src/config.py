"""Configuration management for jsassist.

Loads environment variables and provides centralized config access.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

__version__ = "1.0.0"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self):
        """Initialize config by loading .env file."""
        # Load .env from project root
        project_root = Path(__file__).parent.parent
        env_path = project_root / ".env"
        load_dotenv(env_path)

        self._validate_required()

    def _validate_required(self):
        """Validate the values that have a fixed shape.

        Raises:
            ValueError: If ASSIST_DISPLAY_DEPTH or ASSIST_LOG_LEVEL is malformed
        """
        _ = self.display_depth
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"ASSIST_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )

    @property
    def index_dir(self) -> Optional[Path]:
        """Extra directory of Tern ``*.json`` indexes loaded into every request.

        Returns:
            Directory path or None if not configured
        """
        value = os.getenv("ASSIST_INDEX_DIR")
        return Path(value) if value else None

    @property
    def display_depth(self) -> int:
        """Object nesting level at which labels collapse to ``{...}``.

        Raises:
            ValueError: If the value is not a positive integer
        """
        raw = os.getenv("ASSIST_DISPLAY_DEPTH", "2")
        try:
            depth = int(raw)
        except ValueError as e:
            raise ValueError(f"ASSIST_DISPLAY_DEPTH must be an integer, got {raw!r}") from e
        if depth < 1:
            raise ValueError(f"ASSIST_DISPLAY_DEPTH must be positive, got {depth}")
        return depth

    @property
    def log_level(self) -> str:
        return os.getenv("ASSIST_LOG_LEVEL", "WARNING").upper()

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached instance so the next ``get_config`` re-reads the environment."""
    global _config
    _config = None
