from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .logger import log


class ConfigError(Exception):
    """Configuration validation error."""

    pass


@dataclass
class RepoConfig:
    """Which repository the viewer opens and how it starts."""

    repo_path: str | None = None
    side_by_side: bool = False

    @classmethod
    def from_args(cls, args) -> RepoConfig:
        """Create RepoConfig from command line arguments."""
        return cls(repo_path=args.repo, side_by_side=bool(getattr(args, "side_by_side", False)))

    @classmethod
    def from_env(cls) -> RepoConfig:
        """Create RepoConfig from environment variables."""
        return cls(
            repo_path=os.environ.get('DIFFDECK_REPO'),
            side_by_side=os.environ.get('DIFFDECK_SIDE_BY_SIDE') == "1",
        )

    def merge_with_env(self) -> RepoConfig:
        """Merge with environment variables, keeping existing values if they exist."""
        return RepoConfig(
            repo_path=self.repo_path or os.environ.get('DIFFDECK_REPO'),
            side_by_side=self.side_by_side or os.environ.get('DIFFDECK_SIDE_BY_SIDE') == "1",
        )

    def resolved_path(self) -> str:
        """Absolute repository path, defaulting to the current directory."""
        return os.path.abspath(os.path.expanduser(self.repo_path or os.getcwd()))


class Config:
    """diffdeck configuration with environment variable support and validation."""

    # Default values
    _DEFAULT_VIRTUAL_THRESHOLD: Final[int] = 500
    _DEFAULT_COMMIT_HISTORY_LIMIT: Final[int] = 50
    _DEFAULT_WORD_DIFF_MAX_LINE_LENGTH: Final[int] = 500
    _DEFAULT_WORD_DIFF_MAX_PAIRS: Final[int] = 100
    _DEFAULT_WORD_DIFF_TIMEOUT_MS: Final[int] = 50
    _DEFAULT_RENDER_CACHE_CAPACITY: Final[int] = 1000
    _DEFAULT_RENDER_CACHE_MAX_BYTES: Final[int] = 10 * 1024 * 1024
    _DEFAULT_BUFFER_LINES: Final[int] = 50
    _DEFAULT_MIN_SIDE_BY_SIDE_WIDTH: Final[int] = 100
    _DEFAULT_SCROLL_LINES: Final[int] = 3
    _DEFAULT_GIT_TIMEOUT: Final[float] = 5.0

    # Validation bounds
    _MIN_VIRTUAL_THRESHOLD: Final[int] = 0
    _MAX_VIRTUAL_THRESHOLD: Final[int] = 1_000_000
    _MIN_COMMIT_HISTORY_LIMIT: Final[int] = 1
    _MAX_COMMIT_HISTORY_LIMIT: Final[int] = 10000
    _MIN_WORD_DIFF_MAX_LINE_LENGTH: Final[int] = 10
    _MAX_WORD_DIFF_MAX_LINE_LENGTH: Final[int] = 100000
    _MIN_WORD_DIFF_MAX_PAIRS: Final[int] = 0
    _MAX_WORD_DIFF_MAX_PAIRS: Final[int] = 100000
    _MIN_WORD_DIFF_TIMEOUT_MS: Final[int] = 1
    _MAX_WORD_DIFF_TIMEOUT_MS: Final[int] = 10000
    _MIN_RENDER_CACHE_CAPACITY: Final[int] = 1
    _MAX_RENDER_CACHE_CAPACITY: Final[int] = 1_000_000
    _MIN_RENDER_CACHE_MAX_BYTES: Final[int] = 1024
    _MAX_RENDER_CACHE_MAX_BYTES: Final[int] = 1024 * 1024 * 1024
    _MIN_BUFFER_LINES: Final[int] = 0
    _MAX_BUFFER_LINES: Final[int] = 10000
    _MIN_SIDE_BY_SIDE_WIDTH: Final[int] = 91
    _MAX_SIDE_BY_SIDE_WIDTH: Final[int] = 1000
    _MIN_SCROLL_LINES: Final[int] = 1
    _MAX_SCROLL_LINES: Final[int] = 100
    _MIN_GIT_TIMEOUT: Final[float] = 0.5
    _MAX_GIT_TIMEOUT: Final[float] = 600.0

    def __init__(self):
        """Initialize configuration with environment variable overrides."""
        self.virtual_threshold = self._get_int_env("DIFFDECK_VIRTUAL_THRESHOLD", self._DEFAULT_VIRTUAL_THRESHOLD)
        self.commit_history_limit = self._get_int_env(
            "DIFFDECK_COMMIT_HISTORY_LIMIT", self._DEFAULT_COMMIT_HISTORY_LIMIT
        )
        self.word_diff_max_line_length = self._get_int_env(
            "DIFFDECK_WORD_DIFF_MAX_LINE_LENGTH", self._DEFAULT_WORD_DIFF_MAX_LINE_LENGTH
        )
        self.word_diff_max_pairs = self._get_int_env("DIFFDECK_WORD_DIFF_MAX_PAIRS", self._DEFAULT_WORD_DIFF_MAX_PAIRS)
        self.word_diff_timeout_ms = self._get_int_env(
            "DIFFDECK_WORD_DIFF_TIMEOUT_MS", self._DEFAULT_WORD_DIFF_TIMEOUT_MS
        )
        self.render_cache_capacity = self._get_int_env(
            "DIFFDECK_RENDER_CACHE_CAPACITY", self._DEFAULT_RENDER_CACHE_CAPACITY
        )
        self.render_cache_max_bytes = self._get_int_env(
            "DIFFDECK_RENDER_CACHE_MAX_BYTES", self._DEFAULT_RENDER_CACHE_MAX_BYTES
        )
        self.buffer_lines = self._get_int_env("DIFFDECK_BUFFER_LINES", self._DEFAULT_BUFFER_LINES)
        self.min_side_by_side_width = self._get_int_env(
            "DIFFDECK_MIN_SIDE_BY_SIDE_WIDTH", self._DEFAULT_MIN_SIDE_BY_SIDE_WIDTH
        )
        self.scroll_lines = self._get_int_env("DIFFDECK_SCROLL_LINES", self._DEFAULT_SCROLL_LINES)
        self.git_timeout = self._get_float_env("DIFFDECK_GIT_TIMEOUT", self._DEFAULT_GIT_TIMEOUT)

        self._validate_all()

    def _get_int_env(self, key: str, default: int) -> int:
        """Get integer environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError as e:
            log.warning(f"Invalid integer value for {key}='{value}', using default {default}: {e}")
            return default

    def _get_float_env(self, key: str, default: float) -> float:
        """Get float environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError as e:
            log.warning(f"Invalid float value for {key}='{value}', using default {default}: {e}")
            return default

    def _validate_all(self) -> None:
        """Validate all configuration values."""
        self._validate_int(
            "virtual_threshold", self.virtual_threshold, self._MIN_VIRTUAL_THRESHOLD, self._MAX_VIRTUAL_THRESHOLD
        )
        self._validate_int(
            "commit_history_limit",
            self.commit_history_limit,
            self._MIN_COMMIT_HISTORY_LIMIT,
            self._MAX_COMMIT_HISTORY_LIMIT,
        )
        self._validate_int(
            "word_diff_max_line_length",
            self.word_diff_max_line_length,
            self._MIN_WORD_DIFF_MAX_LINE_LENGTH,
            self._MAX_WORD_DIFF_MAX_LINE_LENGTH,
        )
        self._validate_int(
            "word_diff_max_pairs", self.word_diff_max_pairs, self._MIN_WORD_DIFF_MAX_PAIRS, self._MAX_WORD_DIFF_MAX_PAIRS
        )
        self._validate_int(
            "word_diff_timeout_ms",
            self.word_diff_timeout_ms,
            self._MIN_WORD_DIFF_TIMEOUT_MS,
            self._MAX_WORD_DIFF_TIMEOUT_MS,
        )
        self._validate_int(
            "render_cache_capacity",
            self.render_cache_capacity,
            self._MIN_RENDER_CACHE_CAPACITY,
            self._MAX_RENDER_CACHE_CAPACITY,
        )
        self._validate_int(
            "render_cache_max_bytes",
            self.render_cache_max_bytes,
            self._MIN_RENDER_CACHE_MAX_BYTES,
            self._MAX_RENDER_CACHE_MAX_BYTES,
        )
        self._validate_int("buffer_lines", self.buffer_lines, self._MIN_BUFFER_LINES, self._MAX_BUFFER_LINES)
        self._validate_int(
            "min_side_by_side_width",
            self.min_side_by_side_width,
            self._MIN_SIDE_BY_SIDE_WIDTH,
            self._MAX_SIDE_BY_SIDE_WIDTH,
        )
        self._validate_int("scroll_lines", self.scroll_lines, self._MIN_SCROLL_LINES, self._MAX_SCROLL_LINES)
        self._validate_float("git_timeout", self.git_timeout, self._MIN_GIT_TIMEOUT, self._MAX_GIT_TIMEOUT)

    def _validate_int(self, name: str, value: int, min_val: int, max_val: int) -> None:
        """Validate integer configuration value."""
        if not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {type(value).__name__}")
        if not (min_val <= value <= max_val):
            raise ConfigError(f"{name} must be between {min_val} and {max_val}, got {value}")

    def _validate_float(self, name: str, value: float, min_val: float, max_val: float) -> None:
        """Validate float configuration value."""
        if not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number, got {type(value).__name__}")
        if not (min_val <= value <= max_val):
            raise ConfigError(f"{name} must be between {min_val} and {max_val}, got {value}")

    def __repr__(self) -> str:
        """String representation of configuration."""
        return (
            f"Config(virtual_threshold={self.virtual_threshold}, "
            f"commit_history_limit={self.commit_history_limit}, "
            f"word_diff_max_line_length={self.word_diff_max_line_length}, "
            f"word_diff_max_pairs={self.word_diff_max_pairs}, "
            f"word_diff_timeout_ms={self.word_diff_timeout_ms}, "
            f"render_cache_capacity={self.render_cache_capacity}, "
            f"render_cache_max_bytes={self.render_cache_max_bytes}, "
            f"buffer_lines={self.buffer_lines}, "
            f"min_side_by_side_width={self.min_side_by_side_width}, "
            f"scroll_lines={self.scroll_lines}, "
            f"git_timeout={self.git_timeout})"
        )


# Global configuration instance
config = Config()
