from __future__ import annotations

import os
import sys
import traceback
import weakref
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, TextIO

# Leveled logger shared by the engine, the git collaborator and the screens.
# Use: from diffdeck.utils.logger import log
# log.info("[GIT] loaded 50 commits")
# log.debug("[MODEL] focus changed", extra={"focus": "diff"})
# log.error("[PARSE] bad hunk header", exc_info=sys.exc_info())

DEFAULT_LOG_PATH = "/tmp/diffdeck_debug.log"


class LogLevel(IntEnum):
    """Log severity levels."""
    DEBUG = 10
    INFO = 20
    WARN = 30
    WARNING = 30  # Alias for WARN
    ERROR = 40
    CRITICAL = 50


class Logger:
    """Leveled logger writing to an optional file and, outside Textual, to stdout."""

    def __init__(self):
        self._level = LogLevel.INFO
        self._file_handle: TextIO | None = None
        self._file_path: Path | None = None
        self._format_string = "{timestamp} [{level:8}] {message}"
        self._app_ref: weakref.ref | None = None

        self._configure_from_env()

    def _configure_from_env(self) -> None:
        """Configure logger from DEBUG / DIFFDECK_DEBUG / LOG_LEVEL / DIFFDECK_LOG_FILE."""
        if os.environ.get("DEBUG") == "1" or os.environ.get("DIFFDECK_DEBUG") == "1":
            self._level = LogLevel.DEBUG
            self.set_file_output(Path(os.environ.get("DIFFDECK_LOG_FILE", DEFAULT_LOG_PATH)))
        elif os.environ.get("DIFFDECK_LOG_FILE"):
            self.set_file_output(Path(os.environ["DIFFDECK_LOG_FILE"]))

        level_str = os.environ.get("LOG_LEVEL", "").upper()
        if level_str in LogLevel.__members__:
            self._level = LogLevel[level_str]

    @property
    def level(self) -> LogLevel:
        return self._level

    def set_level(self, level: LogLevel) -> None:
        """Set the minimum log level."""
        self._level = level

    def set_file_output(self, path: Path, append: bool = True) -> None:
        """Enable file output for logging."""
        try:
            if self._file_handle:
                self._file_handle.close()

            mode = "a" if append else "w"
            self._file_handle = open(path, mode, encoding="utf-8")
            self._file_path = path
        except OSError:
            # Can't log errors about logging setup
            self._file_handle = None
            self._file_path = None

    def bind_app(self, app) -> None:
        """Track the Textual app that owns the terminal while it runs."""
        self._app_ref = weakref.ref(app)

    def _can_write_stdout(self) -> bool:
        """Check if we can write to stdout; a running Textual app owns the terminal."""
        app = self._app_ref() if self._app_ref is not None else None
        return app is None or not app.is_running

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        extra: dict | None = None,
        exc_info: tuple | None = None
    ) -> str:
        """Format a log message with timestamp and level."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        formatted = self._format_string.format(
            timestamp=timestamp,
            level=level.name,
            message=message
        )

        if extra:
            formatted += f" | {extra}"

        if exc_info and exc_info[0] is not None:
            formatted += "\n" + "".join(traceback.format_exception(*exc_info))

        return formatted

    def _write(
        self,
        level: LogLevel,
        *args: Any,
        sep: str = " ",
        extra: dict | None = None,
        exc_info: tuple | None = None
    ) -> None:
        """Write a log message at the specified level."""
        if level < self._level:
            return

        message = sep.join(str(a) for a in args)
        formatted = self._format_message(level, message, extra, exc_info)

        if self._file_handle:
            try:
                self._file_handle.write(formatted + "\n")
                self._file_handle.flush()
            except OSError:
                pass

        # Only warnings and above reach the console; the file gets everything
        if level >= LogLevel.WARN and self._can_write_stdout():
            try:
                color_codes = {
                    LogLevel.WARN: "\033[93m",      # Yellow
                    LogLevel.ERROR: "\033[91m",     # Red
                    LogLevel.CRITICAL: "\033[95m",  # Magenta
                }
                if sys.stderr.isatty():
                    sys.stderr.write(f"{color_codes.get(level, '')}{formatted}\033[0m\n")
                else:
                    sys.stderr.write(formatted + "\n")
                sys.stderr.flush()
            except (OSError, ValueError):
                pass

    def debug(self, *args: Any, **kwargs) -> None:
        """Log a debug message."""
        self._write(LogLevel.DEBUG, *args, **kwargs)

    def info(self, *args: Any, **kwargs) -> None:
        """Log an info message."""
        self._write(LogLevel.INFO, *args, **kwargs)

    def warn(self, *args: Any, **kwargs) -> None:
        """Log a warning message."""
        self._write(LogLevel.WARN, *args, **kwargs)

    def warning(self, *args: Any, **kwargs) -> None:
        """Alias for warn()."""
        self.warn(*args, **kwargs)

    def error(self, *args: Any, **kwargs) -> None:
        """Log an error message."""
        self._write(LogLevel.ERROR, *args, **kwargs)

    def critical(self, *args: Any, **kwargs) -> None:
        """Log a critical message."""
        self._write(LogLevel.CRITICAL, *args, **kwargs)

    def __call__(self, *args: Any, sep: str = " ") -> None:
        """Shorthand for info()."""
        self.info(*args, sep=sep)


log = Logger()
