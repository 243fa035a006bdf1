"""Error taxonomy for the diff viewer.

Every failure the viewer can display is a ``DiffError`` with a category that
decides which recovery actions the error pane offers.
"""

from __future__ import annotations

from enum import Enum

from diffdeck.git.executor import GitTimeoutError


class ErrorCategory(Enum):
    """Kinds of failure, each with its own recovery hints."""

    PARSE = "Parse Error"
    GIT_OP = "Git Operation Error"
    PERMISSION = "Permission Error"
    CONFLICT = "Conflict Error"
    TIMEOUT = "Timeout Error"

    def __str__(self) -> str:
        return self.value


class DiffError(Exception):
    """An error with a category and optional help text for the user."""

    def __init__(self, category: ErrorCategory, message: str, help_text: str = ""):
        super().__init__(message)
        self.category = category
        self.message = message
        self.help_text = help_text

    def with_help_text(self, help_text: str) -> DiffError:
        """Return a copy of this error carrying ``help_text``."""
        return type(self)(self.category, self.message, help_text)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"DiffError({self.category.name}, {self.message!r})"


class DiffParseError(DiffError):
    """Malformed hunk header; the offending line is kept on ``line``."""

    def __init__(self, message: str, line: str = "", help_text: str = ""):
        super().__init__(ErrorCategory.PARSE, message, help_text)
        self.line = line

    def with_help_text(self, help_text: str) -> DiffParseError:
        return DiffParseError(self.message, self.line, help_text)


_PERMISSION_MARKERS = ("permission denied", "operation not permitted")
_CONFLICT_MARKERS = ("conflict", "unmerged", "index.lock")

_HELP_TEXT = {
    ErrorCategory.PARSE: "The diff output could not be parsed.",
    ErrorCategory.GIT_OP: "The git command failed. Check that this is a git repository.",
    ErrorCategory.PERMISSION: "Check file permissions for the repository directory.",
    ErrorCategory.CONFLICT: "The repository has unresolved conflicts or a lock in place.",
    ErrorCategory.TIMEOUT: "The git command took too long to respond.",
}


def classify_error(exc: BaseException) -> DiffError:
    """Map a collaborator exception onto a ``DiffError``.

    ``DiffError`` instances pass through unchanged.
    """
    if isinstance(exc, DiffError):
        return exc

    message = str(exc) or type(exc).__name__
    lowered = message.lower()

    if isinstance(exc, GitTimeoutError):
        category = ErrorCategory.TIMEOUT
    elif isinstance(exc, PermissionError) or any(m in lowered for m in _PERMISSION_MARKERS):
        category = ErrorCategory.PERMISSION
    elif any(m in lowered for m in _CONFLICT_MARKERS):
        category = ErrorCategory.CONFLICT
    else:
        category = ErrorCategory.GIT_OP

    return DiffError(category, message, _HELP_TEXT[category])
