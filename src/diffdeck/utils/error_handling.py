"""Standardized error logging helpers for diffdeck.

The git collaborator, the parser and the host screen all report failures
through these functions so that every log line carries a subsystem prefix
and the exception type.
"""

from typing import Optional

from .logger import log


def log_git_error(command: str, work_dir: str, exception: Exception) -> None:
    """Log a failed git invocation with consistent formatting.

    Args:
        command: The git subcommand that failed (e.g., "diff HEAD", "log")
        work_dir: Repository directory the command ran in
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log.warning(f"[GIT] Failed 'git {command}' in {work_dir}: {error_type}: {exception}")


def log_parse_error(source: str, exception: Exception) -> None:
    """Log diff parsing errors with consistent formatting.

    Args:
        source: What was being parsed (e.g., "working directory diff", a commit hash)
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log.warning(f"[PARSE] Failed parsing {source}: {error_type}: {exception}")


def log_ui_error(component: str, action: str, exception: Exception) -> None:
    """Log UI component errors with consistent formatting.

    Args:
        component: Name of the UI component (e.g., "diff pane", "file list")
        action: The action being performed (e.g., "setting focus", "updating")
        exception: The exception that was raised
    """
    error_type = type(exception).__name__
    log(f"[UI] Failed {action} on {component}: {error_type}: {exception}")


def log_error_with_context(message: str, exception: Exception, context: Optional[dict] = None) -> None:
    """Log an error with additional context information.

    Args:
        message: Main error message
        exception: The exception that was raised
        context: Optional dictionary of context information
    """
    error_type = type(exception).__name__
    base_msg = f"{message}: {error_type}: {exception}"

    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        log(f"{base_msg} (Context: {context_str})")
    else:
        log(base_msg)
