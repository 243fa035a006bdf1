"""Unified diff parser.

Turns ``git diff`` style text into a list of ``DiffFile`` records. Unknown
lines are skipped so one odd line never sinks a large diff; only a hunk
header whose numbers cannot be read aborts the parse.
"""

from __future__ import annotations

import re

from diffdeck.utils.logger import log

from .errors import DiffParseError
from .models import DEV_NULL, DiffFile, DiffHunk, DiffLine, LineType

DIFF_HEADER_RE = re.compile(r"^diff --git a/(.+) b/(.+)$")
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
OLD_FILE_RE = re.compile(r"^--- a/(.+)$")
NEW_FILE_RE = re.compile(r"^\+\+\+ b/(.+)$")
OLD_FILE_NULL_RE = re.compile(r"^--- /dev/null$")
NEW_FILE_NULL_RE = re.compile(r"^\+\+\+ /dev/null$")
SIMILARITY_RE = re.compile(r"^similarity index (\d+)%$")
RENAME_FROM_RE = re.compile(r"^rename from (.+)$")
RENAME_TO_RE = re.compile(r"^rename to (.+)$")
BINARY_FILES_RE = re.compile(r"^Binary files .+ and .+ differ$")
NEW_FILE_MODE_RE = re.compile(r"^new file mode (\d+)$")
DELETED_FILE_MODE_RE = re.compile(r"^deleted file mode (\d+)$")
OLD_MODE_RE = re.compile(r"^old mode (\d+)$")
NEW_MODE_RE = re.compile(r"^new mode (\d+)$")
INDEX_LINE_RE = re.compile(r"^index [a-f0-9]+\.\.[a-f0-9]+")


class _ParseState:
    """Cursor over the diff being parsed."""

    def __init__(self):
        self.files: list[DiffFile] = []
        self.file: DiffFile | None = None
        self.hunk: DiffHunk | None = None
        self.old_line = 0
        self.new_line = 0

    def flush_hunk(self) -> None:
        if self.file is not None and self.hunk is not None:
            self.file.hunks.append(self.hunk)
        self.hunk = None

    def flush_file(self) -> None:
        self.flush_hunk()
        if self.file is not None:
            self.files.append(self.file)
        self.file = None


def parse_diff(text: str) -> list[DiffFile]:
    """Parse unified diff text into ``DiffFile`` records.

    Args:
        text: Raw diff output; empty input yields an empty list

    Returns:
        Files in the order they appear in the diff

    Raises:
        DiffParseError: A hunk header carried an unreadable number
    """
    if not text or not text.strip():
        return []

    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    state = _ParseState()
    for raw in lines:
        line = raw[:-1] if raw.endswith("\r") else raw
        _parse_line(state, line)

    state.flush_file()
    log.debug(f"[PARSE] Parsed {len(state.files)} file(s) from {len(lines)} line(s)")
    return state.files


def _parse_line(state: _ParseState, line: str) -> None:
    """Dispatch one line in priority order."""
    match = DIFF_HEADER_RE.match(line)
    if match:
        state.flush_file()
        state.file = DiffFile(old_path=match.group(1), new_path=match.group(2))
        return

    file = state.file
    if file is None:
        return

    if state.hunk is None and _parse_path_marker(file, line):
        return
    if _parse_metadata(file, line):
        return

    match = HUNK_HEADER_RE.match(line)
    if match:
        _open_hunk(state, line, match)
        return

    if state.hunk is not None:
        _parse_content(state, line)


def _parse_path_marker(file: DiffFile, line: str) -> bool:
    """Handle ``---``/``+++`` lines, including the /dev/null sentinels."""
    if OLD_FILE_NULL_RE.match(line):
        file.is_new = True
        file.old_path = DEV_NULL
        return True
    match = OLD_FILE_RE.match(line)
    if match:
        file.old_path = match.group(1)
        return True
    if NEW_FILE_NULL_RE.match(line):
        file.is_deleted = True
        file.new_path = DEV_NULL
        return True
    match = NEW_FILE_RE.match(line)
    if match:
        file.new_path = match.group(1)
        return True
    return False


def _parse_metadata(file: DiffFile, line: str) -> bool:
    """Handle rename, binary and mode lines. Returns True when consumed."""
    match = SIMILARITY_RE.match(line)
    if match:
        file.similarity = int(match.group(1))
        file.is_renamed = True
        return True

    match = RENAME_FROM_RE.match(line)
    if match:
        file.old_path = match.group(1)
        file.is_renamed = True
        return True
    match = RENAME_TO_RE.match(line)
    if match:
        file.new_path = match.group(1)
        file.is_renamed = True
        return True

    if BINARY_FILES_RE.match(line):
        file.is_binary = True
        return True

    if NEW_FILE_MODE_RE.match(line):
        file.is_new = True
        return True
    if DELETED_FILE_MODE_RE.match(line):
        file.is_deleted = True
        return True

    # Mode changes and index lines have no display value
    return bool(OLD_MODE_RE.match(line) or NEW_MODE_RE.match(line) or INDEX_LINE_RE.match(line))


def _to_int(value: str | None, default: int, what: str, line: str) -> int:
    # int() only rejects \d+ captures longer than sys.get_int_max_str_digits()
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise DiffParseError(f"invalid {what} in hunk header: {line}", line=line) from None


def _open_hunk(state: _ParseState, line: str, match: re.Match) -> None:
    state.flush_hunk()

    old_start = _to_int(match.group(1), 0, "old start line", line)
    old_count = _to_int(match.group(2), 1, "old count", line)
    new_start = _to_int(match.group(3), 0, "new start line", line)
    new_count = _to_int(match.group(4), 1, "new count", line)

    state.hunk = DiffHunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        header=line,
        lines=[DiffLine(LineType.HUNK_HEADER, content=match.group(5).strip())],
    )
    state.old_line = old_start
    state.new_line = new_start


def _parse_content(state: _ParseState, line: str) -> None:
    """Handle a body line of the open hunk."""
    hunk = state.hunk
    file = state.file

    if line == "":
        hunk.lines.append(DiffLine(LineType.CONTEXT, state.old_line, state.new_line, ""))
        state.old_line += 1
        state.new_line += 1
        return

    prefix, content = line[0], line[1:]
    if prefix == " ":
        hunk.lines.append(DiffLine(LineType.CONTEXT, state.old_line, state.new_line, content))
        state.old_line += 1
        state.new_line += 1
    elif prefix == "-":
        hunk.lines.append(DiffLine(LineType.DELETION, state.old_line, 0, content))
        file.deletions += 1
        state.old_line += 1
    elif prefix == "+":
        hunk.lines.append(DiffLine(LineType.ADDITION, 0, state.new_line, content))
        file.additions += 1
        state.new_line += 1
    # "\ No newline at end of file" and unknown prefixes are skipped
