"""Hunk geometry and navigation.

Positions are row offsets of hunk headers in the rendered diff pane. They
follow the same layout as the renderers: an optional metadata prefix, then
per file an optional header row, the hunk rows (or one placeholder row) and,
in aggregate views, a blank row after each file.
"""

from __future__ import annotations

from dataclasses import dataclass

from .aligner import align_hunk
from .models import DiffFile, DiffHunk, LineType, ViewMode


@dataclass
class HunkSpan:
    """Rows ``[start, end)`` of the pane occupied by ``hunk``."""

    start: int
    end: int
    hunk: DiffHunk


def hunk_row_count(hunk: DiffHunk, view_mode: ViewMode) -> int:
    if view_mode is ViewMode.SIDE_BY_SIDE:
        return len(align_hunk(hunk))
    return len(hunk.lines)


def hunk_spans(files: list[DiffFile], view_mode: ViewMode, aggregate: bool, prefix: int = 0) -> list[HunkSpan]:
    """Spans of every hunk, in display order.

    Args:
        files: Displayed files in order
        view_mode: Layout actually used for the rows (after any width fallback)
        aggregate: True for directory and commit views, which add file headers
            and separators
        prefix: Rows above the first file, e.g. a commit metadata block
    """
    spans, _ = _layout(files, view_mode, aggregate, prefix)
    return spans


def total_rows(files: list[DiffFile], view_mode: ViewMode, aggregate: bool, prefix: int = 0) -> int:
    """Rows the rendered pane occupies, prefix included."""
    _, rows = _layout(files, view_mode, aggregate, prefix)
    return rows


def _layout(files: list[DiffFile], view_mode: ViewMode, aggregate: bool, prefix: int) -> tuple[list[HunkSpan], int]:
    spans: list[HunkSpan] = []
    row = prefix
    for file in files:
        if aggregate:
            row += 1
        if file.is_binary or not file.hunks:
            row += 1
        else:
            for hunk in file.hunks:
                size = hunk_row_count(hunk, view_mode)
                spans.append(HunkSpan(row, row + size, hunk))
                row += size
        if aggregate:
            row += 1
    return spans, row


def hunk_positions(files: list[DiffFile], view_mode: ViewMode, aggregate: bool, prefix: int = 0) -> list[int]:
    return [span.start for span in hunk_spans(files, view_mode, aggregate, prefix)]


def hunk_at(spans: list[HunkSpan], offset: int) -> DiffHunk | None:
    """The hunk whose rows contain ``offset``."""
    for span in spans:
        if span.start <= offset < span.end:
            return span.hunk
    return None


def next_hunk_position(positions: list[int], offset: int) -> int | None:
    """First position after ``offset``, wrapping to the first one."""
    if not positions:
        return None
    for position in positions:
        if position > offset:
            return position
    return positions[0]


def prev_hunk_position(positions: list[int], offset: int) -> int | None:
    """Last position before ``offset``, wrapping to the last one."""
    if not positions:
        return None
    for position in reversed(positions):
        if position < offset:
            return position
    return positions[-1]


def current_hunk_number(positions: list[int], offset: int) -> int:
    """1-based number of the last hunk starting at or above ``offset``."""
    if not positions:
        return 0
    current = 1
    for index, position in enumerate(positions):
        if position > offset:
            break
        current = index + 1
    return current


def hunk_indicator(positions: list[int], offset: int) -> str:
    if not positions:
        return ""
    if len(positions) == 1:
        return "1 hunk"
    return f"{current_hunk_number(positions, offset)} / {len(positions)} hunks"


def count_total_lines(files: list[DiffFile]) -> int:
    """Rows used to choose between whole-content and virtual rendering."""
    total = 0
    for file in files:
        total += sum(len(hunk.lines) for hunk in file.hunks)
        if len(files) > 1:
            total += 2
    return total


def format_hunk_as_diff(hunk: DiffHunk | None) -> str:
    """Hunk as patch text with ``+``/``-``/`` `` markers."""
    if hunk is None or not hunk.lines:
        return ""
    out = [hunk.header + "\n"]
    for line in hunk.lines:
        if line.type is LineType.ADDITION:
            out.append("+" + line.content + "\n")
        elif line.type is LineType.DELETION:
            out.append("-" + line.content + "\n")
        elif line.type is LineType.CONTEXT:
            out.append(" " + line.content + "\n")
    return "".join(out)
