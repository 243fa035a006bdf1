"""Side-by-side row alignment for a single hunk.

Deletion runs followed by addition runs are paired by position, with any
overflow emitted deletions first, then additions. Reordered lines are not
re-matched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import DiffHunk, DiffLine, LineType


class PairType(Enum):
    HUNK_HEADER = "hunk_header"
    CONTEXT = "context"
    MODIFICATION = "modification"
    DELETION = "deletion"
    ADDITION = "addition"
    EMPTY = "empty"


@dataclass
class AlignedPair:
    """One side-by-side row: old line on the left, new line on the right."""

    left: DiffLine | None = None
    right: DiffLine | None = None
    # positions of left and right within hunk.lines, -1 for an empty side
    left_index: int = -1
    right_index: int = -1

    @property
    def is_hunk_header(self) -> bool:
        return self.left is not None and self.left.type is LineType.HUNK_HEADER

    @property
    def is_context(self) -> bool:
        return (
            self.left is not None
            and self.right is not None
            and self.left.type is LineType.CONTEXT
            and self.right.type is LineType.CONTEXT
        )

    @property
    def is_modification(self) -> bool:
        return (
            self.left is not None
            and self.right is not None
            and self.left.type is LineType.DELETION
            and self.right.type is LineType.ADDITION
        )

    @property
    def is_deletion(self) -> bool:
        return self.left is not None and self.right is None and self.left.type is LineType.DELETION

    @property
    def is_addition(self) -> bool:
        return self.left is None and self.right is not None and self.right.type is LineType.ADDITION

    @property
    def pair_type(self) -> PairType:
        if self.is_hunk_header:
            return PairType.HUNK_HEADER
        if self.is_context:
            return PairType.CONTEXT
        if self.is_modification:
            return PairType.MODIFICATION
        if self.is_deletion:
            return PairType.DELETION
        if self.is_addition:
            return PairType.ADDITION
        return PairType.EMPTY


def _run_end(lines: list[DiffLine], start: int, line_type: LineType) -> int:
    end = start
    while end < len(lines) and lines[end].type is line_type:
        end += 1
    return end


def align_hunk(hunk: DiffHunk) -> list[AlignedPair]:
    """Rows for side-by-side display of ``hunk``."""
    lines = hunk.lines
    pairs: list[AlignedPair] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        if line.type is LineType.HUNK_HEADER:
            pairs.append(AlignedPair(line, None, i))
            i += 1
        elif line.type is LineType.CONTEXT:
            pairs.append(AlignedPair(line, line, i, i))
            i += 1
        elif line.type is LineType.DELETION:
            del_end = _run_end(lines, i, LineType.DELETION)
            add_end = _run_end(lines, del_end, LineType.ADDITION)
            pairs.extend(_pair_runs(lines, range(i, del_end), range(del_end, add_end)))
            i = add_end
        else:
            pairs.append(AlignedPair(None, line, -1, i))
            i += 1

    return pairs


def _pair_runs(lines: list[DiffLine], deletions: range, additions: range) -> list[AlignedPair]:
    shared = min(len(deletions), len(additions))
    pairs = [
        AlignedPair(lines[deletions[k]], lines[additions[k]], deletions[k], additions[k]) for k in range(shared)
    ]
    pairs.extend(AlignedPair(lines[index], None, index) for index in deletions[shared:])
    pairs.extend(AlignedPair(None, lines[index], -1, index) for index in additions[shared:])
    return pairs
