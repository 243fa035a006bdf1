"""Diff data model shared by the parser, the tree, the renderers and the viewer.

A parse produces ``DiffFile`` records holding ``DiffHunk`` records holding
``DiffLine`` records. Later stages only read them; a reload replaces the
whole list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEV_NULL = "/dev/null"


class LineType(Enum):
    """Enumeration of diff line kinds."""

    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"
    HUNK_HEADER = "hunk_header"


class ViewMode(Enum):
    """How the diff pane lays out a file."""

    UNIFIED = "unified"
    SIDE_BY_SIDE = "side_by_side"

    def __str__(self) -> str:
        return "UNIFIED" if self is ViewMode.UNIFIED else "SIDE-BY-SIDE"


@dataclass
class DiffLine:
    """A single line of a hunk; line numbers are 0 when not applicable."""

    type: LineType
    old_line_num: int = 0
    new_line_num: int = 0
    content: str = ""


@dataclass
class DiffHunk:
    """A contiguous changed region. ``lines[0]`` is always the header line."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: list[DiffLine] = field(default_factory=list)


@dataclass
class DiffFile:
    """One file's changes in a diff."""

    old_path: str = ""
    new_path: str = ""
    additions: int = 0
    deletions: int = 0
    is_binary: bool = False
    is_renamed: bool = False
    is_new: bool = False
    is_deleted: bool = False
    is_untracked: bool = False
    similarity: int = 0
    hunks: list[DiffHunk] = field(default_factory=list)

    @property
    def display_path(self) -> str:
        """Path shown to the user: the new path, or the old one for deletions."""
        if self.is_deleted or not self.new_path or self.new_path == DEV_NULL:
            return self.old_path
        return self.new_path

    @property
    def line_count(self) -> int:
        """Rendered line count of this file's hunks."""
        return sum(len(hunk.lines) for hunk in self.hunks)


def file_key(file: DiffFile | None) -> str:
    """Identity used by the scroll and word-diff caches."""
    if file is None:
        return ""
    if file.new_path and file.new_path != DEV_NULL:
        return file.new_path
    return file.old_path


class FocusPane(Enum):
    """Pane that receives navigation input."""

    FILE_LIST = "file_list"
    COMMIT_PICKER = "commit_picker"
    DIFF_PANE = "diff_pane"


class CommitPaneMode(Enum):
    """What the commit pane lists: commits, or the files of one commit."""

    LIST = "list"
    FILES = "files"


class CommitTab(Enum):
    """Tabs of the commit pane, in cycling order."""

    COMMITS = 0
    BRANCHES = 1
    WORKTREES = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    def next(self) -> CommitTab:
        return CommitTab((self.value + 1) % 3)

    def prev(self) -> CommitTab:
        return CommitTab((self.value + 2) % 3)
