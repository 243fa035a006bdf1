"""Messages consumed by ``DiffViewerModel.update`` and the tasks that produce them.

A ``Task`` is a zero-argument callable capturing everything it needs at
dispatch time. The host runs it off the update loop and feeds the returned
message back in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from diffdeck.git.executor import BranchInfo, CommitInfo, WorktreeInfo

from .models import DiffFile, ViewMode


class Command(Enum):
    """Discrete navigation and action inputs."""

    FOCUS_FILE_LIST = "focus_file_list"
    FOCUS_COMMITS = "focus_commits"
    FOCUS_DIFF = "focus_diff"
    CYCLE_PANES = "cycle_panes"
    FOCUS_LEFT = "focus_left"
    FOCUS_RIGHT = "focus_right"
    NEXT_ITEM = "next_item"
    PREV_ITEM = "prev_item"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    GOTO_TOP = "goto_top"
    GOTO_BOTTOM = "goto_bottom"
    SELECT = "select"
    GO_BACK = "go_back"
    TOGGLE_VIEW_MODE = "toggle_view_mode"
    NEXT_BRACKET = "next_bracket"
    PREV_BRACKET = "prev_bracket"
    NEXT_HUNK = "next_hunk"
    PREV_HUNK = "prev_hunk"
    COPY_HUNK = "copy_hunk"
    VIEW_RAW = "view_raw"
    RELOAD = "reload"
    CLOSE = "close"


class Message:
    """Base class for everything ``update`` accepts."""


@dataclass
class KeyCommand(Message):
    command: Command


@dataclass
class Resize(Message):
    width: int
    height: int


@dataclass
class WorkingDirDiffLoaded(Message):
    files: list[DiffFile] = field(default_factory=list)
    error: Exception | None = None
    raw: str = ""


@dataclass
class CommitsLoaded(Message):
    commits: list[CommitInfo] = field(default_factory=list)
    branch: str = ""
    error: Exception | None = None


@dataclass
class CommitFilesLoaded(Message):
    hash: str
    files: list[DiffFile] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class CommitPreviewLoaded(Message):
    hash: str
    files: list[DiffFile] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class BranchesLoaded(Message):
    branches: list[BranchInfo] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class WorktreesLoaded(Message):
    worktrees: list[WorktreeInfo] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class CommitsForBranchLoaded(Message):
    branch: str
    commits: list[CommitInfo] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class HunkCopied(Message):
    line_count: int = 0
    error: Exception | None = None


@dataclass
class ViewModeConstrained(Message):
    requested_mode: ViewMode
    min_width: int
    current_width: int


@dataclass
class ViewerClosed(Message):
    pass


@dataclass
class Task:
    """Deferred collaborator call producing one message."""

    name: str
    run: Callable[[], Message]

    def __call__(self) -> Message:
        return self.run()
