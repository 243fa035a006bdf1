"""Navigation and focus state machine of the diff viewer.

``DiffViewerModel`` owns all viewer state and changes it only inside
``update``. Anything that needs git is returned from ``update`` as a ``Task``;
the host runs the task off the loop and passes the resulting message back to
``update``. Results that answer a superseded request (an older commit
preview, the files of a commit no longer inspected, commits of a branch no
longer requested) are dropped on arrival.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from rich.text import Text

from diffdeck.git.executor import (
    CommitInfo,
    DetachedHeadError,
    GitError,
    GitExecutor,
)
from diffdeck.utils.config import config
from diffdeck.utils.error_handling import log_error_with_context, log_parse_error
from diffdeck.utils.logger import log

from . import renderer
from .errors import DiffError, DiffParseError, ErrorCategory, classify_error
from .file_tree import FileTree, FileTreeNode, clamp_index
from .hunks import (
    HunkSpan,
    count_total_lines,
    format_hunk_as_diff,
    hunk_at,
    hunk_indicator,
    hunk_spans,
    next_hunk_position,
    prev_hunk_position,
    total_rows,
)
from .messages import (
    BranchesLoaded,
    Command,
    CommitFilesLoaded,
    CommitPreviewLoaded,
    CommitsForBranchLoaded,
    CommitsLoaded,
    HunkCopied,
    KeyCommand,
    Message,
    Resize,
    Task,
    ViewerClosed,
    ViewModeConstrained,
    WorkingDirDiffLoaded,
    WorktreesLoaded,
)
from .models import (
    CommitPaneMode,
    CommitTab,
    DiffFile,
    DiffHunk,
    DiffLine,
    FocusPane,
    LineType,
    ViewMode,
    file_key,
)
from .parser import parse_diff
from .scroll_cache import ScrollPositionCache
from .scrollbar import ScrollbarConfig, join_with_scrollbar
from .viewport import StaticViewport, Viewport, VirtualViewport
from .virtual import VirtualContent
from .word_diff import FileWordDiff, WordDiffCache

# Layout of the main area
FILE_LIST_RATIO = 0.3
FILE_LIST_MIN_WIDTH = 24
FILE_LIST_MAX_WIDTH = 50
HEADER_HEIGHT = 1
BORDER_SIZE = 2
TAB_BAR_HEIGHT = 1

DETACHED_HEAD_BRANCH = "HEAD"

# Collaborator failures a task turns into an error-tagged message
_TASK_ERRORS = (GitError, DiffError, OSError)

# Word diff caches, one per source of files
_SOURCE_WORKING = "working"
_SOURCE_COMMIT = "commit"
_SOURCE_PREVIEW = "preview"

# Tasks. Each captures its executor and arguments at dispatch time.


def untracked_file(path: str, content: str | None) -> DiffFile:
    """All-additions file for an untracked path."""
    file = DiffFile(new_path=path, is_new=True, is_untracked=True)
    if not content:
        return file

    pieces = content.split("\n")
    if pieces and pieces[-1] == "":
        pieces.pop()
    lines = [DiffLine(LineType.ADDITION, new_line_num=i + 1, content=p.rstrip("\r")) for i, p in enumerate(pieces)]
    file.additions = len(lines)
    if lines:
        header = f"@@ -0,0 +1,{len(lines)} @@ (new file)"
        hunk = DiffHunk(0, 0, 1, len(lines), header, [DiffLine(LineType.HUNK_HEADER, content="(new file)")])
        hunk.lines.extend(lines)
        file.hunks.append(hunk)
    return file


def load_working_dir_diff(executor: GitExecutor | None) -> WorkingDirDiffLoaded:
    if executor is None:
        return WorkingDirDiffLoaded()
    try:
        output = executor.get_working_dir_diff()
    except _TASK_ERRORS as e:
        return WorkingDirDiffLoaded(error=e)

    try:
        files = parse_diff(output)
    except DiffParseError as e:
        log_parse_error("working directory diff", e)
        return WorkingDirDiffLoaded(error=e, raw=output)

    try:
        untracked = executor.get_untracked_files()
    except _TASK_ERRORS as e:
        log.warning(f"[GIT] Untracked file listing failed, showing tracked changes only: {e}")
        return WorkingDirDiffLoaded(files=files)

    for path in untracked:
        try:
            content = executor.get_file_content(path)
        except _TASK_ERRORS as e:
            log.debug(f"[GIT] Could not read untracked file {path}: {e}")
            content = None
        files.append(untracked_file(path, content))
    return WorkingDirDiffLoaded(files=files)


def load_commits(executor: GitExecutor | None, limit: int) -> CommitsLoaded:
    """Commit log for HEAD plus the current branch name."""
    if executor is None:
        return CommitsLoaded()
    try:
        commits = executor.get_commit_log(limit)
    except _TASK_ERRORS as e:
        return CommitsLoaded(error=e)

    try:
        branch = executor.get_current_branch()
    except DetachedHeadError:
        branch = DETACHED_HEAD_BRANCH
    except _TASK_ERRORS as e:
        return CommitsLoaded(error=e)
    return CommitsLoaded(commits=commits, branch=branch)


def _load_commit_diff(executor: GitExecutor | None, commit_hash: str) -> tuple[list[DiffFile], Exception | None]:
    if executor is None:
        return [], None
    try:
        output = executor.get_commit_diff(commit_hash)
    except _TASK_ERRORS as e:
        return [], e
    try:
        return parse_diff(output), None
    except DiffParseError as e:
        log_parse_error(f"commit {commit_hash[:8]}", e)
        return [], e


def load_commit_files(executor: GitExecutor | None, commit_hash: str) -> CommitFilesLoaded:
    files, error = _load_commit_diff(executor, commit_hash)
    return CommitFilesLoaded(commit_hash, files, error)


def load_commit_preview(executor: GitExecutor | None, commit_hash: str) -> CommitPreviewLoaded:
    files, error = _load_commit_diff(executor, commit_hash)
    return CommitPreviewLoaded(commit_hash, files, error)


def load_branches(executor: GitExecutor | None) -> BranchesLoaded:
    if executor is None:
        return BranchesLoaded(error=GitError("no git executor"))
    try:
        return BranchesLoaded(branches=executor.list_branches())
    except _TASK_ERRORS as e:
        return BranchesLoaded(error=e)


def load_worktrees(executor: GitExecutor | None) -> WorktreesLoaded:
    if executor is None:
        return WorktreesLoaded(error=GitError("no git executor"))
    try:
        return WorktreesLoaded(worktrees=executor.list_worktrees())
    except _TASK_ERRORS as e:
        return WorktreesLoaded(error=e)


def load_commits_for_branch(executor: GitExecutor | None, branch: str, limit: int) -> CommitsForBranchLoaded:
    if executor is None:
        return CommitsForBranchLoaded(branch, error=GitError("no git executor"))
    try:
        return CommitsForBranchLoaded(branch, executor.get_commit_log_for_ref(branch, limit))
    except _TASK_ERRORS as e:
        return CommitsForBranchLoaded(branch, error=e)


def copy_text(clipboard: Callable[[str], None] | None, text: str) -> HunkCopied:
    if clipboard is None:
        return HunkCopied(error=RuntimeError("clipboard not available"))
    try:
        clipboard(text)
    except (OSError, RuntimeError) as e:
        return HunkCopied(error=e)
    return HunkCopied(line_count=text.count("\n"))


def ensure_item_visible(selected: int, scroll_top: int, visible_height: int) -> int:
    """Scroll top that keeps ``selected`` inside a window of ``visible_height`` rows."""
    if visible_height < 1:
        return scroll_top
    if selected >= scroll_top + visible_height:
        scroll_top = selected - visible_height + 1
    if selected < scroll_top:
        scroll_top = selected
    return scroll_top


@dataclass
class _DiffContent:
    """What the diff pane shows right now."""

    kind: str
    identity: tuple
    files: list[DiffFile] = field(default_factory=list)
    file: DiffFile | None = None
    commit: CommitInfo | None = None
    message: str = ""
    error: DiffError | None = None

    @property
    def is_diff(self) -> bool:
        return self.kind in ("file", "dir", "preview")


class DiffViewerModel:
    """State of the diff viewer plus its update and render entry points.

    Args:
        executor: Git collaborator; may be None, in which case loads yield nothing
        executor_factory: Builds an executor for a worktree path, enabling
            worktree switching
        work_dir: Repository the viewer was opened on
        clipboard: Callable that places text on the clipboard
        clock: Returns "now" for relative commit dates
    """

    def __init__(
        self,
        executor: GitExecutor | None = None,
        *,
        executor_factory: Callable[[str], GitExecutor] | None = None,
        work_dir: str = "",
        clipboard: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.executor = executor
        self.executor_factory = executor_factory
        self.original_work_dir = work_dir
        self.current_worktree_path = ""
        if executor_factory is not None and work_dir:
            if self.executor is None:
                self.executor = executor_factory(work_dir)
            self.current_worktree_path = work_dir
        self.current_worktree_branch = ""
        self.viewing_branch = ""
        self.requested_branch = ""
        self.clipboard = clipboard
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.visible = False
        self.width = 0
        self.height = 0
        self.view_mode = ViewMode.UNIFIED
        self.preferred_view_mode = ViewMode.UNIFIED

        self.focus = FocusPane.FILE_LIST
        self.last_left_focus = FocusPane.FILE_LIST
        self.commit_mode = CommitPaneMode.LIST
        self.active_tab = CommitTab.COMMITS

        self.working_dir_files: list[DiffFile] = []
        self.working_dir_tree: FileTree | None = None
        self.selected_working_dir_node = 0
        self.working_dir_scroll_top = 0
        self.working_dir_loading = False

        self.commits: list[CommitInfo] = []
        self.selected_commit = 0
        self.commit_scroll_top = 0
        self.current_branch = ""
        self.commit_files: list[DiffFile] = []
        self.commit_files_tree: FileTree | None = None
        self.selected_commit_file_node = 0
        self.commit_files_scroll_top = 0
        self.inspected_commit: CommitInfo | None = None

        self.preview_commit_files: list[DiffFile] = []
        self.preview_commit_hash = ""
        self.preview_loading = False
        self.preview_error: DiffError | None = None

        self.branches = []
        self.selected_branch = 0
        self.branch_scroll_top = 0
        self.branches_loaded = False
        self.worktrees = []
        self.selected_worktree = 0
        self.worktree_scroll_top = 0
        self.worktrees_loaded = False

        self.error: DiffError | None = None
        self.raw_output = ""
        self.show_raw = False

        self.scroll_positions = ScrollPositionCache()
        self.word_diffs = {
            _SOURCE_WORKING: WordDiffCache(),
            _SOURCE_COMMIT: WordDiffCache(),
            _SOURCE_PREVIEW: WordDiffCache(),
        }
        self.viewport: Viewport = StaticViewport()
        self.virtual_content: VirtualContent | None = None
        self.use_virtual_scrolling = False
        self.show_scrollbar = False
        self._hunk_spans: list[HunkSpan] = []
        self._content_identity: tuple | None = None
        self._geometry: tuple | None = None
        self._active_file_key = ""
        self._generations = dict.fromkeys(self.word_diffs, 0)

    # Layout

    @property
    def file_list_width(self) -> int:
        calculated = int(self.width * FILE_LIST_RATIO)
        return max(min(calculated, FILE_LIST_MAX_WIDTH), min(FILE_LIST_MIN_WIDTH, self.width))

    @property
    def file_list_height(self) -> int:
        """Outer height of the file list box; the commit pane takes the rest."""
        return self.height // 2

    @property
    def file_list_rows(self) -> int:
        return max(self.file_list_height - BORDER_SIZE, 1)

    @property
    def commit_pane_rows(self) -> int:
        """List rows of the commit pane, below its tab bar."""
        return max(self.height - self.file_list_height - BORDER_SIZE - TAB_BAR_HEIGHT, 1)

    @property
    def left_inner_width(self) -> int:
        return max(self.file_list_width - BORDER_SIZE, 1)

    @property
    def diff_width(self) -> int:
        """Columns inside the diff pane border, scrollbar included."""
        return max(self.width - self.file_list_width - BORDER_SIZE, 1)

    @property
    def diff_height(self) -> int:
        return max(self.height - HEADER_HEIGHT - BORDER_SIZE, 1)

    @property
    def content_width(self) -> int:
        """Columns left for diff rows once the scrollbar column is taken."""
        return self.diff_width - 1 if self.show_scrollbar else self.diff_width

    # Lifecycle

    def show(self) -> None:
        """Reset to a fresh, visible viewer."""
        self.visible = True
        self.error = None
        self.raw_output = ""
        self.show_raw = False

        self.working_dir_files = []
        self.working_dir_tree = None
        self.selected_working_dir_node = 0
        self.working_dir_scroll_top = 0
        self.working_dir_loading = False

        self.commits = []
        self.selected_commit = 0
        self.commit_scroll_top = 0
        self.current_branch = ""
        self.viewing_branch = ""
        self.requested_branch = ""
        self.last_left_focus = FocusPane.FILE_LIST
        self.commit_mode = CommitPaneMode.LIST
        self.commit_files = []
        self.commit_files_tree = None
        self.selected_commit_file_node = 0
        self.commit_files_scroll_top = 0
        self.inspected_commit = None

        self.preview_commit_files = []
        self.preview_commit_hash = ""
        self.preview_loading = False
        self.preview_error = None

        self.branches_loaded = False
        self.worktrees_loaded = False

        self.scroll_positions.clear()
        for cache in self.word_diffs.values():
            cache.clear()
        self._active_file_key = ""
        self._content_identity = None
        for source in self._generations:
            self._generations[source] += 1
        self.refresh_viewport()

    def show_and_load(self) -> list[Task]:
        """Show the viewer and load everything it displays."""
        self.show()
        self.working_dir_loading = True
        self.refresh_viewport()
        executor = self.executor
        limit = config.commit_history_limit
        log.debug(f"[MODEL] Loading viewer data from {self.current_worktree_path or self.original_work_dir or '.'}")
        return [
            Task("working_dir_diff", lambda: load_working_dir_diff(executor)),
            Task("commits", lambda: load_commits(executor, limit)),
            Task("branches", lambda: load_branches(executor)),
            Task("worktrees", lambda: load_worktrees(executor)),
        ]

    def hide(self) -> None:
        self.visible = False

    def set_size(self, width: int, height: int) -> None:
        """Record the main area size, constraining side-by-side on narrow terminals."""
        self.width = width
        self.height = height

        if width < config.min_side_by_side_width and self.view_mode is ViewMode.SIDE_BY_SIDE:
            self.view_mode = ViewMode.UNIFIED
        elif width >= config.min_side_by_side_width and self.preferred_view_mode is ViewMode.SIDE_BY_SIDE:
            self.view_mode = ViewMode.SIDE_BY_SIDE

        self.working_dir_scroll_top = ensure_item_visible(
            self.selected_working_dir_node, self.working_dir_scroll_top, self.file_list_rows
        )
        self.refresh_viewport()

    # Update

    def update(self, msg: Message) -> list[Task]:
        """Apply one message and return the tasks it dispatches."""
        if isinstance(msg, Resize):
            self.set_size(msg.width, msg.height)
            return []
        if not self.visible:
            return []

        handler = self._handlers.get(type(msg))
        if handler is None:
            return []
        return handler(self, msg) or []

    def _on_key(self, msg: KeyCommand) -> list[Task]:
        return self.execute(msg.command)

    def _on_working_dir_loaded(self, msg: WorkingDirDiffLoaded) -> list[Task]:
        self.working_dir_loading = False
        if msg.error is not None:
            self._set_error(msg.error, "working directory diff", raw=msg.raw)
        else:
            self.error = None
            self.raw_output = ""
            self.show_raw = False
            self.working_dir_files = msg.files
            self.working_dir_tree = FileTree(msg.files)
            self.selected_working_dir_node = 0
            self.working_dir_scroll_top = 0
            self.word_diffs[_SOURCE_WORKING].clear()
            self._generations[_SOURCE_WORKING] += 1
            log.debug(f"[MODEL] Working directory: {len(msg.files)} file(s)")
        self.refresh_viewport()
        return []

    def _on_commit_files_loaded(self, msg: CommitFilesLoaded) -> list[Task]:
        if self.inspected_commit is None or msg.hash != self.inspected_commit.hash:
            log.debug(f"[MODEL] Discarding stale commit files for {msg.hash[:8]}")
            return []
        if msg.error is not None:
            self._set_error(msg.error, f"commit {msg.hash[:8]} files")
            self.refresh_viewport()
            return []

        self.commit_files = msg.files
        self.commit_files_tree = FileTree(msg.files)
        self.selected_commit_file_node = 0
        self.commit_files_scroll_top = 0
        self.word_diffs[_SOURCE_COMMIT].clear()
        self._generations[_SOURCE_COMMIT] += 1
        # Switch only once the files are here so the pane never shows an empty list
        self.commit_mode = CommitPaneMode.FILES
        self.refresh_viewport()
        return []

    def _on_commits_loaded(self, msg: CommitsLoaded) -> list[Task]:
        if msg.error is not None:
            self._set_error(msg.error, "commit log")
            self.refresh_viewport()
            return []
        self.commits = msg.commits
        self.current_branch = msg.branch
        return self._commits_replaced()

    def _on_commits_for_branch_loaded(self, msg: CommitsForBranchLoaded) -> list[Task]:
        if msg.branch != self.requested_branch:
            log.debug(f"[MODEL] Discarding stale commits for branch {msg.branch}")
            return []
        if msg.error is not None:
            self._set_error(msg.error, f"commits of {msg.branch}")
            self.refresh_viewport()
            return []
        self.commits = msg.commits
        self.viewing_branch = msg.branch
        return self._commits_replaced()

    def _commits_replaced(self) -> list[Task]:
        self.selected_commit = 0
        self.commit_scroll_top = 0
        if self.commits:
            return self._request_preview(self.commits[0].hash)
        self.refresh_viewport()
        return []

    def _on_preview_loaded(self, msg: CommitPreviewLoaded) -> list[Task]:
        if msg.hash != self.preview_commit_hash:
            log.debug(f"[MODEL] Discarding stale preview for {msg.hash[:8]}")
            return []
        self.preview_loading = False
        if msg.error is not None:
            self.preview_commit_files = []
            self.preview_error = classify_error(msg.error)
            log_error_with_context(
                f"[MODEL] Failed loading commit {msg.hash[:8]} preview",
                msg.error,
                {"category": self.preview_error.category.name},
            )
        else:
            self.preview_commit_files = msg.files
            self.preview_error = None
            self.word_diffs[_SOURCE_PREVIEW].clear()
            self._generations[_SOURCE_PREVIEW] += 1
        self.refresh_viewport()
        return []

    def _on_branches_loaded(self, msg: BranchesLoaded) -> list[Task]:
        if msg.error is not None:
            log_error_with_context("[MODEL] Branch listing failed", msg.error)
            return []
        self.branches = msg.branches
        self.selected_branch = min(self.selected_branch, max(len(self.branches) - 1, 0))
        self.branches_loaded = True
        return []

    def _on_worktrees_loaded(self, msg: WorktreesLoaded) -> list[Task]:
        if msg.error is not None:
            log_error_with_context("[MODEL] Worktree listing failed", msg.error)
            return []
        self.worktrees = msg.worktrees
        self.selected_worktree = min(self.selected_worktree, max(len(self.worktrees) - 1, 0))
        self.worktrees_loaded = True
        return []

    def _on_hunk_copied(self, msg: HunkCopied) -> list[Task]:
        if msg.error is not None:
            log.debug(f"[MODEL] Copy failed: {msg.error}")
        return []

    _handlers = {
        KeyCommand: _on_key,
        WorkingDirDiffLoaded: _on_working_dir_loaded,
        CommitFilesLoaded: _on_commit_files_loaded,
        CommitsLoaded: _on_commits_loaded,
        CommitsForBranchLoaded: _on_commits_for_branch_loaded,
        CommitPreviewLoaded: _on_preview_loaded,
        BranchesLoaded: _on_branches_loaded,
        WorktreesLoaded: _on_worktrees_loaded,
        HunkCopied: _on_hunk_copied,
    }

    def _set_error(self, exc: Exception, source: str, raw: str = "") -> None:
        self.error = classify_error(exc)
        self.raw_output = raw
        self.show_raw = False
        log_error_with_context(f"[MODEL] Failed loading {source}", exc, {"category": self.error.category.name})

    # Commands

    def execute(self, command: Command) -> list[Task]:
        """Run one navigation or action command."""
        method = getattr(self, f"_cmd_{command.value}", None)
        if method is None:
            return []
        return method() or []

    def _set_focus(self, pane: FocusPane) -> None:
        if pane is not FocusPane.DIFF_PANE:
            self.last_left_focus = pane
        elif self.focus is not FocusPane.DIFF_PANE:
            self.last_left_focus = self.focus
        self.focus = pane

    def _enter_commit_picker(self) -> list[Task]:
        self._set_focus(FocusPane.COMMIT_PICKER)
        tasks = self._preview_if_stale()
        if not tasks:
            self.refresh_viewport()
        return tasks

    def _cmd_focus_file_list(self) -> list[Task]:
        self._set_focus(FocusPane.FILE_LIST)
        self.refresh_viewport()
        return []

    def _cmd_focus_commits(self) -> list[Task]:
        return self._enter_commit_picker()

    def _cmd_focus_diff(self) -> list[Task]:
        self._set_focus(FocusPane.DIFF_PANE)
        self.refresh_viewport()
        return []

    def _cmd_cycle_panes(self) -> list[Task]:
        if self.focus is FocusPane.FILE_LIST:
            return self._enter_commit_picker()
        if self.focus is FocusPane.COMMIT_PICKER:
            return self._cmd_focus_diff()
        return self._cmd_focus_file_list()

    def _cmd_focus_left(self) -> list[Task]:
        if self.focus is FocusPane.COMMIT_PICKER:
            return self._cmd_focus_file_list()
        if self.focus is FocusPane.DIFF_PANE:
            if self.last_left_focus is FocusPane.COMMIT_PICKER:
                return self._enter_commit_picker()
            return self._cmd_focus_file_list()
        return []

    def _cmd_focus_right(self) -> list[Task]:
        if self.focus is FocusPane.FILE_LIST:
            return self._enter_commit_picker()
        return []

    def _cmd_next_item(self) -> list[Task]:
        return self._move_selection(1)

    def _cmd_prev_item(self) -> list[Task]:
        return self._move_selection(-1)

    def _cmd_scroll_up(self) -> list[Task]:
        self.viewport.half_page_up()
        return []

    def _cmd_scroll_down(self) -> list[Task]:
        self.viewport.half_page_down()
        return []

    def _cmd_goto_top(self) -> list[Task]:
        if self.focus is FocusPane.DIFF_PANE:
            self.viewport.goto_top()
        return []

    def _cmd_goto_bottom(self) -> list[Task]:
        if self.focus is FocusPane.DIFF_PANE:
            self.viewport.goto_bottom()
        return []

    def _cmd_select(self) -> list[Task]:
        if self.focus is FocusPane.FILE_LIST:
            node = self._selected_node(self.working_dir_tree, self.selected_working_dir_node)
            if node is None:
                return []
            if node.is_dir:
                self.working_dir_tree.toggle(node)
                self.selected_working_dir_node = clamp_index(self.selected_working_dir_node, self.working_dir_tree)
                self.refresh_viewport()
            else:
                self._set_focus(FocusPane.DIFF_PANE)
                self.refresh_viewport()
            return []

        if self.focus is not FocusPane.COMMIT_PICKER:
            return []

        if self.active_tab is CommitTab.BRANCHES:
            if self.selected_branch < len(self.branches):
                return self._select_branch(self.branches[self.selected_branch].name)
            return []
        if self.active_tab is CommitTab.WORKTREES:
            if self.selected_worktree < len(self.worktrees):
                return self._select_worktree(self.worktrees[self.selected_worktree].path)
            return []

        if self.commit_mode is CommitPaneMode.LIST:
            return self._drill_into_commit()

        node = self._selected_node(self.commit_files_tree, self.selected_commit_file_node)
        if node is None:
            return []
        if node.is_dir:
            self.commit_files_tree.toggle(node)
            self.selected_commit_file_node = clamp_index(self.selected_commit_file_node, self.commit_files_tree)
        else:
            self._set_focus(FocusPane.DIFF_PANE)
        self.refresh_viewport()
        return []

    def _cmd_go_back(self) -> list[Task]:
        if self.focus is FocusPane.COMMIT_PICKER and self.commit_mode is CommitPaneMode.FILES:
            self.commit_mode = CommitPaneMode.LIST
            self.commit_files = []
            self.commit_files_tree = None
            self.inspected_commit = None
            self.refresh_viewport()
            return []
        return self._cmd_close()

    def _cmd_close(self) -> list[Task]:
        self.visible = False
        return [Task("close", ViewerClosed)]

    def _cmd_toggle_view_mode(self) -> list[Task]:
        return self.toggle_view_mode()

    def _cmd_next_bracket(self) -> list[Task]:
        if self._tabs_active():
            self.active_tab = self.active_tab.next()
            return self._ensure_tab_data_loaded()
        return self.next_hunk()

    def _cmd_prev_bracket(self) -> list[Task]:
        if self._tabs_active():
            self.active_tab = self.active_tab.prev()
            return self._ensure_tab_data_loaded()
        return self.prev_hunk()

    def _cmd_next_hunk(self) -> list[Task]:
        return self.next_hunk()

    def _cmd_prev_hunk(self) -> list[Task]:
        return self.prev_hunk()

    def _cmd_copy_hunk(self) -> list[Task]:
        return self.copy_current_hunk()

    def _cmd_view_raw(self) -> list[Task]:
        if self.error is not None and self.error.category is ErrorCategory.PARSE and self.raw_output:
            self.show_raw = not self.show_raw
            self.refresh_viewport()
        return []

    def _cmd_reload(self) -> list[Task]:
        return self.show_and_load()

    def _tabs_active(self) -> bool:
        return self.focus is FocusPane.COMMIT_PICKER and self.commit_mode is CommitPaneMode.LIST

    def _ensure_tab_data_loaded(self) -> list[Task]:
        executor = self.executor
        if self.active_tab is CommitTab.BRANCHES and not self.branches_loaded:
            return [Task("branches", lambda: load_branches(executor))]
        if self.active_tab is CommitTab.WORKTREES and not self.worktrees_loaded:
            return [Task("worktrees", lambda: load_worktrees(executor))]
        return []

    def _move_selection(self, delta: int) -> list[Task]:
        if self.focus is FocusPane.FILE_LIST:
            self.selected_working_dir_node, self.working_dir_scroll_top = self._move_in_tree(
                self.working_dir_tree, self.selected_working_dir_node, self.working_dir_scroll_top, delta
            )
            self.refresh_viewport()
            return []

        if self.focus is FocusPane.DIFF_PANE:
            if delta > 0:
                self.viewport.scroll_down(delta)
            else:
                self.viewport.scroll_up(-delta)
            return []

        rows = self.commit_pane_rows
        if self.active_tab is CommitTab.BRANCHES:
            self.selected_branch = _step(self.selected_branch, delta, len(self.branches))
            self.branch_scroll_top = ensure_item_visible(self.selected_branch, self.branch_scroll_top, rows)
            return []
        if self.active_tab is CommitTab.WORKTREES:
            self.selected_worktree = _step(self.selected_worktree, delta, len(self.worktrees))
            self.worktree_scroll_top = ensure_item_visible(self.selected_worktree, self.worktree_scroll_top, rows)
            return []

        if self.commit_mode is CommitPaneMode.FILES:
            self.selected_commit_file_node, self.commit_files_scroll_top = self._move_in_tree(
                self.commit_files_tree, self.selected_commit_file_node, self.commit_files_scroll_top, delta
            )
            self.refresh_viewport()
            return []

        if not self.commits:
            return []
        new_index = _step(self.selected_commit, delta, len(self.commits))
        if new_index == self.selected_commit:
            return []
        self.selected_commit = new_index
        self.commit_scroll_top = ensure_item_visible(new_index, self.commit_scroll_top, rows)
        return self._request_preview(self.commits[new_index].hash)

    def _move_in_tree(self, tree: FileTree | None, selected: int, scroll_top: int, delta: int) -> tuple[int, int]:
        if tree is None:
            return selected, scroll_top
        selected = _step(selected, delta, len(tree.visible_nodes()))
        rows = self.file_list_rows if tree is self.working_dir_tree else self.commit_pane_rows
        return selected, ensure_item_visible(selected, scroll_top, rows)

    def _request_preview(self, commit_hash: str) -> list[Task]:
        self.preview_commit_hash = commit_hash
        self.preview_loading = True
        self.preview_error = None
        self.refresh_viewport()
        executor = self.executor
        return [Task("commit_preview", lambda: load_commit_preview(executor, commit_hash))]

    def _preview_if_stale(self) -> list[Task]:
        if not self.commits or self.commit_mode is not CommitPaneMode.LIST:
            return []
        commit_hash = self.commits[self.selected_commit].hash
        if self.preview_commit_hash == commit_hash:
            return []
        return self._request_preview(commit_hash)

    def _drill_into_commit(self) -> list[Task]:
        if self.selected_commit >= len(self.commits):
            return []
        commit = self.commits[self.selected_commit]
        self.inspected_commit = commit
        self.commit_files = []
        self.commit_files_tree = None
        self.selected_commit_file_node = 0
        self.commit_files_scroll_top = 0
        executor = self.executor
        return [Task("commit_files", lambda: load_commit_files(executor, commit.hash))]

    def _select_branch(self, branch: str) -> list[Task]:
        self.requested_branch = branch
        self.active_tab = CommitTab.COMMITS
        executor = self.executor
        limit = config.commit_history_limit
        return [Task("branch_commits", lambda: load_commits_for_branch(executor, branch, limit))]

    def _select_worktree(self, path: str) -> list[Task]:
        if not os.path.isdir(path):
            self.error = DiffError(ErrorCategory.GIT_OP, f"worktree no longer exists: {os.path.basename(path)}")
            self.refresh_viewport()
            return []
        self.active_tab = CommitTab.COMMITS
        if self.executor_factory is None:
            log.debug("[MODEL] Worktree switching needs an executor factory")
            return []

        worktree = next((w for w in self.worktrees if w.path == path), None)
        if worktree is None:
            self.error = DiffError(ErrorCategory.GIT_OP, f"worktree not found: {os.path.basename(path)}")
            self.refresh_viewport()
            return []

        self.executor = self.executor_factory(path)
        self.current_worktree_path = worktree.path
        self.current_worktree_branch = worktree.branch
        log.info(f"[MODEL] Switched to worktree {worktree.path}")
        return self.show_and_load()

    # View mode

    def toggle_view_mode(self) -> list[Task]:
        """Flip the preferred layout; too-narrow terminals keep unified and report why."""
        target = ViewMode.SIDE_BY_SIDE if self.preferred_view_mode is ViewMode.UNIFIED else ViewMode.UNIFIED
        self.preferred_view_mode = target

        if target is ViewMode.SIDE_BY_SIDE and self.width < config.min_side_by_side_width:
            width = self.width
            min_width = config.min_side_by_side_width
            return [Task("view_mode_constrained", lambda: ViewModeConstrained(target, min_width, width))]

        self.view_mode = target
        self.refresh_viewport()
        return []

    # Hunks

    @property
    def hunk_positions(self) -> list[int]:
        return [span.start for span in self._hunk_spans]

    def next_hunk(self) -> list[Task]:
        position = next_hunk_position(self.hunk_positions, self.viewport.y_offset)
        if position is not None:
            self.viewport.set_y_offset(position)
        return []

    def prev_hunk(self) -> list[Task]:
        position = prev_hunk_position(self.hunk_positions, self.viewport.y_offset)
        if position is not None:
            self.viewport.set_y_offset(position)
        return []

    def current_hunk(self) -> DiffHunk | None:
        return hunk_at(self._hunk_spans, self.viewport.y_offset)

    def copy_current_hunk(self) -> list[Task]:
        hunk = self.current_hunk()
        if hunk is None:
            return [Task("copy_hunk", lambda: HunkCopied(error=LookupError("no hunk at current position")))]
        text = format_hunk_as_diff(hunk)
        if not text:
            return [Task("copy_hunk", lambda: HunkCopied(error=LookupError("hunk is empty")))]
        clipboard = self.clipboard
        return [Task("copy_hunk", lambda: copy_text(clipboard, text))]

    def hunk_indicator(self) -> str:
        return hunk_indicator(self.hunk_positions, self.viewport.y_offset)

    def scroll_diff(self, lines: int) -> None:
        """Scroll the diff pane; negative values scroll up."""
        if lines < 0:
            self.viewport.scroll_up(-lines)
        else:
            self.viewport.scroll_down(lines)

    # Selection helpers

    @staticmethod
    def _selected_node(tree: FileTree | None, index: int) -> FileTreeNode | None:
        if tree is None:
            return None
        nodes = tree.visible_nodes()
        if index >= len(nodes):
            return None
        return nodes[index]

    @property
    def is_commit_preview(self) -> bool:
        """The diff pane shows the whole highlighted commit."""
        if self.commit_mode is not CommitPaneMode.LIST:
            return False
        if self.focus is FocusPane.COMMIT_PICKER:
            return True
        return self.focus is FocusPane.DIFF_PANE and self.last_left_focus is FocusPane.COMMIT_PICKER

    def _showing_commit_files(self) -> bool:
        if self.commit_mode is not CommitPaneMode.FILES:
            return False
        if self.focus is FocusPane.COMMIT_PICKER:
            return True
        return self.focus is FocusPane.DIFF_PANE and self.last_left_focus is FocusPane.COMMIT_PICKER

    def active_node(self) -> FileTreeNode | None:
        """Tree node whose content the diff pane shows."""
        if self.is_commit_preview:
            return None
        if self._showing_commit_files():
            return self._selected_node(self.commit_files_tree, self.selected_commit_file_node)
        return self._selected_node(self.working_dir_tree, self.selected_working_dir_node)

    def active_file(self) -> DiffFile | None:
        node = self.active_node()
        if node is None or node.is_dir:
            return None
        return node.file

    def selected_commit_info(self) -> CommitInfo | None:
        if 0 <= self.selected_commit < len(self.commits):
            return self.commits[self.selected_commit]
        return None

    def _active_source(self) -> str:
        if self.is_commit_preview:
            return _SOURCE_PREVIEW
        if self._showing_commit_files():
            return _SOURCE_COMMIT
        return _SOURCE_WORKING

    def _word_diff_for(self, source: str) -> Callable[[DiffFile], FileWordDiff]:
        return self.word_diffs[source].get_or_compute

    # Diff pane content

    def _resolve_content(self) -> _DiffContent:
        if self.show_raw and self.raw_output:
            return _DiffContent("raw", ("raw", id(self.error)))
        if self.error is not None:
            return _DiffContent("error", ("error", id(self.error)), error=self.error)

        if self.is_commit_preview:
            commit = self.selected_commit_info()
            if commit is None:
                return _DiffContent("empty", ("empty",))
            if self.preview_loading or self.preview_commit_hash != commit.hash:
                return _DiffContent("loading", ("loading", commit.hash), message="Loading commit diff...")
            if self.preview_error is not None:
                return _DiffContent("error", ("error", id(self.preview_error)), error=self.preview_error)
            if not self.preview_commit_files:
                return _DiffContent("empty", ("empty",))
            identity = ("preview", commit.hash, self._generations[_SOURCE_PREVIEW])
            return _DiffContent("preview", identity, self.preview_commit_files, commit=commit)

        source = self._active_source()
        gen = self._generations[source]
        node = self.active_node()
        if node is not None and node.is_dir:
            files = node.collect_files()
            if not files:
                return _DiffContent("message", ("message", node.path), message="No files in directory")
            return _DiffContent("dir", ("dir", source, node.path, gen), files)

        file = self.active_file()
        if file is not None:
            return _DiffContent("file", ("file", source, file_key(file), gen), [file], file=file)
        if self.working_dir_loading and source == _SOURCE_WORKING:
            return _DiffContent("loading", ("loading", "working"), message="Loading diff...")
        return _DiffContent("empty", ("empty",))

    def refresh_viewport(self, force: bool = False) -> None:
        """Rebuild the diff pane for the current selection, focus and size.

        Single-file views restore the remembered offset when they are entered;
        other views start at the top. A layout change on the same content keeps
        the current offset, clamped to the new geometry.
        """
        if self.width <= 0 or self.height <= 0:
            return

        content = self._resolve_content()
        geometry = (self.view_mode, self.diff_width, self.diff_height)
        identity_changed = content.identity != self._content_identity
        if not identity_changed and geometry == self._geometry and not force:
            return

        previous_offset = self.viewport.y_offset
        if identity_changed and self._active_file_key:
            self.scroll_positions.save(self._active_file_key, previous_offset)

        height = self.diff_height
        if content.is_diff:
            self._build_diff_viewport(content, height)
        else:
            self._build_placeholder_viewport(content, height)

        if identity_changed:
            if content.kind == "file":
                offset = self.scroll_positions.restore(file_key(content.file), self.viewport.total_lines, height)
            else:
                offset = 0
        else:
            offset = previous_offset
        self.viewport.set_y_offset(offset)

        self._content_identity = content.identity
        self._geometry = geometry
        self._active_file_key = file_key(content.file) if content.kind == "file" else ""

    def _build_diff_viewport(self, content: _DiffContent, height: int) -> None:
        aggregate = content.kind != "file"
        prefix = renderer.COMMIT_HEADER_HEIGHT if content.kind == "preview" else 0

        rows = total_rows(content.files, renderer.effective_view_mode(self.view_mode, self.diff_width), aggregate, prefix)
        self.show_scrollbar = rows > height
        width = self.content_width
        mode = renderer.effective_view_mode(self.view_mode, width)
        word_diff_for = self._word_diff_for(self._active_source())

        threshold_lines = count_total_lines(content.files) + prefix
        if threshold_lines > config.virtual_threshold:
            prefix_lines = []
            if content.kind == "preview":
                prefix_lines = renderer.commit_header_lines(content.commit, width, self.clock())
            self.virtual_content = VirtualContent(
                content.files, aggregate=aggregate, prefix_lines=prefix_lines, word_diff_for=word_diff_for
            )
            self.virtual_content.set_view_mode(self.view_mode)
            self.viewport = VirtualViewport(self.virtual_content)
            self.use_virtual_scrolling = True
            log.debug(f"[MODEL] Virtual scrolling for {threshold_lines} lines")
        else:
            if content.kind == "file":
                text = renderer.render_file(content.file, word_diff_for(content.file), self.view_mode, width)
            elif content.kind == "dir":
                text = renderer.render_multi_file(content.files, word_diff_for, self.view_mode, width)
            else:
                text = renderer.render_full_commit(
                    content.commit, content.files, word_diff_for, self.view_mode, width, self.clock()
                )
            self.virtual_content = None
            self.viewport = StaticViewport(text)
            self.use_virtual_scrolling = False

        self.viewport.set_size(width, height)
        self._hunk_spans = hunk_spans(content.files, mode, aggregate, prefix)

    def _build_placeholder_viewport(self, content: _DiffContent, height: int) -> None:
        self.show_scrollbar = False
        width = self.diff_width
        if content.kind == "raw":
            text = renderer.render_raw_output(self.raw_output, width)
            self.show_scrollbar = len(text.plain.split("\n")) > height
            width = self.content_width
            text = renderer.render_raw_output(self.raw_output, width)
        elif content.kind == "error":
            text = renderer.render_error_state(content.error, width, height)
        elif content.kind == "loading":
            text = renderer.render_loading_state(width, height, content.message)
        elif content.kind == "message":
            text = renderer.render_placeholder(content.message, width, height)
        else:
            text = renderer.render_empty_state(width, height)

        self.virtual_content = None
        self.use_virtual_scrolling = False
        self.viewport = StaticViewport(text)
        self.viewport.set_size(width, height)
        self._hunk_spans = []

    # Render entry points

    def render_diff_pane(self) -> Text:
        """Exactly ``diff_height`` rows, with a scrollbar column when content overflows."""
        self.refresh_viewport()
        lines = self.viewport.visible_lines()
        height = self.diff_height
        if self.show_scrollbar:
            cfg = ScrollbarConfig(self.viewport.total_lines, height, self.viewport.y_offset)
            return join_with_scrollbar(lines, cfg, self.content_width)
        rows = [renderer.fit_line(line, self.diff_width) for line in lines]
        rows += [Text(" " * self.diff_width) for _ in range(height - len(rows))]
        return Text("\n").join(rows)

    def render_file_list(self) -> Text:
        nodes = self.working_dir_tree.visible_nodes() if self.working_dir_tree else []
        if not nodes and self.working_dir_loading:
            return renderer.render_placeholder("Loading...", self.left_inner_width, self.file_list_rows)
        return renderer.render_file_tree(
            nodes,
            self.selected_working_dir_node,
            self.working_dir_scroll_top,
            self.left_inner_width,
            self.file_list_rows,
            self.focus is FocusPane.FILE_LIST,
        )

    def render_commit_pane(self) -> Text:
        """Tab bar (or the inspected commit) followed by the active list."""
        width = self.left_inner_width
        rows = self.commit_pane_rows
        focused = self.focus is FocusPane.COMMIT_PICKER

        if self.commit_mode is CommitPaneMode.FILES and self.active_tab is CommitTab.COMMITS:
            commit = self.inspected_commit
            title = Text(f"{commit.short_hash} {commit.subject}" if commit else "", style=renderer.STYLE_MUTED)
            title.truncate(width, pad=True)
            nodes = self.commit_files_tree.visible_nodes() if self.commit_files_tree else []
            body = renderer.render_file_tree(
                nodes, self.selected_commit_file_node, self.commit_files_scroll_top, width, rows, focused
            )
            return Text("\n").join([title, body])

        bar = renderer.render_tab_bar(self.active_tab, width)
        if self.active_tab is CommitTab.BRANCHES:
            body = renderer.render_branch_list(
                self.branches, self.selected_branch, self.branch_scroll_top, width, rows, focused
            )
        elif self.active_tab is CommitTab.WORKTREES:
            body = renderer.render_worktree_list(
                self.worktrees, self.selected_worktree, self.worktree_scroll_top, width, rows, focused
            )
        else:
            body = renderer.render_commit_list(
                self.commits, self.selected_commit, self.commit_scroll_top, width, rows, focused
            )
        return Text("\n").join([bar, body])

    def header_title(self) -> str:
        """Git context: ``[worktree] branch``, a viewed branch, the branch, or HEAD."""
        if self.current_worktree_path and self.current_worktree_path != self.original_work_dir:
            branch = self.current_worktree_branch or self.current_branch or DETACHED_HEAD_BRANCH
            return f"[{os.path.basename(self.current_worktree_path)}] {branch}"
        if self.viewing_branch and self.viewing_branch != self.current_branch:
            return self.viewing_branch
        return self.current_branch or DETACHED_HEAD_BRANCH

    def breadcrumb(self) -> str:
        if self.is_commit_preview:
            commit = self.selected_commit_info()
            if commit is None:
                return "No commits"
            return f"{commit.short_hash} {commit.subject}"

        node = self.active_node()
        if node is None:
            return "Working Directory" if self.focus is FocusPane.FILE_LIST else ""
        return node.path + "/" if node.is_dir else node.path

    def header_stats(self) -> str:
        if self.is_commit_preview:
            additions = sum(f.additions for f in self.preview_commit_files)
            deletions = sum(f.deletions for f in self.preview_commit_files)
            return renderer.format_stats(additions, deletions)
        node = self.active_node()
        if node is None:
            return ""
        if node.is_dir:
            return renderer.format_stats(*node.total_stats())
        file = node.file
        return renderer.format_stats(file.additions, file.deletions, file.is_binary) if file else ""

    def render_header(self) -> Text:
        width = max(self.width - self.file_list_width, 1)
        return renderer.render_header_line(self.breadcrumb(), self.header_stats(), width)

    def scroll_indicator(self) -> str:
        """Empty at the top, ``end`` at the bottom, otherwise a percentage."""
        if self.viewport.at_top():
            return ""
        if self.viewport.at_bottom():
            return "end"
        return f"{int(self.viewport.scroll_percent() * 100)}%"


def _step(index: int, delta: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index + delta, count - 1))
