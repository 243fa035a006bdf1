"""Tests for the diff viewer state machine."""

import pytest

from conftest import NOW, FakeGitExecutor, make_commit, make_file, run_tasks
from diffdeck.engine.errors import DiffParseError, ErrorCategory
from diffdeck.engine.messages import (
    Command,
    HunkCopied,
    KeyCommand,
    Resize,
    ViewerClosed,
    ViewModeConstrained,
    WorkingDirDiffLoaded,
)
from diffdeck.engine.model import DiffViewerModel, ensure_item_visible, load_working_dir_diff, untracked_file
from diffdeck.engine.models import CommitPaneMode, CommitTab, FocusPane, LineType, ViewMode
from diffdeck.git.executor import DetachedHeadError, GitError, GitTimeoutError, WorktreeInfo


def _model(executor, width=120, height=40, **kwargs) -> DiffViewerModel:
    model = DiffViewerModel(executor, clock=lambda: NOW, **kwargs)
    model.set_size(width, height)
    run_tasks(model, model.show_and_load())
    return model


def _press(model, *commands) -> list:
    """Send commands in order, returning the tasks of the last one."""
    tasks = []
    for command in commands:
        tasks = model.update(KeyCommand(command))
    return tasks


def _press_and_run(model, *commands) -> list:
    messages = []
    for command in commands:
        messages.extend(run_tasks(model, model.update(KeyCommand(command))))
    return messages


class TestLoading:
    """Initial load and the tasks behind it."""

    def test_show_and_load_populates_panes(self, sample_executor):
        model = _model(sample_executor)

        assert [f.display_path for f in model.working_dir_files] == ["src/app.py", "README.md", "logo.png"]
        assert len(model.commits) == 2
        assert model.current_branch == "main"
        assert model.branches_loaded and model.worktrees_loaded
        assert model.preview_commit_hash == model.commits[0].hash
        assert not model.preview_loading
        assert [f.display_path for f in model.preview_commit_files] == ["lib/util.py"]

    def test_initial_selection_is_first_tree_node(self, sample_executor):
        model = _model(sample_executor)
        assert model.focus is FocusPane.FILE_LIST
        assert model.breadcrumb() == "src/"
        assert model.header_stats() == "+2 -1"
        assert model.header_title() == "main"

    def test_diff_pane_shows_directory(self, sample_executor):
        model = _model(sample_executor)
        rows = model.render_diff_pane().plain.split("\n")

        assert len(rows) == model.diff_height
        assert rows[0].startswith("src/app.py")
        assert all(len(row) == model.diff_width for row in rows)

    def test_messages_ignored_while_hidden(self):
        model = DiffViewerModel(FakeGitExecutor())
        model.set_size(120, 40)
        assert model.update(WorkingDirDiffLoaded(files=[make_file("a.py", 1)])) == []
        assert model.working_dir_files == []

    def test_detached_head_shown_as_head(self):
        executor = FakeGitExecutor(
            commits=[make_commit(1)], errors={"get_current_branch": DetachedHeadError("detached HEAD state")}
        )
        model = _model(executor)
        assert model.current_branch == "HEAD"
        assert model.header_title() == "HEAD"
        assert model.error is None

    def test_commit_log_failure_sets_error(self):
        executor = FakeGitExecutor(errors={"get_commit_log": GitTimeoutError("git log timed out")})
        model = _model(executor)
        assert model.error.category is ErrorCategory.TIMEOUT
        assert "Timeout Error" in model.render_diff_pane().plain

    def test_branch_listing_failure_is_not_fatal(self, sample_executor):
        sample_executor.errors["list_branches"] = GitError("failed to list branches")
        model = _model(sample_executor)
        assert not model.branches_loaded
        assert model.error is None

    def test_untracked_listing_failure_keeps_tracked_files(self, sample_executor):
        sample_executor.errors["get_untracked_files"] = GitError("ls-files failed")
        msg = load_working_dir_diff(sample_executor)
        assert msg.error is None
        assert len(msg.files) == 3

    def test_without_executor(self):
        model = _model(None)
        assert model.working_dir_files == []
        assert model.commits == []
        assert not model.branches_loaded
        assert "No changes to display" in model.render_diff_pane().plain


class TestUntrackedFiles:
    """Untracked paths become all-addition files."""

    def test_synthesised_hunk(self):
        executor = FakeGitExecutor(untracked=["notes.txt", "gone.bin"], contents={"notes.txt": "one\ntwo\n"})
        files = load_working_dir_diff(executor).files

        notes, gone = files
        assert notes.is_untracked and notes.is_new
        assert notes.additions == 2
        hunk = notes.hunks[0]
        assert hunk.header == "@@ -0,0 +1,2 @@ (new file)"
        assert hunk.lines[0].type is LineType.HUNK_HEADER
        assert hunk.lines[0].content == "(new file)"
        assert [(line.new_line_num, line.content) for line in hunk.lines[1:]] == [(1, "one"), (2, "two")]

        assert gone.is_untracked
        assert gone.hunks == []

    def test_empty_content(self):
        file = untracked_file("empty.txt", "")
        assert file.hunks == []
        assert file.additions == 0


class TestFocus:
    """Pane focus cycling and directional moves."""

    def test_cycle(self, sample_executor):
        model = _model(sample_executor)

        _press(model, Command.CYCLE_PANES)
        assert model.focus is FocusPane.COMMIT_PICKER
        _press(model, Command.CYCLE_PANES)
        assert model.focus is FocusPane.DIFF_PANE
        assert model.is_commit_preview
        _press(model, Command.CYCLE_PANES)
        assert model.focus is FocusPane.FILE_LIST

    def test_focus_left_returns_to_last_left_pane(self, sample_executor):
        model = _model(sample_executor)

        _press(model, Command.FOCUS_RIGHT, Command.FOCUS_DIFF)
        assert model.last_left_focus is FocusPane.COMMIT_PICKER
        _press(model, Command.FOCUS_LEFT)
        assert model.focus is FocusPane.COMMIT_PICKER
        _press(model, Command.FOCUS_LEFT)
        assert model.focus is FocusPane.FILE_LIST
        _press(model, Command.FOCUS_LEFT)
        assert model.focus is FocusPane.FILE_LIST

    def test_diff_focus_from_file_list_keeps_working_content(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_DIFF)
        assert not model.is_commit_preview
        assert model.breadcrumb() == "src/"


class TestFileList:
    """Tree navigation in the working directory list."""

    def test_collapse_and_clamp(self, sample_executor):
        model = _model(sample_executor)

        _press(model, Command.SELECT)
        assert len(model.working_dir_tree) == 3
        _press(model, *[Command.NEXT_ITEM] * 5)
        assert model.selected_working_dir_node == 2
        assert model.breadcrumb() == "README.md"

    def test_select_file_focuses_diff(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.NEXT_ITEM, Command.SELECT)
        assert model.focus is FocusPane.DIFF_PANE
        assert model.active_file().display_path == "src/app.py"

    def test_word_diffs_cached_per_source(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.NEXT_ITEM)
        assert "src/app.py" in model.word_diffs["working"]
        assert "src/app.py" not in model.word_diffs["preview"]

    def test_selection_scrolls_list(self, sample_executor):
        model = _model(sample_executor, height=8)
        assert model.file_list_rows == 2
        _press(model, Command.NEXT_ITEM, Command.NEXT_ITEM, Command.NEXT_ITEM)
        assert model.working_dir_scroll_top == 2


class TestCommitPreview:
    """Highlighting a commit previews it; stale previews are dropped."""

    def test_stale_preview_discarded(self, sample_executor):
        model = _model(sample_executor)
        assert _press(model, Command.FOCUS_COMMITS) == []

        older = _press(model, Command.NEXT_ITEM)
        newer = _press(model, Command.PREV_ITEM)
        assert len(older) == 1 and len(newer) == 1

        assert model.update(older[0]()) == []
        assert model.preview_loading
        assert len(model.preview_commit_files) == 1
        assert "Loading commit diff..." in model.render_diff_pane().plain

        model.update(newer[0]())
        assert not model.preview_loading
        assert model.preview_commit_hash == model.commits[0].hash

    def test_preview_content(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)
        commit = model.commits[0]

        assert model.breadcrumb() == f"{commit.short_hash} {commit.subject}"
        assert model.header_stats() == "+1 -1"
        rows = model.render_diff_pane().plain.split("\n")
        assert rows[0].startswith(f"commit {commit.hash}"[: model.content_width])
        assert rows[6].startswith("lib/util.py")

    def test_no_preview_request_when_current(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)
        assert _press(model, Command.FOCUS_DIFF, Command.FOCUS_LEFT) == []

    def test_preview_error_stays_in_preview(self, sample_executor):
        model = _model(sample_executor)
        sample_executor.errors["get_commit_diff"] = GitError("transient failure")
        _press_and_run(model, Command.FOCUS_COMMITS, Command.NEXT_ITEM)
        assert model.error is None
        assert model.preview_error is not None
        assert model.preview_commit_files == []
        assert "transient failure" in model.render_diff_pane().plain

        del sample_executor.errors["get_commit_diff"]
        _press_and_run(model, Command.PREV_ITEM)
        assert model.preview_error is None
        assert [f.display_path for f in model.preview_commit_files] == ["lib/util.py"]

        _press(model, Command.FOCUS_FILE_LIST)
        text = model.render_diff_pane().plain
        assert "transient failure" not in text
        assert "Git Operation Error" not in text
        assert model.breadcrumb() == "src/"

    def test_preview_error_does_not_hide_working_files(self, sample_executor):
        model = _model(sample_executor)
        sample_executor.errors["get_commit_diff"] = GitError("transient failure")
        _press_and_run(model, Command.FOCUS_COMMITS, Command.NEXT_ITEM)
        _press(model, Command.FOCUS_FILE_LIST, Command.NEXT_ITEM)
        assert model.breadcrumb() == "src/app.py"
        assert "transient failure" not in model.render_diff_pane().plain


class TestCommitFiles:
    """Drilling into a commit's files and back out."""

    def test_drill_in_and_back(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)
        tasks = _press(model, Command.SELECT)
        assert model.commit_mode is CommitPaneMode.LIST

        run_tasks(model, tasks)
        assert model.commit_mode is CommitPaneMode.FILES
        assert [n.path for n in model.commit_files_tree.visible_nodes()] == ["lib", "lib/util.py"]
        title = model.render_commit_pane().plain.split("\n")[0]
        assert title.startswith(f"{model.commits[0].short_hash} Fix helper return value")

        _press(model, Command.NEXT_ITEM)
        assert model.breadcrumb() == "lib/util.py"

        _press(model, Command.GO_BACK)
        assert model.commit_mode is CommitPaneMode.LIST
        assert model.inspected_commit is None
        assert model.visible

        messages = _press_and_run(model, Command.GO_BACK)
        assert not model.visible
        assert isinstance(messages[0], ViewerClosed)

    def test_stale_commit_files_discarded(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)
        first = _press(model, Command.SELECT)
        _press_and_run(model, Command.NEXT_ITEM)
        second = _press(model, Command.SELECT)

        model.update(first[0]())
        assert model.commit_mode is CommitPaneMode.LIST
        assert model.commit_files == []

        model.update(second[0]())
        assert model.commit_mode is CommitPaneMode.FILES
        assert len(model.commit_files) == 3


class TestTabs:
    """Bracket keys switch tabs in the commit list and jump hunks elsewhere."""

    def test_brackets_cycle_tabs(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)

        assert _press(model, Command.NEXT_BRACKET) == []
        assert model.active_tab is CommitTab.BRANCHES
        _press(model, Command.PREV_BRACKET, Command.PREV_BRACKET)
        assert model.active_tab is CommitTab.WORKTREES

    def test_brackets_jump_hunks_in_file_list(self, sample_executor):
        model = _model(sample_executor, height=8)
        assert model.hunk_positions == [1, 7]

        _press(model, Command.NEXT_BRACKET)
        assert model.viewport.y_offset == 1
        _press(model, Command.NEXT_BRACKET)
        assert model.viewport.y_offset == 7
        _press(model, Command.NEXT_BRACKET)
        assert model.viewport.y_offset == 1
        _press(model, Command.PREV_BRACKET)
        assert model.viewport.y_offset == 7
        assert model.active_tab is CommitTab.COMMITS

    def test_unloaded_tab_requests_data(self, sample_executor):
        sample_executor.errors["list_branches"] = GitError("failed to list branches")
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS)
        tasks = _press(model, Command.NEXT_BRACKET)
        assert [t.name for t in tasks] == ["branches"]

    def test_branch_selection(self, sample_executor):
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS, Command.NEXT_BRACKET, Command.NEXT_ITEM)
        _press_and_run(model, Command.SELECT)

        assert model.active_tab is CommitTab.COMMITS
        assert model.viewing_branch == "feature"
        assert [c.subject for c in model.commits] == ["Feature work"]
        assert model.header_title() == "feature"

    def test_stale_branch_commits_discarded(self, sample_executor):
        sample_executor.branch_commits["main"] = [make_commit(7, "Main tip")]
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS, Command.NEXT_BRACKET, Command.NEXT_ITEM)
        feature = _press(model, Command.SELECT)
        _press(model, Command.NEXT_BRACKET, Command.PREV_ITEM)
        main = _press(model, Command.SELECT)

        assert model.update(feature[0]()) == []
        assert [c.subject for c in model.commits] == ["Fix helper return value", "Initial import"]

        run_tasks(model, model.update(main[0]()))
        assert [c.subject for c in model.commits] == ["Main tip"]
        assert model.header_title() == "main"


class TestWorktrees:
    """Switching the viewer to another worktree."""

    def test_switch(self, tmp_path):
        main_dir = tmp_path / "repo"
        feature_dir = tmp_path / "feature"
        main_dir.mkdir()
        feature_dir.mkdir()
        worktrees = [WorktreeInfo(str(main_dir), "abc", "main"), WorktreeInfo(str(feature_dir), "def", "feature-branch")]
        created = []

        def factory(path):
            executor = FakeGitExecutor(commits=[make_commit(1)], worktrees=worktrees, work_dir=path)
            created.append(executor)
            return executor

        model = _model(None, executor_factory=factory, work_dir=str(main_dir))
        assert model.header_title() == "main"

        _press(model, Command.FOCUS_COMMITS, Command.PREV_BRACKET, Command.NEXT_ITEM)
        _press_and_run(model, Command.SELECT)

        assert model.executor is created[-1]
        assert model.executor.work_dir == str(feature_dir)
        assert model.header_title() == "[feature] feature-branch"
        assert model.active_tab is CommitTab.COMMITS

    def test_missing_worktree(self, sample_executor, tmp_path):
        sample_executor.worktrees = [WorktreeInfo(str(tmp_path / "gone"), "abc", "old")]
        model = _model(sample_executor)
        _press(model, Command.FOCUS_COMMITS, Command.PREV_BRACKET)
        assert _press(model, Command.SELECT) == []
        assert str(model.error) == "worktree no longer exists: gone"


class TestViewMode:
    """Layout toggling and width constraints."""

    def test_toggle_on_wide_terminal(self, sample_executor):
        model = _model(sample_executor, width=160)
        assert _press(model, Command.TOGGLE_VIEW_MODE) == []
        assert model.view_mode is ViewMode.SIDE_BY_SIDE
        _press(model, Command.TOGGLE_VIEW_MODE)
        assert model.view_mode is ViewMode.UNIFIED

    def test_constrained_then_restored_on_resize(self, sample_executor):
        model = _model(sample_executor, width=80)
        messages = _press_and_run(model, Command.TOGGLE_VIEW_MODE)

        assert messages == [ViewModeConstrained(ViewMode.SIDE_BY_SIDE, 100, 80)]
        assert model.view_mode is ViewMode.UNIFIED
        assert model.preferred_view_mode is ViewMode.SIDE_BY_SIDE

        model.update(Resize(160, 40))
        assert model.view_mode is ViewMode.SIDE_BY_SIDE
        model.update(Resize(90, 40))
        assert model.view_mode is ViewMode.UNIFIED


class TestHunks:
    """Hunk navigation and copying in the diff pane."""

    def test_indicator(self, sample_executor):
        model = _model(sample_executor, height=8)
        assert model.hunk_indicator() == "1 / 2 hunks"
        _press(model, Command.NEXT_HUNK, Command.NEXT_HUNK)
        assert model.hunk_indicator() == "2 / 2 hunks"

    def test_copy_current_hunk(self, sample_executor, clipboard):
        model = _model(sample_executor, height=8, clipboard=clipboard)
        _press(model, Command.NEXT_HUNK)
        messages = _press_and_run(model, Command.COPY_HUNK)

        assert messages == [HunkCopied(line_count=6)]
        assert clipboard.copied[0].startswith("@@ -1,4 +1,4 @@ def main():\n")

    def test_copy_without_clipboard(self, sample_executor):
        model = _model(sample_executor, height=8)
        _press(model, Command.NEXT_HUNK)
        (msg,) = _press_and_run(model, Command.COPY_HUNK)
        assert str(msg.error) == "clipboard not available"

    def test_copy_outside_hunk(self, sample_executor, clipboard):
        model = _model(sample_executor, height=8, clipboard=clipboard)
        (msg,) = _press_and_run(model, Command.COPY_HUNK)
        assert str(msg.error) == "no hunk at current position"
        assert clipboard.copied == []


class TestScrolling:
    """Diff pane offsets and their restoration."""

    def test_offset_restored_per_file(self, sample_executor):
        model = _model(sample_executor, height=8)
        _press(model, Command.NEXT_ITEM, Command.SCROLL_DOWN)
        assert model.viewport.y_offset == 2

        _press(model, Command.NEXT_ITEM)
        assert model.viewport.y_offset == 0
        _press(model, Command.PREV_ITEM)
        assert model.viewport.y_offset == 2

    def test_focus_change_keeps_offset(self, sample_executor):
        model = _model(sample_executor, height=8)
        _press(model, Command.NEXT_ITEM, Command.SCROLL_DOWN, Command.FOCUS_DIFF)
        assert model.viewport.y_offset == 2

    def test_scroll_indicator(self, sample_executor):
        model = _model(sample_executor, height=8)
        _press(model, Command.NEXT_ITEM)
        assert model.scroll_indicator() == ""
        _press(model, Command.SCROLL_DOWN)
        assert model.scroll_indicator() == "33%"
        _press(model, Command.FOCUS_DIFF, Command.GOTO_BOTTOM)
        assert model.scroll_indicator() == "end"
        _press(model, Command.GOTO_TOP)
        assert model.viewport.y_offset == 0

    def test_diff_focus_moves_scroll_by_line(self, sample_executor):
        model = _model(sample_executor, height=8)
        _press(model, Command.NEXT_ITEM, Command.FOCUS_DIFF, Command.NEXT_ITEM)
        assert model.viewport.y_offset == 1
        assert model.selected_working_dir_node == 1

    def test_scrollbar_rows(self, sample_executor):
        model = _model(sample_executor, height=8)
        assert model.show_scrollbar
        rows = model.render_diff_pane().plain.split("\n")
        assert len(rows) == 5
        assert all(len(row) == model.diff_width for row in rows)


class TestVirtualThreshold:
    """Large content switches to windowed rendering."""

    @pytest.mark.parametrize("additions, virtual", [(499, False), (500, True)])
    def test_threshold(self, additions, virtual):
        model = DiffViewerModel(FakeGitExecutor())
        model.set_size(120, 40)
        model.show()
        model.update(WorkingDirDiffLoaded(files=[make_file("big.py", additions)]))

        assert model.use_virtual_scrolling is virtual
        assert len(model.render_diff_pane().plain.split("\n")) == model.diff_height
        assert model.hunk_positions == [0]


class TestErrors:
    """Error pane and the raw-output toggle."""

    def _parse_failure(self, sample_executor) -> DiffViewerModel:
        model = _model(sample_executor)
        error = DiffParseError("invalid old count in hunk header: @@ -1,x +1 @@", line="@@ -1,x +1 @@")
        model.update(WorkingDirDiffLoaded(error=error, raw="garbage output"))
        return model

    def test_parse_error_pane(self, sample_executor):
        model = self._parse_failure(sample_executor)
        text = model.render_diff_pane().plain
        assert "Parse Error" in text
        assert "[v] View raw output" in text

    def test_successful_load_clears_error(self, sample_executor):
        model = self._parse_failure(sample_executor)
        model.update(WorkingDirDiffLoaded(files=[make_file("a.py", 1)]))
        assert model.error is None
        assert not model.raw_output
        assert "Parse Error" not in model.render_diff_pane().plain

    def test_view_raw_toggles(self, sample_executor):
        model = self._parse_failure(sample_executor)
        _press(model, Command.VIEW_RAW)
        assert model.show_raw
        assert model.render_diff_pane().plain.startswith("garbage output")
        _press(model, Command.VIEW_RAW)
        assert "Parse Error" in model.render_diff_pane().plain

    def test_view_raw_ignored_for_other_errors(self):
        model = _model(FakeGitExecutor(errors={"get_working_dir_diff": GitError("fatal: bad HEAD")}))
        _press(model, Command.VIEW_RAW)
        assert not model.show_raw

    def test_reload_clears_error(self, sample_executor):
        model = self._parse_failure(sample_executor)
        run_tasks(model, _press(model, Command.RELOAD))
        assert model.error is None
        assert len(model.working_dir_files) == 3


class TestLifecycle:
    def test_close_ignores_later_input(self, sample_executor):
        model = _model(sample_executor)
        messages = _press_and_run(model, Command.CLOSE)
        assert messages == [ViewerClosed()]

        assert model.update(KeyCommand(Command.NEXT_ITEM)) == []
        assert model.selected_working_dir_node == 0
        model.update(Resize(100, 30))
        assert model.width == 100

    def test_layout(self):
        model = DiffViewerModel()
        model.set_size(120, 40)
        assert model.file_list_width == 36
        assert model.diff_width == 82
        assert model.diff_height == 37
        assert model.file_list_rows == 18
        assert model.commit_pane_rows == 17

        model.set_size(60, 40)
        assert model.file_list_width == 24
        model.set_size(200, 40)
        assert model.file_list_width == 50

    def test_preview_loaded_once(self, sample_executor):
        model = _model(sample_executor)
        assert sample_executor.calls.count(("get_commit_diff", model.commits[0].hash)) == 1


class TestEnsureItemVisible:
    def test_scrolls_down_and_up(self):
        assert ensure_item_visible(10, 0, 5) == 6
        assert ensure_item_visible(2, 6, 5) == 2
        assert ensure_item_visible(7, 6, 5) == 6
        assert ensure_item_visible(3, 1, 0) == 1
