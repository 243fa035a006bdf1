"""Three-pane diff viewer screen.

Left column: working directory file tree above the commit pane (commits,
branches and worktrees). Right column: breadcrumb header above the diff pane.
All state lives in ``DiffViewerModel``; this screen turns key presses into
commands, runs the model's git tasks in worker threads and repaints the
panes from the model after every update.
"""

from __future__ import annotations

from functools import partial

from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Static
from textual.worker import Worker, WorkerState

from diffdeck.engine.messages import (
    Command,
    HunkCopied,
    KeyCommand,
    Message,
    Resize,
    Task,
    ViewerClosed,
    ViewModeConstrained,
)
from diffdeck.engine.model import DiffViewerModel
from diffdeck.engine.models import FocusPane, ViewMode
from diffdeck.git.executor import GitExecutor
from diffdeck.utils.base_screen import BaseScreen
from diffdeck.utils.config import RepoConfig, config
from diffdeck.utils.error_handling import log_ui_error
from diffdeck.utils.logger import log

# Header and footer rows outside the main area
CHROME_HEIGHT = 2

KEY_HELP = (
    "tab cycle panes · h/l move focus · j/k move · enter select · esc back\n"
    "ctrl+u/ctrl+d half page · g/G top/bottom · ]/[ hunk or tab · s layout\n"
    "y copy hunk · v raw diff · r reload · 1/2/3 jump to pane · q quit"
)


class DiffViewerScreen(BaseScreen):
    """Browse working directory changes, commits, branches and worktrees."""

    BINDINGS = [
        Binding("tab", "command('cycle_panes')", "Cycle", show=False, priority=True),
        ("h", "command('focus_left')", "Left"),
        ("left", "command('focus_left')", "Left"),
        ("l", "command('focus_right')", "Right"),
        ("right", "command('focus_right')", "Right"),
        ("j", "command('next_item')", "Down"),
        ("down", "command('next_item')", "Down"),
        ("k", "command('prev_item')", "Up"),
        ("up", "command('prev_item')", "Up"),
        ("ctrl+u", "command('scroll_up')", "Half page up"),
        ("ctrl+d", "command('scroll_down')", "Half page down"),
        ("g", "command('goto_top')", "Top"),
        ("G", "command('goto_bottom')", "Bottom"),
        ("enter", "command('select')", "Select"),
        ("escape", "command('go_back')", "Back"),
        ("s", "command('toggle_view_mode')", "Layout"),
        ("right_square_bracket", "command('next_bracket')", "Next"),
        ("left_square_bracket", "command('prev_bracket')", "Prev"),
        ("y", "command('copy_hunk')", "Copy hunk"),
        ("v", "command('view_raw')", "Raw"),
        ("r", "command('reload')", "Reload"),
        ("q", "command('close')", "Quit"),
        ("1", "command('focus_file_list')", "Files"),
        ("2", "command('focus_commits')", "Commits"),
        ("3", "command('focus_diff')", "Diff"),
        ("question_mark", "show_help", "Help"),
    ]

    DEFAULT_CSS = """
    #viewer-root {
        width: 100%;
        height: 1fr;
    }
    #left-column {
        height: 100%;
    }
    #right-column {
        width: 1fr;
        height: 100%;
    }
    #file-list, #commit-pane, #diff-pane {
        border: round $panel-lighten-2;
        padding: 0;
    }
    #file-list.focused, #commit-pane.focused, #diff-pane.focused {
        border: round $accent;
    }
    #commit-pane {
        height: 1fr;
    }
    #diff-header {
        height: 1;
    }
    #diff-pane {
        height: 1fr;
        border-title-align: right;
        border-subtitle-align: right;
    }
    """

    def __init__(self, repo_config: RepoConfig | None = None, model: DiffViewerModel | None = None):
        super().__init__(page_name="Diff")
        self.repo_config = repo_config or RepoConfig()
        if model is None:
            work_dir = self.repo_config.resolved_path()
            model = DiffViewerModel(
                executor_factory=partial(GitExecutor, timeout=config.git_timeout),
                work_dir=work_dir,
                clipboard=self._copy_to_clipboard,
            )
        self.model = model
        if self.repo_config.side_by_side:
            self.model.preferred_view_mode = ViewMode.SIDE_BY_SIDE

    def compose_main_content(self) -> ComposeResult:
        with Horizontal(id="viewer-root"):
            with Vertical(id="left-column"):
                yield Static("", id="file-list")
                yield Static("", id="commit-pane")
            with Vertical(id="right-column"):
                yield Static("", id="diff-header")
                yield Static("", id="diff-pane")

    def get_footer_text(self) -> str:
        return (
            " [orange1]tab[/orange1] Panes  [orange1]j/k[/orange1] Move  [orange1]enter[/orange1] Select"
            "  [orange1]][/orange1]/[orange1][[/orange1] Hunk  [orange1]s[/orange1] Layout"
            "  [orange1]y[/orange1] Copy  [orange1]?[/orange1] Keys  [orange1]q[/orange1] Quit"
        )

    async def on_mount(self):
        await super().on_mount()
        size = self.app.size
        self._set_main_size(size.width, size.height)
        self._dispatch(self.model.show_and_load())
        self._refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        self._set_main_size(event.size.width, event.size.height)

    def _set_main_size(self, width: int, height: int) -> None:
        self.model.update(Resize(width, max(height - CHROME_HEIGHT, 1)))
        self._apply_layout()
        self._refresh_view()

    def _apply_layout(self) -> None:
        try:
            self.query_one("#left-column", Vertical).styles.width = self.model.file_list_width
            self.query_one("#file-list", Static).styles.height = self.model.file_list_height
        except NoMatches as e:
            log_ui_error("diff viewer", "apply layout", e)

    # Actions

    def action_command(self, name: str) -> None:
        """Route a bound key to the model."""
        try:
            command = Command(name)
        except ValueError:
            log(f"[UI] Unknown command: {name}")
            return
        self._apply(KeyCommand(command))

    def action_show_help(self) -> None:
        self.notify(KEY_HELP, title="Keys", timeout=8)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.model.scroll_diff(config.scroll_lines)
        self._refresh_view()

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.model.scroll_diff(-config.scroll_lines)
        self._refresh_view()

    # Update loop

    def _apply(self, msg: Message) -> None:
        """Feed one message to the model, run what it dispatches and repaint."""
        if isinstance(msg, ViewerClosed):
            self.action_go_back()
            return
        if isinstance(msg, ViewModeConstrained):
            self.notify(
                f"Side-by-side needs {msg.min_width} columns (terminal has {msg.current_width})",
                severity="warning",
            )
        elif isinstance(msg, HunkCopied):
            if msg.error is not None:
                self.notify(f"Copy failed: {msg.error}", severity="error")
            else:
                self.notify(f"Copied {msg.line_count} lines")

        self._dispatch(self.model.update(msg))
        self._refresh_view()

    def _dispatch(self, tasks: list[Task]) -> None:
        for task in tasks:
            self.run_worker(partial(self._run_task, task), name=task.name, group="git", thread=True, exit_on_error=False)

    def _run_task(self, task: Task) -> None:
        msg = task()
        self.app.call_from_thread(self._apply, msg)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.state is WorkerState.ERROR:
            log_ui_error("diff viewer", f"task {event.worker.name}", event.worker.error)

    def _copy_to_clipboard(self, text: str) -> None:
        self.app.call_from_thread(self.app.copy_to_clipboard, text)

    # Painting

    def _refresh_view(self) -> None:
        model = self.model
        if model.width <= 0 or model.height <= 0 or not self.is_mounted:
            return
        try:
            file_list = self.query_one("#file-list", Static)
            commit_pane = self.query_one("#commit-pane", Static)
            header = self.query_one("#diff-header", Static)
            diff_pane = self.query_one("#diff-pane", Static)
        except NoMatches as e:
            log_ui_error("diff viewer", "query panes", e)
            return

        file_list.update(model.render_file_list())
        commit_pane.update(model.render_commit_pane())
        header.update(model.render_header())
        diff_pane.update(model.render_diff_pane())

        file_list.border_title = "Files"
        commit_pane.border_title = model.active_tab.label
        diff_pane.border_title = model.hunk_indicator()
        diff_pane.border_subtitle = model.scroll_indicator()

        file_list.set_class(model.focus is FocusPane.FILE_LIST, "focused")
        commit_pane.set_class(model.focus is FocusPane.COMMIT_PICKER, "focused")
        diff_pane.set_class(model.focus is FocusPane.DIFF_PANE, "focused")

        self.title = f"diffdeck | {model.header_title()}"
