"""Rich ``Text`` renderers for every pane of the diff viewer.

Each function returns one ``Text`` block whose lines are joined with ``\\n``.
The host widget only places the result; nothing here touches the terminal.
Both the whole-content path and the virtual path build diff rows from the
same per-row helpers so the two strategies lay out identical lines.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from rich.text import Text

from diffdeck.git.executor import BranchInfo, CommitInfo, WorktreeInfo
from diffdeck.utils.text import clip, expand_tabs, pad, truncate

from .aligner import AlignedPair, PairType, align_hunk
from .errors import DiffError, ErrorCategory
from .file_tree import FileTreeNode, file_status
from .models import CommitTab, DiffFile, DiffLine, LineType, ViewMode
from .word_diff import FileWordDiff, SegmentType, WordSegment

# Styles
STYLE_ADD = "green"
STYLE_DEL = "red"
STYLE_ADD_WORD = "bold white on dark_green"
STYLE_DEL_WORD = "bold white on dark_red"
STYLE_HUNK = "cyan"
STYLE_GUTTER = "grey50"
STYLE_SEPARATOR = "grey35"
STYLE_MUTED = "grey50"
STYLE_SELECTED = "on grey23"
STYLE_FILE_HEADER = "bold on grey23"
STYLE_PUSHED = "green"
STYLE_UNPUSHED = "yellow"
STYLE_ACCENT = "orange1"
STYLE_ERROR = "bold red"
STYLE_TITLE = "bold"

# Unified gutter is "%4d | ", side-by-side gutter is "%4d "
UNIFIED_GUTTER_WIDTH = 7
SIDE_BY_SIDE_GUTTER_WIDTH = 5
SIDE_BY_SIDE_SEPARATOR = "│"
# gutter + content on both sides plus the separator
SIDE_BY_SIDE_MIN_WIDTH = SIDE_BY_SIDE_GUTTER_WIDTH + 40 + 1 + SIDE_BY_SIDE_GUTTER_WIDTH + 40

BINARY_PLACEHOLDER = "Binary file - cannot display diff"
NO_CHANGES_PLACEHOLDER = "No changes to display"
AGGREGATE_BINARY_PLACEHOLDER = "Binary file"
AGGREGATE_NO_CHANGES_PLACEHOLDER = "No changes"

COMMIT_HEADER_HEIGHT = 6

_NEWLINE = Text("\n")


@dataclass
class RecoveryAction:
    key: str
    description: str


# Layout rules


def effective_view_mode(view_mode: ViewMode, width: int) -> ViewMode:
    """Side-by-side needs two readable columns; narrower panes fall back to unified."""
    if view_mode is ViewMode.SIDE_BY_SIDE and width >= SIDE_BY_SIDE_MIN_WIDTH:
        return ViewMode.SIDE_BY_SIDE
    return ViewMode.UNIFIED


def side_width(width: int) -> int:
    return (width - 1) // 2


def join_lines(lines: list[Text]) -> Text:
    return _NEWLINE.join(lines)


def format_gutter(old_num: int, new_num: int) -> str:
    """Unified gutter: the new line number, else the old one, else blank."""
    if new_num > 0:
        return f"{new_num:4d} | "
    if old_num > 0:
        return f"{old_num:4d} | "
    return "     | "


def format_side_gutter(line_num: int) -> str:
    if line_num <= 0:
        return " " * SIDE_BY_SIDE_GUTTER_WIDTH
    return f"{line_num:4d} "


def format_stats(additions: int, deletions: int, is_binary: bool = False) -> str:
    """``+N -M`` with zero parts left out, or ``binary``."""
    if is_binary:
        return "binary"
    parts = []
    if additions > 0:
        parts.append(f"+{additions}")
    if deletions > 0:
        parts.append(f"-{deletions}")
    return " ".join(parts)


def _stats_text(additions: int, deletions: int, is_binary: bool) -> Text:
    text = Text()
    if is_binary:
        text.append("binary", style=STYLE_MUTED)
        return text
    if additions > 0:
        text.append(f"+{additions}", style=STYLE_ADD)
    if deletions > 0:
        if text:
            text.append(" ")
        text.append(f"-{deletions}", style=STYLE_DEL)
    return text


# Diff rows


def _content_text(content: str, segments: list[WordSegment] | None, base_style: str, word_style: str) -> Text:
    """Line content, with changed word segments highlighted when available."""
    if not segments:
        return Text(content, style=base_style)
    text = Text(style=base_style)
    for segment in segments:
        if segment.type is SegmentType.UNCHANGED:
            text.append(segment.text)
        else:
            text.append(segment.text, style=word_style)
    return text


def render_hunk_header(header: str, width: int) -> Text:
    return Text(truncate(expand_tabs(header), width), style=STYLE_HUNK)


def render_unified_line(line: DiffLine, segments: list[WordSegment] | None, width: int) -> Text:
    """One content row of the unified view: gutter, prefix, content."""
    content_width = max(width - UNIFIED_GUTTER_WIDTH, 1)

    if line.type is LineType.ADDITION:
        body = Text("+", style=STYLE_ADD)
        body.append_text(_content_text(line.content, segments, STYLE_ADD, STYLE_ADD_WORD))
    elif line.type is LineType.DELETION:
        body = Text("-", style=STYLE_DEL)
        body.append_text(_content_text(line.content, segments, STYLE_DEL, STYLE_DEL_WORD))
    else:
        body = Text(" " + line.content)

    body.expand_tabs(4)
    body.truncate(content_width)
    row = Text(format_gutter(line.old_line_num, line.new_line_num), style=STYLE_GUTTER)
    row.append_text(body)
    return row


def _side_column(line: DiffLine | None, segments: list[WordSegment] | None, content_width: int) -> Text:
    if line is None:
        return Text(" " * (SIDE_BY_SIDE_GUTTER_WIDTH + content_width))

    if line.type is LineType.DELETION:
        line_num = line.old_line_num
        body = _content_text(line.content, segments, STYLE_DEL, STYLE_DEL_WORD)
    elif line.type is LineType.ADDITION:
        line_num = line.new_line_num
        body = _content_text(line.content, segments, STYLE_ADD, STYLE_ADD_WORD)
    else:
        line_num = line.new_line_num
        body = Text(line.content)

    body.expand_tabs(4)
    body.truncate(content_width, pad=True)
    column = Text(format_side_gutter(line_num), style=STYLE_GUTTER)
    column.append_text(body)
    return column


def render_side_by_side_row(
    pair: AlignedPair,
    header: str,
    width: int,
    left_segments: list[WordSegment] | None = None,
    right_segments: list[WordSegment] | None = None,
) -> Text:
    """One row of the side-by-side view; ``header`` is used for header pairs."""
    half = side_width(width)
    content_width = max(half - SIDE_BY_SIDE_GUTTER_WIDTH, 1)
    kind = pair.pair_type

    if kind is PairType.HUNK_HEADER:
        left = Text(pad(truncate(expand_tabs(header), half), half), style=STYLE_HUNK)
        right = Text(" " * half)
    elif kind is PairType.EMPTY:
        left = Text(" " * half)
        right = Text(" " * half)
    else:
        left = _side_column(pair.left, left_segments, content_width)
        right = _side_column(pair.right, right_segments, content_width)

    row = left
    row.append(SIDE_BY_SIDE_SEPARATOR, style=STYLE_SEPARATOR)
    row.append_text(right)
    return row


def line_segments(word_diff: FileWordDiff | None, hunk_index: int, line_index: int, line: DiffLine | None):
    if word_diff is None or line is None or line_index < 0:
        return None
    return word_diff.get_segments_for_line(hunk_index, line_index, line.type)


def pair_segments(pair: AlignedPair, hunk_index: int, word_diff: FileWordDiff | None):
    """Word segments for both sides of a pair, looked up by line position."""
    if word_diff is None:
        return None, None
    left = line_segments(word_diff, hunk_index, pair.left_index, pair.left)
    right = line_segments(word_diff, hunk_index, pair.right_index, pair.right)
    return left, right


# Whole-content renderers


def _unified_rows(file: DiffFile, word_diff: FileWordDiff | None, width: int) -> list[Text]:
    rows: list[Text] = []
    for hunk_index, hunk in enumerate(file.hunks):
        for line_index, line in enumerate(hunk.lines):
            if line.type is LineType.HUNK_HEADER:
                rows.append(render_hunk_header(hunk.header, width))
            else:
                rows.append(render_unified_line(line, line_segments(word_diff, hunk_index, line_index, line), width))
    return rows


def _side_by_side_rows(file: DiffFile, word_diff: FileWordDiff | None, width: int) -> list[Text]:
    rows: list[Text] = []
    for hunk_index, hunk in enumerate(file.hunks):
        for pair in align_hunk(hunk):
            left, right = pair_segments(pair, hunk_index, word_diff)
            rows.append(render_side_by_side_row(pair, hunk.header, width, left, right))
    return rows


def file_placeholder(file: DiffFile) -> str | None:
    """Text shown instead of hunks when a single file has nothing to draw."""
    if file.is_binary:
        return BINARY_PLACEHOLDER
    if not file.hunks:
        return NO_CHANGES_PLACEHOLDER
    return None


def render_unified(file: DiffFile, word_diff: FileWordDiff | None, width: int) -> Text:
    """A single file in unified layout."""
    placeholder = file_placeholder(file)
    if placeholder is not None:
        return Text(placeholder, style=STYLE_MUTED)
    return join_lines(_unified_rows(file, word_diff, width))


def render_side_by_side(file: DiffFile, word_diff: FileWordDiff | None, width: int) -> Text:
    """A single file in two columns; narrow widths get the unified layout."""
    if effective_view_mode(ViewMode.SIDE_BY_SIDE, width) is ViewMode.UNIFIED:
        return render_unified(file, word_diff, width)
    placeholder = file_placeholder(file)
    if placeholder is not None:
        return Text(placeholder, style=STYLE_MUTED)
    return join_lines(_side_by_side_rows(file, word_diff, width))


def render_file(file: DiffFile, word_diff: FileWordDiff | None, view_mode: ViewMode, width: int) -> Text:
    if view_mode is ViewMode.SIDE_BY_SIDE:
        return render_side_by_side(file, word_diff, width)
    return render_unified(file, word_diff, width)


def render_file_header(file: DiffFile, width: int) -> Text:
    """Aggregate-view header line: filename plus stats."""
    stats = _stats_text(file.additions, file.deletions, file.is_binary)
    stats_width = stats.cell_len + 1 if stats else 0
    name = truncate(file.display_path, max(width - stats_width, 10))

    header = Text(name, style=STYLE_FILE_HEADER)
    if stats:
        header.append(" ")
        header.append_text(stats)
    return header


def aggregate_placeholder(file: DiffFile) -> str | None:
    """Text shown instead of hunks for a file inside an aggregate view."""
    if file.is_binary:
        return AGGREGATE_BINARY_PLACEHOLDER
    if not file.hunks:
        return AGGREGATE_NO_CHANGES_PLACEHOLDER
    return None


def render_multi_file(files: list[DiffFile], word_diff_for, view_mode: ViewMode, width: int) -> Text:
    """Every file in turn: header, content, blank line.

    Args:
        files: Files to render in order
        word_diff_for: Callable returning the ``FileWordDiff`` for a file, or None
        view_mode: Requested layout
        width: Pane width in cells
    """
    mode = effective_view_mode(view_mode, width)
    rows: list[Text] = []
    for file in files:
        rows.append(render_file_header(file, width))
        placeholder = aggregate_placeholder(file)
        if placeholder is not None:
            rows.append(Text(placeholder, style=STYLE_MUTED))
        else:
            word_diff = word_diff_for(file) if word_diff_for else None
            if mode is ViewMode.SIDE_BY_SIDE:
                rows.extend(_side_by_side_rows(file, word_diff, width))
            else:
                rows.extend(_unified_rows(file, word_diff, width))
        rows.append(Text(""))
    return join_lines(rows)


# Commit preview


def format_relative_time(then: datetime | None, now: datetime | None = None) -> str:
    """Short "3h ago" style age of ``then``."""
    if then is None:
        return ""
    if now is None:
        now = datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    if days < 30:
        return f"{days // 7}w ago"
    if days < 365:
        return f"{days // 30}mo ago"
    return f"{days // 365}y ago"


def format_commit_date(date: datetime) -> str:
    """``Mon Jan 2 15:04:05 2006 -0700``, the format of ``git log``."""
    return f"{date:%a %b} {date.day} {date:%H:%M:%S %Y %z}".rstrip()


def commit_header_lines(commit: CommitInfo, width: int, now: datetime | None = None) -> list[Text]:
    """``git show`` style metadata block, followed by a blank line."""
    date_line = Text("Date:   ", style=STYLE_MUTED)
    if commit.date is not None:
        date_line.append(format_commit_date(commit.date))
        date_line.append(f" ({format_relative_time(commit.date, now)})", style=STYLE_MUTED)

    lines = [
        Text.assemble(("commit ", STYLE_UNPUSHED), (commit.hash, STYLE_UNPUSHED)),
        Text.assemble(("Author: ", STYLE_MUTED), commit.author),
        date_line,
        Text(""),
        Text(truncate("    " + commit.subject, width), style=STYLE_TITLE),
        Text(""),
    ]
    for line in lines:
        line.truncate(width)
    return lines


def render_commit_header(commit: CommitInfo, width: int, now: datetime | None = None) -> Text:
    return join_lines(commit_header_lines(commit, width, now))


def render_full_commit(
    commit: CommitInfo, files: list[DiffFile], word_diff_for, view_mode: ViewMode, width: int, now=None
) -> Text:
    """Commit metadata block followed by every file of the commit."""
    header = render_commit_header(commit, width, now)
    return join_lines([header, render_multi_file(files, word_diff_for, view_mode, width)])


# Placeholder states


def _center(lines: list[Text], width: int, height: int) -> Text:
    if width < 1 or height < 1:
        return Text("")
    lines = [line.copy() for line in lines[:height]]
    for line in lines:
        line.truncate(width)
        line.align("center", width)
    top = max((height - len(lines)) // 2, 0)
    block = [Text(" " * width) for _ in range(top)] + lines
    block += [Text(" " * width) for _ in range(height - len(block))]
    return join_lines(block)


def render_empty_state(width: int, height: int) -> Text:
    tip = "• Use [ / ] to switch between Commits, Branches, and Worktrees tabs"
    return _center(
        [
            Text(""),
            Text("No changes to display", style=STYLE_TITLE),
            Text(""),
            Text("Your working directory is clean.", style=STYLE_MUTED),
            Text(""),
            Text("Tips:"),
            Text("• Make changes to files and return here"),
            Text(tip),
            Text("• Press [?] for help"),
            Text(""),
        ],
        width,
        height,
    )


def render_loading_state(width: int, height: int, message: str = "Loading diff...") -> Text:
    return _center(
        [
            Text(""),
            Text("⏳ " + message, style=STYLE_ACCENT),
            Text(""),
            Text("This may take a moment for large diffs", style=STYLE_MUTED),
            Text(""),
        ],
        width,
        height,
    )


def recovery_actions(category: ErrorCategory) -> list[RecoveryAction]:
    """Keys offered on the error pane for each kind of failure."""
    help_action = RecoveryAction("[?]", "Get help")
    if category is ErrorCategory.PARSE:
        return [RecoveryAction("[v]", "View raw output"), help_action]
    if category is ErrorCategory.PERMISSION:
        return [help_action]
    if category is ErrorCategory.CONFLICT:
        return [RecoveryAction("[r]", "Reload"), help_action]
    if category is ErrorCategory.TIMEOUT:
        return [RecoveryAction("[r]", "Retry with longer timeout"), help_action]
    return [RecoveryAction("[r]", "Retry"), help_action]


def render_error_state(error: BaseException, width: int, height: int) -> Text:
    """Category, message, help text and recovery keys, centered."""
    if not isinstance(error, DiffError):
        error = DiffError(ErrorCategory.GIT_OP, str(error)).with_help_text("An unexpected error occurred.")

    lines = [
        Text(""),
        Text("⚠ " + str(error.category), style=STYLE_ERROR),
        Text(""),
        Text(error.message),
    ]
    if error.help_text:
        lines.append(Text(error.help_text, style=STYLE_MUTED))
    lines.append(Text(""))
    for action in recovery_actions(error.category):
        lines.append(Text.assemble((action.key, STYLE_ACCENT), " ", action.description))
    lines.append(Text(""))
    return _center(lines, width, height)


def render_raw_output(raw: str, width: int) -> Text:
    """Unparsed diff text, shown after a parse failure."""
    return join_lines([Text(clip(expand_tabs(line), width)) for line in raw.split("\n")])


# Left-hand panes


def _window(rows: list[Text], scroll_top: int, height: int, width: int) -> Text:
    """Rows visible from ``scroll_top``, padded to ``height`` blank lines."""
    visible = rows[scroll_top : scroll_top + height]
    visible += [Text(" " * width) for _ in range(height - len(visible))]
    return join_lines(visible)


def render_placeholder(message: str, width: int, height: int) -> Text:
    return _center([Text(message, style=STYLE_MUTED)], width, height)


def render_tree_row(node: FileTreeNode, width: int, selected: bool, focused: bool) -> Text:
    """Indent, expander or status letter, name, right-aligned stats."""
    indent = " " * (node.depth * 2)
    if node.is_dir:
        prefix = "▼" if node.expanded else "▶"
        stats = ""
    else:
        prefix = file_status(node.file)
        file = node.file
        stats = format_stats(file.additions, file.deletions, file.is_binary) if file else ""

    stats_width = len(stats) + 1 if stats else 0
    name_width = max(width - len(indent) - len(prefix) - 1 - stats_width, 1)
    name = clip(node.name, name_width)

    row = Text(indent)
    row.append(prefix, style=STYLE_ACCENT if node.is_dir else _status_style(prefix))
    row.append(" ")
    row.append(pad(name, name_width), style="bold" if node.is_dir or (selected and focused) else "")
    if stats:
        row.append(" ")
        row.append_text(_stats_text(node.file.additions, node.file.deletions, node.file.is_binary))
    row.truncate(width, pad=True)
    if selected and focused:
        row.stylize(STYLE_SELECTED)
    elif selected:
        row.stylize("bold")
    return row


def _status_style(status: str) -> str:
    return {"A": STYLE_ADD, "?": STYLE_ADD, "D": STYLE_DEL, "R": STYLE_HUNK, "B": STYLE_MUTED}.get(status, STYLE_UNPUSHED)


def render_file_tree(
    nodes: list[FileTreeNode], selected: int, scroll_top: int, width: int, height: int, focused: bool
) -> Text:
    if not nodes:
        return render_placeholder("No files changed", width, height)
    rows = [render_tree_row(node, width, index == selected, focused) for index, node in enumerate(nodes)]
    return _window(rows, scroll_top, height, width)


def _list_row(text: Text, width: int, selected: bool, focused: bool) -> Text:
    text.truncate(width, pad=True)
    if selected:
        text.stylize(STYLE_SELECTED if focused else "bold")
    return text


def render_commit_list(
    commits: list[CommitInfo], selected: int, scroll_top: int, width: int, height: int, focused: bool
) -> Text:
    if not commits:
        return render_placeholder("No commits yet", width, height)
    rows = []
    for index, commit in enumerate(commits):
        row = Text(commit.short_hash, style=STYLE_PUSHED if commit.is_pushed else STYLE_UNPUSHED)
        row.append(" ")
        row.append(clip(commit.subject, max(width - len(commit.short_hash) - 1, 0)))
        rows.append(_list_row(row, width, index == selected, focused))
    return _window(rows, scroll_top, height, width)


def render_branch_list(
    branches: list[BranchInfo], selected: int, scroll_top: int, width: int, height: int, focused: bool
) -> Text:
    if not branches:
        return render_placeholder("No branches", width, height)
    rows = []
    for index, branch in enumerate(branches):
        row = Text(branch.name, style="bold" if branch.is_current else "")
        if branch.is_current:
            row.append(" (current)", style=STYLE_MUTED)
        rows.append(_list_row(row, width, index == selected, focused))
    return _window(rows, scroll_top, height, width)


def render_worktree_list(
    worktrees: list[WorktreeInfo], selected: int, scroll_top: int, width: int, height: int, focused: bool
) -> Text:
    if not worktrees:
        return render_placeholder("No worktrees", width, height)
    rows = []
    for index, worktree in enumerate(worktrees):
        row = Text(os.path.basename(worktree.path.rstrip("/")) or worktree.path)
        if worktree.branch:
            row.append(f" ({worktree.branch})", style=STYLE_MUTED)
        rows.append(_list_row(row, width, index == selected, focused))
    return _window(rows, scroll_top, height, width)


def render_tab_bar(active: CommitTab, width: int | None = None) -> Text:
    """``Commits │ Branches │ Worktrees`` with the active tab highlighted."""
    bar = Text()
    for tab in CommitTab:
        if tab.value:
            bar.append(" │ ", style=STYLE_SEPARATOR)
        bar.append(tab.label, style=f"bold {STYLE_ACCENT}" if tab is active else STYLE_MUTED)
    if width is not None:
        bar.truncate(width, pad=True)
    return bar


def render_header_line(breadcrumb: str, stats: str, width: int) -> Text:
    """Breadcrumb on the left, stats on the right."""
    stats_width = len(stats)
    crumb = truncate(breadcrumb, max(width - stats_width - 2, 0))
    line = Text(" " + crumb)
    gap = max(width - len(crumb) - stats_width - 2, 1)
    line.append(" " * gap)
    if stats:
        line.append_text(_header_stats(stats))
    line.append(" ")
    line.truncate(width)
    return line


def _header_stats(stats: str) -> Text:
    text = Text()
    for index, part in enumerate(stats.split(" ")):
        if index:
            text.append(" ")
        style = STYLE_ADD if part.startswith("+") else STYLE_DEL if part.startswith("-") else STYLE_MUTED
        text.append(part, style=style)
    return text


def fit_line(text: Text, width: int) -> Text:
    """Copy of a rendered row clipped and padded to exactly ``width`` cells."""
    line = text.copy()
    line.truncate(width, pad=True)
    return line

