"""Windowed rendering for large diffs.

``VirtualContent`` keeps a flat row index for both layouts (unified lines and
side-by-side pairs across every file) and renders individual rows on demand
through an LRU cache, so the cost of a frame depends on the viewport height
rather than the size of the diff.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple

from rich.text import Text

from diffdeck.utils.config import config
from diffdeck.utils.logger import log

from .aligner import AlignedPair, PairType, align_hunk
from .models import DEV_NULL, DiffFile, DiffHunk, DiffLine, LineType, ViewMode
from .renderer import (
    STYLE_MUTED,
    aggregate_placeholder,
    effective_view_mode,
    file_placeholder,
    line_segments,
    pair_segments,
    render_file_header,
    render_hunk_header,
    render_side_by_side_row,
    render_unified_line,
)
from .word_diff import FileWordDiff

DEFAULT_CACHE_CAPACITY = 1000
DEFAULT_MAX_CACHE_BYTES = 10 * 1024 * 1024
DEFAULT_BUFFER_LINES = 50

# Hunk indexes of rows that belong to no hunk
FILE_HEADER_INDEX = -1
SEPARATOR_INDEX = -2
PLACEHOLDER_INDEX = -3

# Rough per-entry overhead for the int fields of a key
_ENTRY_OVERHEAD = 50


class RowKind(Enum):
    FILE_HEADER = "file_header"
    PLACEHOLDER = "placeholder"
    HUNK_HEADER = "hunk_header"
    LINE = "line"
    SEPARATOR = "separator"


@dataclass
class VirtualLine:
    """One unified-layout row."""

    kind: RowKind
    file: DiffFile
    file_hash: str
    hunk_index: int
    line_index: int = 0
    line: DiffLine | None = None
    hunk: DiffHunk | None = None
    text: str = ""

    @property
    def type(self) -> LineType | None:
        return self.line.type if self.line is not None else None

    @property
    def is_file_header(self) -> bool:
        return self.kind is RowKind.FILE_HEADER


@dataclass
class SideBySideLine:
    """One side-by-side row; ``pair`` is set for hunk rows."""

    kind: RowKind
    file: DiffFile
    file_hash: str
    hunk_index: int
    line_index: int = 0
    pair: AlignedPair | None = None
    hunk: DiffHunk | None = None
    text: str = ""

    @property
    def left(self) -> DiffLine | None:
        return self.pair.left if self.pair is not None else None

    @property
    def right(self) -> DiffLine | None:
        return self.pair.right if self.pair is not None else None

    @property
    def is_hunk_header(self) -> bool:
        return self.kind is RowKind.HUNK_HEADER

    @property
    def is_file_header(self) -> bool:
        return self.kind is RowKind.FILE_HEADER

    @property
    def pair_type(self) -> PairType:
        if self.pair is None:
            return PairType.EMPTY
        return self.pair.pair_type


class RenderCacheKey(NamedTuple):
    file_hash: str
    hunk_index: int
    line_index: int
    width: int
    view_mode: ViewMode


@dataclass
class CacheMetrics:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size_evicts: int = 0

    @property
    def hit_rate(self) -> float:
        """Hits as a percentage of lookups; 0 before the first lookup."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100


def _entry_size(key: RenderCacheKey, value: Text) -> int:
    return len(value.plain) + len(key.file_hash) + _ENTRY_OVERHEAD


class RenderCache:
    """LRU of rendered rows bounded by entry count and approximate bytes."""

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY, max_bytes: int = DEFAULT_MAX_CACHE_BYTES):
        self.capacity = capacity
        self.max_bytes = max_bytes
        self.metrics = CacheMetrics()
        self._entries: OrderedDict[RenderCacheKey, tuple[Text, int]] = OrderedDict()
        self._current_size = 0
        self._view_mode = ViewMode.UNIFIED

    def get(self, key: RenderCacheKey) -> Text | None:
        entry = self._entries.get(key)
        if entry is None:
            self.metrics.misses += 1
            return None
        self._entries.move_to_end(key, last=False)
        self.metrics.hits += 1
        return entry[0]

    def put(self, key: RenderCacheKey, value: Text) -> None:
        size = _entry_size(key, value)

        existing = self._entries.get(key)
        if existing is not None:
            self._current_size += size - existing[1]
            self._entries[key] = (value, size)
            self._entries.move_to_end(key, last=False)
            return

        while self._entries and (
            len(self._entries) >= self.capacity or (self.max_bytes > 0 and self._current_size + size > self.max_bytes)
        ):
            _, (_, old_size) = self._entries.popitem(last=True)
            self._current_size -= old_size
            self.metrics.evictions += 1
            if self._current_size + size > self.max_bytes:
                self.metrics.size_evicts += 1

        self._entries[key] = (value, size)
        self._entries.move_to_end(key, last=False)
        self._current_size += size

    def clear(self) -> None:
        self._entries.clear()
        self._current_size = 0

    def reset_metrics(self) -> None:
        self.metrics = CacheMetrics()

    def size(self) -> int:
        return len(self._entries)

    def byte_size(self) -> int:
        return self._current_size

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    def set_view_mode(self, mode: ViewMode) -> bool:
        """Switch layouts, dropping every entry. Returns whether anything changed."""
        if mode is self._view_mode:
            return False
        self._view_mode = mode
        self.clear()
        return True

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class VirtualContentConfig:
    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    cache_max_bytes: int = DEFAULT_MAX_CACHE_BYTES
    buffer_lines: int = DEFAULT_BUFFER_LINES

    @classmethod
    def from_config(cls) -> VirtualContentConfig:
        return cls(config.render_cache_capacity, config.render_cache_max_bytes, config.buffer_lines)


def file_hash_from_path(new_path: str, old_path: str) -> str:
    """Cache identity for a file's rows."""
    if new_path and new_path != DEV_NULL:
        return new_path
    if old_path and old_path != DEV_NULL:
        return old_path
    return "unknown"


class VirtualContent:
    """Row index over a set of files, rendered one row at a time.

    Args:
        files: Files to display, in order
        cfg: Cache and buffer sizes; non-positive values fall back to defaults
        aggregate: Add a header row and a trailing blank row per file.
            Defaults to True when more than one file is shown.
        prefix_lines: Pre-rendered rows shown above the first file
        word_diff_for: Callable returning a file's ``FileWordDiff``, or None
    """

    def __init__(
        self,
        files: list[DiffFile],
        cfg: VirtualContentConfig | None = None,
        *,
        aggregate: bool | None = None,
        prefix_lines: list[Text] | None = None,
        word_diff_for: Callable[[DiffFile], FileWordDiff | None] | None = None,
    ):
        cfg = cfg or VirtualContentConfig.from_config()
        capacity = cfg.cache_capacity if cfg.cache_capacity > 0 else DEFAULT_CACHE_CAPACITY
        max_bytes = cfg.cache_max_bytes if cfg.cache_max_bytes > 0 else DEFAULT_MAX_CACHE_BYTES

        self.files = files
        self.aggregate = len(files) > 1 if aggregate is None else aggregate
        self.prefix_lines = list(prefix_lines or [])
        self.buffer_lines = cfg.buffer_lines if cfg.buffer_lines > 0 else DEFAULT_BUFFER_LINES
        self.render_cache = RenderCache(capacity, max_bytes)
        self.width = 0
        self.view_mode = ViewMode.UNIFIED
        self.visible_start = 0
        self.visible_end = 0
        self._word_diff_for = word_diff_for

        self.lines: list[VirtualLine] = []
        self.side_by_side_lines: list[SideBySideLine] = []
        self._build()
        log.debug(
            f"[MODEL] Virtual content: {len(files)} file(s), "
            f"{self.unified_total_lines} unified / {self.side_by_side_total_lines} side-by-side rows"
        )

    def _build(self) -> None:
        for file in self.files:
            file_hash = file_hash_from_path(file.new_path, file.old_path)
            if self.aggregate:
                self._add_both(RowKind.FILE_HEADER, file, file_hash, FILE_HEADER_INDEX)

            placeholder = aggregate_placeholder(file) if self.aggregate else file_placeholder(file)
            if placeholder is not None:
                self._add_both(RowKind.PLACEHOLDER, file, file_hash, PLACEHOLDER_INDEX, placeholder)
            else:
                for hunk_index, hunk in enumerate(file.hunks):
                    for line_index, line in enumerate(hunk.lines):
                        kind = RowKind.HUNK_HEADER if line.type is LineType.HUNK_HEADER else RowKind.LINE
                        self.lines.append(VirtualLine(kind, file, file_hash, hunk_index, line_index, line, hunk))
                    for pair_index, pair in enumerate(align_hunk(hunk)):
                        kind = RowKind.HUNK_HEADER if pair.is_hunk_header else RowKind.LINE
                        self.side_by_side_lines.append(
                            SideBySideLine(kind, file, file_hash, hunk_index, pair_index, pair, hunk)
                        )

            if self.aggregate:
                self._add_both(RowKind.SEPARATOR, file, file_hash, SEPARATOR_INDEX)

    def _add_both(self, kind: RowKind, file: DiffFile, file_hash: str, hunk_index: int, text: str = "") -> None:
        self.lines.append(VirtualLine(kind, file, file_hash, hunk_index, text=text))
        self.side_by_side_lines.append(SideBySideLine(kind, file, file_hash, hunk_index, text=text))

    @property
    def unified_total_lines(self) -> int:
        return len(self.prefix_lines) + len(self.lines)

    @property
    def side_by_side_total_lines(self) -> int:
        return len(self.prefix_lines) + len(self.side_by_side_lines)

    @property
    def active_view_mode(self) -> ViewMode:
        """Layout actually drawn at the current width."""
        return effective_view_mode(self.view_mode, self.width)

    @property
    def total_lines(self) -> int:
        if self.active_view_mode is ViewMode.SIDE_BY_SIDE:
            return self.side_by_side_total_lines
        return self.unified_total_lines

    def set_view_mode(self, mode: ViewMode) -> bool:
        """Change layout, clearing cached rows. Returns whether the mode changed."""
        if mode is self.view_mode:
            return False
        self.view_mode = mode
        self.render_cache.set_view_mode(mode)
        return True

    def set_width(self, width: int) -> bool:
        if width == self.width:
            return False
        self.width = width
        self.render_cache.clear()
        return True

    def set_visible_range(self, scroll_top: int, height: int) -> None:
        """Record the rows worth keeping warm: the viewport plus a buffer each side."""
        self.visible_start = max(0, scroll_top - self.buffer_lines)
        self.visible_end = min(self.total_lines, scroll_top + height + self.buffer_lines)

    def invalidate_cache(self) -> None:
        self.render_cache.clear()

    def render_line(self, index: int) -> Text:
        """Rendered row ``index``; out-of-range rows are blank."""
        if index < 0 or index >= self.total_lines:
            return Text("")
        if index < len(self.prefix_lines):
            return self.prefix_lines[index]

        mode = self.active_view_mode
        row_index = index - len(self.prefix_lines)
        row = self.side_by_side_lines[row_index] if mode is ViewMode.SIDE_BY_SIDE else self.lines[row_index]
        line_index = row.line_index
        if row.kind in (RowKind.FILE_HEADER, RowKind.SEPARATOR, RowKind.PLACEHOLDER):
            line_index = 0
        key = RenderCacheKey(row.file_hash, row.hunk_index, line_index, self.width, mode)

        cached = self.render_cache.get(key)
        if cached is not None:
            return cached
        rendered = self._render_row(row, mode)
        self.render_cache.put(key, rendered)
        return rendered

    def render_range(self, start: int, end: int) -> list[Text]:
        start = max(start, 0)
        end = min(end, self.total_lines)
        return [self.render_line(index) for index in range(start, end)]

    def hunk_positions(self) -> list[int]:
        """Row offsets of every hunk header in the active layout."""
        rows = self.side_by_side_lines if self.active_view_mode is ViewMode.SIDE_BY_SIDE else self.lines
        offset = len(self.prefix_lines)
        return [offset + index for index, row in enumerate(rows) if row.kind is RowKind.HUNK_HEADER]

    def cache_metrics(self) -> CacheMetrics:
        return self.render_cache.metrics

    def _word_diff(self, file: DiffFile) -> FileWordDiff | None:
        if self._word_diff_for is None:
            return None
        return self._word_diff_for(file)

    def _render_row(self, row: VirtualLine | SideBySideLine, mode: ViewMode) -> Text:
        width = self.width
        if row.kind is RowKind.FILE_HEADER:
            return render_file_header(row.file, width)
        if row.kind is RowKind.PLACEHOLDER:
            return Text(row.text, style=STYLE_MUTED)
        if row.kind is RowKind.SEPARATOR:
            return Text("")

        word_diff = self._word_diff(row.file)
        if mode is ViewMode.SIDE_BY_SIDE:
            left, right = pair_segments(row.pair, row.hunk_index, word_diff)
            return render_side_by_side_row(row.pair, row.hunk.header, width, left, right)
        if row.kind is RowKind.HUNK_HEADER:
            return render_hunk_header(row.hunk.header, width)
        return render_unified_line(row.line, line_segments(word_diff, row.hunk_index, row.line_index, row.line), width)
