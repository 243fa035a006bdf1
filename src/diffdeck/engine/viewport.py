"""Scrollable viewports over rendered diff content.

``StaticViewport`` holds content rendered in full; ``VirtualViewport`` asks a
``VirtualContent`` for the visible rows only. The model drives both through
the same scrolling interface.
"""

from __future__ import annotations

from rich.text import Text

from .virtual import VirtualContent


class Viewport:
    """Offset bookkeeping shared by both viewports."""

    def __init__(self):
        self._width = 0
        self._height = 0
        self._y_offset = 0

    @property
    def total_lines(self) -> int:
        raise NotImplementedError

    def visible_lines(self) -> list[Text]:
        raise NotImplementedError

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def y_offset(self) -> int:
        return self._y_offset

    def set_size(self, width: int, height: int) -> None:
        self._width = width
        self._height = height
        self._clamp()

    def max_offset(self) -> int:
        return max(self.total_lines - self._height, 0)

    def _clamp(self) -> None:
        self._y_offset = max(0, min(self._y_offset, self.max_offset()))

    def set_y_offset(self, offset: int) -> None:
        self._y_offset = offset
        self._clamp()

    def scroll_up(self, n: int) -> None:
        self.set_y_offset(self._y_offset - n)

    def scroll_down(self, n: int) -> None:
        self.set_y_offset(self._y_offset + n)

    def goto_top(self) -> None:
        self._y_offset = 0

    def goto_bottom(self) -> None:
        self._y_offset = self.max_offset()

    def half_page_up(self) -> None:
        self.scroll_up(self._height // 2)

    def half_page_down(self) -> None:
        self.scroll_down(self._height // 2)

    def page_up(self) -> None:
        self.scroll_up(self._height)

    def page_down(self) -> None:
        self.scroll_down(self._height)

    def at_top(self) -> bool:
        return self._y_offset == 0

    def at_bottom(self) -> bool:
        return self._y_offset >= self.max_offset()

    def scroll_percent(self) -> float:
        """Offset as a fraction of the scrollable range; 0.0 when nothing scrolls."""
        max_offset = self.max_offset()
        if max_offset <= 0:
            return 0.0
        return self._y_offset / max_offset

    def line_range(self) -> tuple[int, int]:
        start = self._y_offset
        return start, min(start + self._height, self.total_lines)

    def render(self) -> Text:
        """Exactly the rows currently in view."""
        return Text("\n").join(self.visible_lines())


class StaticViewport(Viewport):
    """Viewport over content rendered once, in full."""

    def __init__(self, content: Text | None = None):
        super().__init__()
        self._lines: list[Text] = []
        if content is not None:
            self.set_content(content)

    def set_content(self, content: Text) -> None:
        self._lines = content.split("\n", allow_blank=True) if content.plain else []
        self._clamp()

    @property
    def total_lines(self) -> int:
        return len(self._lines)

    def visible_lines(self) -> list[Text]:
        if self._height <= 0:
            return []
        start, end = self.line_range()
        return self._lines[start:end]


class VirtualViewport(Viewport):
    """Viewport that renders only the visible rows of a ``VirtualContent``.

    Rows within ``buffer_lines`` of the window are rendered ahead of time so
    short scrolls hit the render cache.
    """

    def __init__(self, content: VirtualContent):
        super().__init__()
        self.content = content
        self.buffer_lines = content.buffer_lines

    def set_size(self, width: int, height: int) -> None:
        self.content.set_width(width)
        super().set_size(width, height)

    @property
    def total_lines(self) -> int:
        return self.content.total_lines

    def visible_lines(self) -> list[Text]:
        if self.total_lines == 0 or self._height <= 0 or self._width <= 0:
            return []
        start, end = self.line_range()
        self.content.set_visible_range(start, self._height)
        self._prewarm(start, end)
        return self.content.render_range(start, end)

    def _prewarm(self, start: int, end: int) -> None:
        for index in range(max(0, start - self.buffer_lines), start):
            self.content.render_line(index)
        for index in range(end, min(self.total_lines, end + self.buffer_lines)):
            self.content.render_line(index)

    def set_view_mode(self, mode) -> bool:
        changed = self.content.set_view_mode(mode)
        if changed:
            self._clamp()
        return changed

    def ensure_visible(self, line_index: int) -> bool:
        """Scroll just enough to show ``line_index``. Returns whether the offset moved."""
        if line_index < 0 or line_index >= self.total_lines:
            return False
        old = self._y_offset
        if line_index < self._y_offset:
            self._y_offset = line_index
        if line_index >= self._y_offset + self._height:
            self._y_offset = line_index - self._height + 1
        self._clamp()
        return self._y_offset != old

    def scroll_to_line(self, line_index: int) -> None:
        self.set_y_offset(line_index)

    def scroll_to_percent(self, percent: float) -> None:
        percent = max(0.0, min(percent, 1.0))
        self._y_offset = int(percent * self.max_offset())
