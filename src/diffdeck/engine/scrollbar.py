"""One-column proportional scrollbar derived from offset, height and total rows."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text

TRACK_CHAR = "░"
THUMB_CHAR = "█"


@dataclass
class ScrollbarConfig:
    total_lines: int = 0
    viewport_height: int = 0
    scroll_offset: int = 0
    track_char: str = TRACK_CHAR
    thumb_char: str = THUMB_CHAR
    track_style: str = "grey30"
    thumb_style: str = "grey70"


def calculate_thumb_bounds(cfg: ScrollbarConfig) -> tuple[int, int]:
    """Return ``(thumb_start, thumb_height)`` in rows of the viewport."""
    if cfg.total_lines <= 0 or cfg.viewport_height <= 0:
        return 0, 0
    if cfg.total_lines <= cfg.viewport_height:
        return 0, cfg.viewport_height

    height = max(1, cfg.viewport_height * cfg.viewport_height // cfg.total_lines)
    max_offset = cfg.total_lines - cfg.viewport_height
    offset = max(0, min(cfg.scroll_offset, max_offset))
    start = offset * (cfg.viewport_height - height) // max_offset
    start = max(0, min(start, cfg.viewport_height - height))
    return start, height


def render_scrollbar(cfg: ScrollbarConfig) -> Text:
    """``viewport_height`` rows of track and thumb; blank when nothing scrolls."""
    if cfg.total_lines <= 0 or cfg.viewport_height <= 0:
        return Text("")
    if cfg.total_lines <= cfg.viewport_height:
        return Text("\n".join(" " * cfg.viewport_height))

    start, height = calculate_thumb_bounds(cfg)
    bar = Text()
    for row in range(cfg.viewport_height):
        if row:
            bar.append("\n")
        if start <= row < start + height:
            bar.append(cfg.thumb_char, style=cfg.thumb_style)
        else:
            bar.append(cfg.track_char, style=cfg.track_style)
    return bar


def join_with_scrollbar(lines: list[Text], cfg: ScrollbarConfig, content_width: int) -> Text:
    """Pad each content row to ``content_width`` and append the scrollbar column."""
    bar_rows = render_scrollbar(cfg).split("\n", allow_blank=True)
    rows = []
    for index in range(cfg.viewport_height):
        row = lines[index].copy() if index < len(lines) else Text()
        row.truncate(content_width, pad=True)
        if index < len(bar_rows):
            row.append_text(bar_rows[index])
        rows.append(row)
    return Text("\n").join(rows)
