from __future__ import annotations

from rich.cells import cell_len

ELLIPSIS = "..."


def expand_tabs(text: str, tab_size: int = 4) -> str:
    """Replace tabs so cell widths stay predictable inside fixed-width panes."""
    return text.expandtabs(tab_size) if "\t" in text else text


def truncate(text: str, width: int, ellipsis: str = ELLIPSIS) -> str:
    """Cut text to at most ``width`` terminal cells, ending in ``ellipsis`` when cut.

    Widths too small to hold the ellipsis get a hard cut instead.
    """
    if width <= 0:
        return ""
    if cell_len(text) <= width:
        return text
    if width <= len(ellipsis):
        return _cut_cells(text, width)
    return _cut_cells(text, width - cell_len(ellipsis)) + ellipsis


def clip(text: str, width: int) -> str:
    """Cut text to at most ``width`` cells without an ellipsis."""
    if width <= 0:
        return ""
    if cell_len(text) <= width:
        return text
    return _cut_cells(text, width)


def pad(text: str, width: int) -> str:
    """Right-pad text with spaces up to ``width`` cells."""
    missing = width - cell_len(text)
    return text + " " * missing if missing > 0 else text


def _cut_cells(text: str, width: int) -> str:
    total = 0
    for index, char in enumerate(text):
        total += cell_len(char)
        if total > width:
            return text[:index]
    return text
