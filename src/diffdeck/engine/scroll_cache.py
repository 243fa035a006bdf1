"""Remembered diff-pane offsets for single-file views."""

from __future__ import annotations


class ScrollPositionCache:
    """Maps a file key to the offset the user left it at."""

    def __init__(self):
        self._positions: dict[str, int] = {}

    def save(self, key: str, offset: int) -> None:
        if not key:
            return
        self._positions[key] = offset

    def restore(self, key: str, total_lines: int, height: int) -> int:
        """Saved offset for ``key`` clamped to the current geometry, or 0."""
        position = self._positions.get(key, 0) if key else 0
        return max(0, min(position, max(total_lines - height, 0)))

    def clear(self) -> None:
        self._positions.clear()

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, key: str) -> bool:
        return key in self._positions
