"""Scrolling helpers for the pointer-style lists used by every screen."""

from __future__ import annotations

from textual.widgets import Static


def visible_rows(widget: Static) -> int:
    height = widget.size.height
    if height <= 0:
        return 8
    return max(1, height)


def window_bounds(total: int, rows: int, selected: int | None) -> tuple[int, int]:
    """Return the ``[start, end)`` slice that keeps ``selected`` centered when possible."""
    if total <= 0:
        return (0, 0)

    rows = max(1, rows)
    if total <= rows:
        return (0, total)

    if selected is None:
        start = 0
    else:
        start = selected - rows // 2
        start = max(0, start)
        start = min(start, total - rows)

    return (start, start + rows)
