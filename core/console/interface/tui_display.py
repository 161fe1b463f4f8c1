"""Text width helpers with proper Unicode width handling."""

from wcwidth import wcwidth

ELLIPSIS = "…"


def display_width(text: str) -> int:
    """Return visual width of text accounting for wide/narrow characters."""
    width = 0
    for ch in text:
        w = wcwidth(ch)
        if w is None:
            w = 0
        width += max(0, w)
    return width


def trim_display(text: str, width: int) -> str:
    """Trim text so visible width doesn't exceed specified width."""
    acc = []
    used = 0
    for ch in text:
        w = wcwidth(ch) or 0
        if w < 0:
            w = 0
        if used + w > width:
            break
        acc.append(ch)
        used += w
    return "".join(acc)


def fit_display(text: str, width: int) -> str:
    """Trim with an ellipsis and pad with spaces to exact visible width."""
    if width <= 0:
        return ""
    flat = " ".join(text.split("\n"))
    if display_width(flat) > width:
        flat = trim_display(flat, width - 1) + ELLIPSIS
    used = display_width(flat)
    if used < width:
        flat += " " * (width - used)
    return flat


__all__ = ["display_width", "trim_display", "fit_display"]
