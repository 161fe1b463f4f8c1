#!/usr/bin/env python3
"""TUI themes and styling."""

from typing import Dict

from prompt_toolkit.styles import Style


THEMES: Dict[str, Dict[str, str]] = {
    "dark-olive": {
        "": "#d7dfe6",
        "status.pending": "#97a0a9",
        "status.active": "#61afef bold",
        "status.waiting": "#c678dd",
        "status.ok": "#9ad974 bold",
        "status.fail": "#e06c75 bold",
        "status.dim": "#6d717a",
        "status.unknown": "#7a7f85",
        "urgency.low": "#6d717a",
        "urgency.normal": "#97a0a9",
        "urgency.high": "#f9ac60 bold",
        "urgency.urgent": "#ff5156 bold",
        "text": "#d7dfe6",
        "text.dim": "#97a0a9",
        "text.dimmer": "#6d717a",
        "text.error": "#e06c75",
        "cursor": "bg:#3b3b3b #d7dfe6 bold",
        "cell.cursor": "bg:#5a5f3b #ffffff bold",
        "cell.editing": "bg:#2d3b4a #ffffff",
        "selected": "#e5c07b bold",
        "toggle": "#ffb347",
        "flow": "#56b6c2 italic",
        "header": "#ffb347 bold",
        "header.sorted": "#ffb347 bold underline",
        "border": "#4b525a",
        "option": "#d7dfe6",
        "option.current": "bg:#3b3b3b #9ad974 bold",
        "confirm": "bg:#5c2b2b #ffffff bold",
    },
    "dark-contrast": {
        "": "#e8eaec",
        "status.pending": "#a7b0ba",
        "status.active": "#7cc4ff bold",
        "status.waiting": "#d6a4f0",
        "status.ok": "#b8f171 bold",
        "status.fail": "#ff6b6b bold",
        "status.dim": "#6f757d",
        "status.unknown": "#8a9097",
        "urgency.low": "#6f757d",
        "urgency.normal": "#a7b0ba",
        "urgency.high": "#f0c674 bold",
        "urgency.urgent": "#ff6b6b bold",
        "text": "#e8eaec",
        "text.dim": "#a7b0ba",
        "text.dimmer": "#6f757d",
        "text.error": "#ff6b6b",
        "cursor": "bg:#3d4047 #e8eaec bold",
        "cell.cursor": "bg:#636b2f #ffffff bold",
        "cell.editing": "bg:#24435e #ffffff",
        "selected": "#f0c674 bold",
        "toggle": "#ffb347",
        "flow": "#6fd3df italic",
        "header": "#ffb347 bold",
        "header.sorted": "#ffb347 bold underline",
        "border": "#5a6169",
        "option": "#e8eaec",
        "option.current": "bg:#3d4047 #b8f171 bold",
        "confirm": "bg:#6e2a2a #ffffff bold",
    },
}

DEFAULT_THEME = "dark-olive"


def get_theme_palette(theme: str) -> Dict[str, str]:
    """Get theme palette, falling back to default if theme not found."""
    base = THEMES.get(theme)
    if not base:
        base = THEMES[DEFAULT_THEME]
    return dict(base)


def build_style(theme: str) -> Style:
    """Build Style object from theme name."""
    palette = get_theme_palette(theme)
    return Style.from_dict(palette)


__all__ = ["THEMES", "DEFAULT_THEME", "get_theme_palette", "build_style"]
