#!/usr/bin/env python3
"""TUI layout models."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.mouse_events import MouseEvent

from core import FieldDescriptor
from core.console.interface.constants import DEFAULT_COLUMN_WIDTH, MIN_COLUMN_WIDTH

# Selection marker plus one space before the first column.
GUTTER_WIDTH = 4


@dataclass(frozen=True)
class ColumnSpan:
    descriptor: FieldDescriptor
    start: int
    width: int

    @property
    def end(self) -> int:
        return self.start + self.width

    def contains(self, x: int) -> bool:
        return self.start <= x < self.end


def layout_columns(columns: Sequence[FieldDescriptor], total_width: int) -> List[ColumnSpan]:
    """Assign horizontal spans; the first column absorbs the remaining width."""
    if not columns:
        return []
    widths = [max(d.min_width or MIN_COLUMN_WIDTH, d.width or DEFAULT_COLUMN_WIDTH) for d in columns]
    separators = len(columns) - 1
    spare = total_width - GUTTER_WIDTH - separators - sum(widths)
    if spare > 0:
        widths[0] += spare
    elif spare < 0:
        for idx in range(len(widths) - 1, -1, -1):
            floor = columns[idx].min_width or MIN_COLUMN_WIDTH
            give = min(widths[idx] - floor, -spare)
            widths[idx] -= give
            spare += give
            if spare >= 0:
                break
    spans: List[ColumnSpan] = []
    x = GUTTER_WIDTH
    for desc, width in zip(columns, widths):
        spans.append(ColumnSpan(desc, x, width))
        x += width + 1
    return spans


def column_at(spans: Sequence[ColumnSpan], x: int) -> Optional[int]:
    for idx, span in enumerate(spans):
        if span.contains(x):
            return idx
    return None


class InteractiveFormattedTextControl(FormattedTextControl):
    """FormattedTextControl with external mouse handler support."""

    def __init__(self, *args, mouse_handler=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._external_mouse_handler = mouse_handler

    def mouse_handler(self, mouse_event: MouseEvent):
        if self._external_mouse_handler:
            result = self._external_mouse_handler(mouse_event)
            if result is not NotImplemented:
                return result
        return super().mouse_handler(mouse_event)


__all__ = ["ColumnSpan", "layout_columns", "column_at", "InteractiveFormattedTextControl", "GUTTER_WIDTH"]
