"""Rendering helpers for TaskTreeTUI: header, tree rows and status bar."""

from typing import List, Optional, Tuple

from prompt_toolkit.formatted_text import FormattedText

from core import FieldDescriptor, FieldType, Status, URGENCY_CODES
from core.console.application.cell_edit import Activation
from core.console.application.task_tree import TreeRow
from core.console.interface.constants import INDENT
from core.console.interface.tui_display import display_width, fit_display
from core.console.interface.tui_models import GUTTER_WIDTH, layout_columns

Fragments = List[Tuple[str, str]]

TOGGLE_COLLAPSED = "▸ "
TOGGLE_EXPANDED = "▾ "
TOGGLE_FLOW = "⤷ "
TOGGLE_NONE = "  "
MAX_OPTIONS_SHOWN = 8


def value_style(desc: FieldDescriptor, value) -> str:
    if desc.field_type is FieldType.SELECT:
        if desc.lookup_type == "task_status":
            return "class:" + Status.from_string(str(value or "")).style
        if desc.lookup_type == "urgency" and value in URGENCY_CODES:
            return f"class:urgency.{value}"
    if desc.field_type is FieldType.BOOLEAN:
        return "class:status.ok" if value else "class:text.dim"
    return "class:text"


def toggle_marker(row: TreeRow) -> str:
    if row.is_flow:
        return TOGGLE_FLOW
    if not row.has_children:
        return TOGGLE_NONE
    return TOGGLE_EXPANDED if row.expanded else TOGGLE_COLLAPSED


def _gutter(row: TreeRow, is_cursor: bool) -> Fragments:
    pointer = "›" if is_cursor else " "
    mark = "◉" if row.selected else "○"
    style = "class:selected" if row.selected else "class:text.dimmer"
    return [("class:header", pointer), (style, f" {mark}"), ("", " ")]


def _cell_text(tui, row: TreeRow, col_idx: int, desc: FieldDescriptor) -> Tuple[str, str]:
    session = getattr(tui, "active_session", None)
    editing_here = (
        session is not None
        and session.is_editing
        and getattr(tui, "active_cell", None) == (row.task_id, desc.field_path)
    )
    if editing_here:
        if session.behavior.activation is Activation.INLINE:
            return tui.edit_buffer.text + "▏", "class:cell.editing"
        query = session.query
        return (f"⌕ {query}" if query or session.behavior.activation is Activation.SEARCH else "…"), "class:cell.editing"
    text = tui.tree.display_value(row.task, desc)
    style = value_style(desc, row.task.value(desc.field_path))
    if row.is_flow and col_idx == 0:
        style = "class:flow"
    return text, style


def build_header_text(tui) -> FormattedText:
    spans = layout_columns(tui.tree.visible_columns(), tui.get_terminal_width())
    parts: Fragments = [("class:border", " " * GUTTER_WIDTH)]
    for idx, span in enumerate(spans):
        desc = span.descriptor
        label = desc.label
        style = "class:header"
        if tui.tree.sort_field == desc.field_path:
            label += " ↑" if tui.tree.sort_order == "asc" else " ↓"
            style = "class:header.sorted"
        parts.append((style, fit_display(label, span.width)))
        if idx < len(spans) - 1:
            parts.append(("class:border", "│"))
    return FormattedText(parts)


def build_tree_text(tui) -> FormattedText:
    """Render visible rows; also rebuilds ``tui.line_map`` for mouse routing."""
    rows: List[TreeRow] = tui.rows
    spans = layout_columns(tui.tree.visible_columns(), tui.get_terminal_width())
    tui.column_spans = spans
    line_map: List[Tuple[str, int]] = []
    parts: Fragments = []
    if not rows:
        tui.line_map = line_map
        message = tui._t("LOADING") if getattr(tui, "loading", False) else tui._t("EMPTY")
        return FormattedText([("class:text.dim", "  " + message)])
    session = getattr(tui, "active_session", None)
    for row_idx, row in enumerate(rows):
        is_cursor = row_idx == tui.cursor_row
        parts.extend(_gutter(row, is_cursor))
        for col_idx, span in enumerate(spans):
            text, style = _cell_text(tui, row, col_idx, span.descriptor)
            if col_idx == 0:
                prefix = INDENT * row.depth + toggle_marker(row)
                toggle_style = "class:flow" if row.is_flow else "class:toggle"
                parts.append((toggle_style, fit_display(prefix, min(span.width, display_width(prefix)))))
                width = max(0, span.width - display_width(prefix))
            else:
                width = span.width
            if is_cursor and col_idx == tui.cursor_col and not style.startswith("class:cell.editing"):
                style = "class:cell.cursor"
            elif is_cursor and not style.startswith("class:cell.editing"):
                style = style + " class:cursor"
            parts.append((style, fit_display(text, width)))
            if col_idx < len(spans) - 1:
                parts.append(("class:border", "│"))
        parts.append(("", "\n"))
        line_map.append(("row", row_idx))
        if row.expanded and row.failed:
            parts.append(("class:text.error", INDENT * (row.depth + 2) + tui._t("CHILDREN_FAILED") + "\n"))
            line_map.append(("message", row_idx))
        elif row.expanded and row.loading:
            parts.append(("class:text.dim", INDENT * (row.depth + 2) + tui._t("LOADING") + "\n"))
            line_map.append(("message", row_idx))
        if (
            session is not None
            and session.is_editing
            and getattr(tui, "active_cell", (None, None))[0] == row.task_id
            and session.behavior.activation in (Activation.CHOICE, Activation.SEARCH)
        ):
            parts.extend(_option_lines(tui, session, line_map, INDENT * (row.depth + 2)))
        if session is not None and session.error and getattr(tui, "active_cell", (None, None))[0] == row.task_id:
            parts.append(("class:text.error", INDENT * (row.depth + 2) + session.error + "\n"))
            line_map.append(("message", row_idx))
    tui.line_map = line_map
    return FormattedText(parts)


def _option_lines(tui, session, line_map, pad: str) -> Fragments:
    parts: Fragments = []
    options = session.options()
    current = tui.option_index
    start = max(0, min(current - MAX_OPTIONS_SHOWN // 2, len(options) - MAX_OPTIONS_SHOWN))
    for idx in range(start, min(len(options), start + MAX_OPTIONS_SHOWN)):
        opt = options[idx]
        style = "class:option.current" if idx == current else "class:option"
        text = f"{pad}{'›' if idx == current else ' '} {opt.label}"
        if opt.hint:
            text += f"  {opt.hint}"
        parts.append((style, text + "\n"))
        line_map.append(("option", idx))
    if getattr(session, "searching", False):
        parts.append(("class:text.dim", pad + tui._t("LOADING") + "\n"))
        line_map.append(("message", -1))
    return parts


def _chip(tui, label: str, value: str) -> str:
    if label == "Search":
        return tui._t("SEARCH", query=value)
    return f"{label}: {value}"


def build_status_text(tui) -> FormattedText:
    tree = tui.tree
    parts: Fragments = [("class:header", f" {tui._t('TITLE')} ")]
    parts.append(("class:text.dim", f"({len(tree.expansion.roots)}) "))
    key = "EXPAND_ALL_ON" if tree.expansion.expand_all else "EXPAND_ALL_OFF"
    parts.append(("class:text.dim", "· " + tui._t(key) + " "))
    if len(tree.selection):
        parts.append(("class:selected", "· " + tui._t("SELECTED", count=len(tree.selection)) + " "))
    entering = getattr(tui, "search_mode", False)
    if entering:
        parts.append(("class:text", "· " + tui._t("SEARCH", query=tui.search_query) + " "))
    chips = [_chip(tui, label, value) for label, value in tree.active_filters() if not (entering and label == "Search")]
    if chips:
        parts.append(("class:selected", "· " + ", ".join(chips) + " "))
    message = tui.current_status_message()
    if message:
        parts.append(("class:text.dim", "· " + message))
    return FormattedText(parts)


def current_row(tui) -> Optional[TreeRow]:
    rows = tui.rows
    if not rows:
        return None
    idx = max(0, min(tui.cursor_row, len(rows) - 1))
    return rows[idx]


__all__ = [
    "build_header_text",
    "build_tree_text",
    "build_status_text",
    "toggle_marker",
    "value_style",
    "current_row",
]
