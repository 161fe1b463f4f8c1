"""Mouse event handling helpers for TaskTreeTUI."""

from prompt_toolkit.mouse_events import MouseButton, MouseEventType

from core.console.interface.tui_models import column_at


def _handle_scroll(tui, mouse_event):
    if mouse_event.event_type == MouseEventType.SCROLL_DOWN:
        if getattr(tui, "choosing", False):
            tui.move_option(1)
        else:
            tui.move_cursor(1)
        return True
    if mouse_event.event_type == MouseEventType.SCROLL_UP:
        if getattr(tui, "choosing", False):
            tui.move_option(-1)
        else:
            tui.move_cursor(-1)
        return True
    return False


def _line_target(tui, y: int):
    line_map = getattr(tui, "line_map", []) or []
    if 0 <= y < len(line_map):
        return line_map[y]
    return None


def _handle_click(tui, mouse_event):
    target = _line_target(tui, mouse_event.position.y)
    if target is not None and target[0] == "option" and getattr(tui, "choosing", False):
        tui.option_index = target[1]
        tui.spawn(tui.commit_cell())
        return True
    if target is None or target[0] != "row":
        # Anything that is not a cell counts as outside the active editor.
        tui.outside_click()
        tui.force_render()
        return True
    row_idx = target[1]
    col_idx = column_at(getattr(tui, "column_spans", []), mouse_event.position.x)
    if getattr(tui, "active_cell", None) is not None:
        row = tui.rows[row_idx]
        span = tui.column_spans[col_idx] if col_idx is not None else None
        if span is None or tui.active_cell != (row.task_id, span.descriptor.field_path):
            tui.outside_click()
    same_cell = row_idx == tui.cursor_row and col_idx == tui.cursor_col
    tui.cursor_row = row_idx
    if col_idx is not None:
        tui.cursor_col = col_idx
    if col_idx == 0 and _on_toggle(tui, row_idx, mouse_event.position.x):
        tui.spawn(tui.toggle_current())
    elif same_cell and not getattr(tui, "editing_mode", False):
        tui.spawn(tui.edit_current())
    tui.force_render()
    return True


def _on_toggle(tui, row_idx: int, x: int) -> bool:
    spans = getattr(tui, "column_spans", [])
    if not spans:
        return False
    row = tui.rows[row_idx]
    start = spans[0].start + 2 * row.depth
    return start <= x < start + 2 and (row.has_children or row.is_flow)


def handle_body_mouse(tui, mouse_event):
    """Route mouse events for the TaskTreeTUI body."""
    if getattr(tui, "detail_mode", False) or getattr(tui, "confirm_mode", False):
        return NotImplemented
    if _handle_scroll(tui, mouse_event):
        return None
    if mouse_event.event_type == MouseEventType.MOUSE_UP and mouse_event.button == MouseButton.LEFT:
        if _handle_click(tui, mouse_event):
            return None
    return NotImplemented


__all__ = ["handle_body_mouse"]
