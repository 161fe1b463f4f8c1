#!/usr/bin/env python3
"""Terminal front end for the task tree."""

import asyncio
import logging
import os
import time
from typing import Any, List, Optional

from prompt_toolkit.application import Application
from prompt_toolkit.filters import Condition
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import ConditionalContainer, DynamicContainer, HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.widgets import TextArea

from config import DEFAULT_EXPAND_ALL_THRESHOLD
from core import FieldDescriptor, FieldSchema, Task, TaskTreeError, next_code
from core.console.application.autosave import AutosaveScheduler
from core.console.application.scheduling import LoopScheduler, spawn
from core.console.application.task_tree import TaskTree, TreeRow
from core.console.interface.i18n import translate
from core.console.interface.tui_detail import DetailMixin, build_detail_text
from core.console.interface.tui_editing import EditingMixin
from core.console.interface.tui_footer import build_footer_text
from core.console.interface.tui_models import InteractiveFormattedTextControl
from core.console.interface.tui_mouse import handle_body_mouse
from core.console.interface.tui_pickers import COLUMN_PICKER, FILTER_PICKER, PickerMixin, build_picker_text
from core.console.interface.tui_render import build_header_text, build_status_text, build_tree_text, current_row
from core.console.interface.tui_themes import DEFAULT_THEME, build_style, get_theme_palette

logger = logging.getLogger("task_tree.tui")


class TaskTreeTUI(EditingMixin, DetailMixin, PickerMixin):
    def __init__(
        self,
        store,
        schema: FieldSchema,
        *,
        lookup_provider=None,
        preferences=None,
        columns: Optional[List[str]] = None,
        theme: str = DEFAULT_THEME,
        scheduler=None,
        threshold: int = DEFAULT_EXPAND_ALL_THRESHOLD,
    ) -> None:
        self.scheduler = scheduler or LoopScheduler()
        self.tree = TaskTree(
            store,
            schema,
            lookup_provider=lookup_provider,
            scheduler=self.scheduler,
            preferences=preferences,
            columns=columns,
            on_open_flow=self._open_flow,
            threshold=threshold,
        )
        self.autosave = AutosaveScheduler(store, schema, self.scheduler, on_saved=self._on_detail_saved)
        self.rows: List[TreeRow] = []
        self.cursor_row = 0
        self.cursor_col = 0
        self.line_map = []
        self.column_spans = []
        self.loading = False
        self.theme_name = theme
        self.status_message = ""
        self.status_message_expires = 0.0
        # Cell editing
        self.active_session = None
        self.active_cell = None
        self.option_index = 0
        self._syncing_buffer = False
        # Detail editor
        self.detail_mode = False
        self.detail_index = 0
        self.detail_editing = False
        # Search input
        self.search_mode = False
        self.search_query = ""
        # Filter and column pickers
        self.picker_mode: Optional[str] = None
        self.picker_index = 0
        # Modal confirmation dialog (delete)
        self.confirm_mode = False
        self.confirm_message = ""
        self._confirm_future: Optional[asyncio.Future] = None

        self.edit_field = TextArea(multiline=True, scrollbar=False, focusable=True, wrap_lines=True)
        self.edit_buffer = self.edit_field.buffer
        self.edit_buffer.on_text_changed += self.on_edit_buffer_changed

        self.style = self.build_style(theme)
        kb = self._build_key_bindings()

        self.status_bar = Window(content=FormattedTextControl(self.get_status_text), height=1, always_hide_cursor=True)
        self.header = Window(content=FormattedTextControl(self.get_header_text), height=1, always_hide_cursor=True)
        self.body_control = InteractiveFormattedTextControl(
            self.get_body_text, show_cursor=False, focusable=True, mouse_handler=self._handle_body_mouse
        )
        self.main_window = Window(content=self.body_control, always_hide_cursor=True, wrap_lines=False)
        self.detail_view = Window(
            content=FormattedTextControl(self.get_detail_text, focusable=True), always_hide_cursor=True, wrap_lines=True
        )
        self.picker_view = Window(content=FormattedTextControl(self.get_picker_text), always_hide_cursor=True)
        self.body_container = DynamicContainer(self._resolve_body_container)
        editor_visible = Condition(lambda: self.editing_mode or self.detail_editing)
        self.editor_container = ConditionalContainer(
            HSplit([Window(height=1, char="─", style="class:border"), self.edit_field], height=Dimension(max=6)),
            filter=editor_visible,
        )
        self.footer = Window(content=FormattedTextControl(self.get_footer_text), height=2, always_hide_cursor=True)

        root = HSplit([self.status_bar, self.header, self.body_container, self.editor_container, self.footer])
        self.app = Application(
            layout=Layout(root, focused_element=self.main_window),
            key_bindings=kb,
            style=self.style,
            full_screen=True,
            mouse_support=True,
        )
        try:
            self.app.ttimeoutlen = max(0.0, float(os.getenv("TASK_TREE_TUI_TTIMEOUTLEN", "0.05")))
        except ValueError:
            self.app.ttimeoutlen = 0.05

    # --- styling and text providers ---------------------------------------------

    @staticmethod
    def get_theme_palette(theme: str):
        return get_theme_palette(theme)

    @classmethod
    def build_style(cls, theme: str):
        return build_style(theme)

    @staticmethod
    def get_terminal_width() -> int:
        """Get current terminal width, default to 100 if unavailable."""
        try:
            return os.get_terminal_size().columns
        except (AttributeError, ValueError, OSError):
            return 100

    def _t(self, key: str, **kwargs) -> str:
        return translate(key, **kwargs)

    def get_status_text(self) -> FormattedText:
        return build_status_text(self)

    def get_header_text(self) -> FormattedText:
        return build_header_text(self)

    def get_body_text(self) -> FormattedText:
        return build_tree_text(self)

    def get_detail_text(self) -> FormattedText:
        return build_detail_text(self)

    def get_picker_text(self) -> FormattedText:
        return build_picker_text(self)

    def get_footer_text(self) -> FormattedText:
        return build_footer_text(self)

    def _resolve_body_container(self):
        if self.detail_mode:
            return self.detail_view
        return self.picker_view if self.picker_mode else self.main_window

    def _handle_body_mouse(self, mouse_event):
        return handle_body_mouse(self, mouse_event)

    def force_render(self) -> None:
        app = getattr(self, "app", None)
        if app:
            app.invalidate()

    def set_status_message(self, message: str, ttl: float = 4.0) -> None:
        self.status_message = message
        self.status_message_expires = time.time() + ttl

    def current_status_message(self) -> str:
        if self.status_message and time.time() < self.status_message_expires:
            return self.status_message
        return ""

    # --- async plumbing ----------------------------------------------------------

    def spawn(self, coro):
        return spawn(self._guard(coro))

    async def _guard(self, coro) -> Any:
        try:
            return await coro
        except TaskTreeError as exc:
            logger.warning("Action failed: %s", exc)
            self.set_status_message(str(exc))
        finally:
            self.refresh_rows()
        return None

    async def startup(self) -> None:
        await self.tree.load_lookups()
        await self.reload()

    async def reload(self) -> None:
        self.loading = True
        self.force_render()
        try:
            await self.tree.load_roots()
        except TaskTreeError as exc:
            self.set_status_message(self._t("LOAD_FAILED", error=exc), ttl=8)
        finally:
            self.loading = False
            self.refresh_rows()

    def refresh_rows(self) -> None:
        self.rows = self.tree.rows()
        if self.rows:
            self.cursor_row = max(0, min(self.cursor_row, len(self.rows) - 1))
        else:
            self.cursor_row = 0
        columns = self.tree.visible_columns()
        self.cursor_col = max(0, min(self.cursor_col, len(columns) - 1)) if columns else 0
        self.force_render()

    # --- navigation --------------------------------------------------------------

    def current_task(self) -> Optional[Task]:
        row = current_row(self)
        return row.task if row else None

    def current_column(self) -> Optional[FieldDescriptor]:
        columns = self.tree.visible_columns()
        if not columns:
            return None
        return columns[max(0, min(self.cursor_col, len(columns) - 1))]

    def move_cursor(self, delta: int) -> None:
        if self.rows:
            self.cursor_row = max(0, min(len(self.rows) - 1, self.cursor_row + delta))
        self.force_render()

    def move_column(self, delta: int) -> None:
        count = len(self.tree.visible_columns())
        if count:
            self.cursor_col = max(0, min(count - 1, self.cursor_col + delta))
        self.force_render()

    # --- tree actions ------------------------------------------------------------

    async def toggle_current(self) -> None:
        row = current_row(self)
        if row is None:
            return
        # A failed child fetch stays expanded; space retries it.
        if row.failed:
            await self.tree.retry(row.task_id)
        else:
            await self.tree.toggle(row.task)
        self.refresh_rows()

    async def toggle_expand_all(self) -> None:
        enabled = not self.tree.expansion.expand_all
        await self.tree.set_expand_all(enabled)
        self.set_status_message(self._t("EXPAND_ALL_ON" if enabled else "EXPAND_ALL_OFF"), ttl=2)
        self.refresh_rows()

    def select_current(self) -> None:
        task = self.current_task()
        if task is not None:
            self.tree.selection.toggle_one(task.id)
        self.refresh_rows()

    def select_all(self) -> None:
        self.tree.selection.toggle_all(self.tree.root_ids())
        self.refresh_rows()

    async def edit_current(self) -> None:
        task = self.current_task()
        desc = self.current_column()
        if task is None or desc is None:
            return
        await self.activate_cell(task, desc.field_path)
        self.refresh_rows()

    async def sort_current(self) -> None:
        desc = self.current_column()
        if desc is None:
            return
        if not await self.tree.sort_by(desc.field_path):
            self.set_status_message(self._t("NOT_SORTABLE", column=desc.label))
            return
        self.set_status_message(self._t("SORTED", column=desc.label, order=self.tree.sort_order), ttl=2)
        self.refresh_rows()

    async def apply_search(self) -> None:
        self.search_mode = False
        await self.tree.set_search(self.search_query)
        self.refresh_rows()

    async def bulk_cycle(self, field_path: str) -> None:
        """Set the next lookup value (relative to the cursor row) on every selected task."""
        if not len(self.tree.selection):
            self.set_status_message(self._t("NOTHING_SELECTED"))
            return
        lookup_type = "task_status" if field_path == "status" else "urgency"
        codes = [lv.code for lv in self.tree.lookups.get(lookup_type, [])]
        task = self.current_task()
        value = next_code(codes, str(task.value(field_path) if task else ""))
        if field_path == "status":
            count = await self.tree.selection.set_status(value)
            self.set_status_message(self._t("BULK_STATUS", value=value, count=count))
        else:
            count = await self.tree.selection.set_urgency(value)
            self.set_status_message(self._t("BULK_URGENCY", value=value, count=count))
        self.refresh_rows()

    async def archive_selected(self) -> None:
        if not len(self.tree.selection):
            self.set_status_message(self._t("NOTHING_SELECTED"))
            return
        count = await self.tree.selection.archive()
        self.set_status_message(self._t("ARCHIVED", count=count))
        self.refresh_rows()

    async def delete_selected(self) -> None:
        if not len(self.tree.selection):
            self.set_status_message(self._t("NOTHING_SELECTED"))
            return
        count = await self.tree.selection.delete(self.confirm)
        if count:
            self.set_status_message(self._t("DELETED", count=count))
        self.refresh_rows()

    async def confirm(self, count: int) -> bool:
        loop = asyncio.get_running_loop()
        self._confirm_future = loop.create_future()
        self.confirm_mode = True
        self.confirm_message = self._t("CONFIRM_DELETE", count=count)
        self.force_render()
        try:
            return await self._confirm_future
        finally:
            self.confirm_mode = False
            self._confirm_future = None
            self.force_render()

    def resolve_confirm(self, accepted: bool) -> None:
        future = self._confirm_future
        if future is not None and not future.done():
            future.set_result(accepted)

    def open_current_detail(self) -> None:
        task = self.current_task()
        if task is not None:
            self.open_detail(task)

    def _open_flow(self, task: Task) -> None:
        self.set_status_message(self._t("FLOW_OPENED", title=task.title))
        self.force_render()

    def _on_detail_saved(self, task: Task) -> None:
        self.tree.apply_update(task)
        self.refresh_rows()

    async def quit(self) -> None:
        flush = self.close_detail() if self.detail_mode else None
        if flush is not None:
            await flush
        self.app.exit()

    # --- key bindings ------------------------------------------------------------

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        kb.timeout = 0
        confirm_active = Condition(lambda: self.confirm_mode)
        search_active = Condition(lambda: self.search_mode) & ~confirm_active
        detail_active = Condition(lambda: self.detail_mode and not self.detail_editing) & ~confirm_active
        detail_editing = Condition(lambda: self.detail_mode and self.detail_editing)
        cell_inline = Condition(lambda: self.editing_inline and not self.editing_multiline)
        cell_multiline = Condition(lambda: self.editing_multiline)
        cell_choosing = Condition(lambda: self.choosing)
        picker_active = Condition(lambda: self.picker_mode is not None) & ~confirm_active
        list_active = Condition(
            lambda: not (
                self.editing_mode or self.detail_mode or self.confirm_mode or self.search_mode or self.picker_mode
            )
        )

        @kb.add("q", filter=list_active)
        @kb.add("c-c")
        def _(event):
            self.spawn(self.quit())

        @kb.add("down", filter=list_active)
        @kb.add("j", filter=list_active)
        def _(event):
            self.move_cursor(1)

        @kb.add("up", filter=list_active)
        @kb.add("k", filter=list_active)
        def _(event):
            self.move_cursor(-1)

        @kb.add("right", filter=list_active)
        @kb.add("l", filter=list_active)
        def _(event):
            self.move_column(1)

        @kb.add("left", filter=list_active)
        @kb.add("h", filter=list_active)
        def _(event):
            self.move_column(-1)

        @kb.add("space", filter=list_active)
        def _(event):
            """Space - expand/collapse the current row"""
            self.spawn(self.toggle_current())

        @kb.add("E", filter=list_active)
        def _(event):
            self.spawn(self.toggle_expand_all())

        @kb.add("x", filter=list_active)
        def _(event):
            self.select_current()

        @kb.add("a", filter=list_active)
        def _(event):
            self.select_all()

        @kb.add("enter", filter=list_active)
        def _(event):
            """Enter - edit the current cell"""
            self.spawn(self.edit_current())

        @kb.add("s", filter=list_active)
        def _(event):
            self.spawn(self.bulk_cycle("status"))

        @kb.add("u", filter=list_active)
        def _(event):
            self.spawn(self.bulk_cycle("urgency"))

        @kb.add("A", filter=list_active)
        def _(event):
            self.spawn(self.archive_selected())

        @kb.add("D", filter=list_active)
        def _(event):
            self.spawn(self.delete_selected())

        @kb.add("S", filter=list_active)
        def _(event):
            self.spawn(self.sort_current())

        @kb.add("o", filter=list_active)
        def _(event):
            self.open_current_detail()

        @kb.add("n", filter=list_active)
        def _(event):
            """n - new root task"""
            self.open_detail(None)

        @kb.add("N", filter=list_active)
        def _(event):
            """N - new child of the current task"""
            self.open_detail(None, parent=self.current_task())

        @kb.add("r", filter=list_active)
        def _(event):
            self.spawn(self.reload())

        @kb.add("/", filter=list_active)
        def _(event):
            self.search_mode = True
            self.force_render()

        @kb.add("f", filter=list_active)
        def _(event):
            """f - status, urgency and HITL filters"""
            self.open_picker(FILTER_PICKER)

        @kb.add("F", filter=list_active)
        def _(event):
            self.spawn(self.clear_filters())

        @kb.add("c", filter=list_active)
        def _(event):
            """c - choose visible columns"""
            self.open_picker(COLUMN_PICKER)

        @kb.add("escape", eager=True, filter=list_active)
        def _(event):
            self.tree.selection.clear()
            self.refresh_rows()

        # Pickers
        @kb.add("down", filter=picker_active)
        @kb.add("j", filter=picker_active)
        def _(event):
            self.move_picker(1)

        @kb.add("up", filter=picker_active)
        @kb.add("k", filter=picker_active)
        def _(event):
            self.move_picker(-1)

        @kb.add("space", filter=picker_active)
        @kb.add("enter", filter=picker_active)
        def _(event):
            self.spawn(self.toggle_picker_item())

        @kb.add("escape", eager=True, filter=picker_active)
        @kb.add("q", filter=picker_active)
        def _(event):
            self.close_picker()

        # Search input
        @kb.add("enter", filter=search_active)
        def _(event):
            self.spawn(self.apply_search())

        @kb.add("escape", eager=True, filter=search_active)
        def _(event):
            self.search_mode = False
            self.search_query = ""
            self.spawn(self.apply_search())

        @kb.add("backspace", eager=True, filter=search_active)
        def _(event):
            self.search_query = self.search_query[:-1]
            self.force_render()

        @kb.add(Keys.Any, eager=True, filter=search_active)
        def _(event):
            key = event.key_sequence[0].key if event.key_sequence else ""
            if isinstance(key, str) and len(key) == 1 and key.isprintable():
                self.search_query += key
                self.force_render()

        # Cell editing
        @kb.add("enter", filter=cell_inline)
        def _(event):
            """Enter - save single-line edits."""
            self.spawn(self.commit_cell("enter"))

        @kb.add("escape", "enter", filter=cell_multiline)
        @kb.add("c-s", filter=cell_multiline)
        def _(event):
            """Meta+Enter / Ctrl+S - save multiline edits."""
            self.spawn(self.commit_cell("meta-enter"))

        @kb.add("enter", filter=cell_choosing)
        def _(event):
            self.spawn(self.commit_cell())

        @kb.add("down", filter=cell_choosing)
        def _(event):
            self.move_option(1)

        @kb.add("up", filter=cell_choosing)
        def _(event):
            self.move_option(-1)

        @kb.add("escape", eager=True, filter=(cell_inline | cell_choosing))
        @kb.add("escape", filter=cell_multiline)
        def _(event):
            self.cancel_cell_edit()

        # Detail editor
        @kb.add("down", filter=detail_active)
        @kb.add("j", filter=detail_active)
        def _(event):
            self.move_detail(1)

        @kb.add("up", filter=detail_active)
        @kb.add("k", filter=detail_active)
        def _(event):
            self.move_detail(-1)

        @kb.add("enter", filter=detail_active)
        def _(event):
            self.spawn(self.activate_detail_item())

        @kb.add("c", filter=detail_active)
        def _(event):
            self.spawn(self.submit_detail())

        @kb.add("escape", eager=True, filter=detail_active)
        @kb.add("q", filter=detail_active)
        def _(event):
            flush = self.close_detail()
            if flush is not None:
                self.spawn(flush)
            self.refresh_rows()

        @kb.add("enter", filter=detail_editing)
        def _(event):
            self.spawn(self.commit_detail_item())

        @kb.add("escape", eager=True, filter=detail_editing)
        def _(event):
            self.cancel_detail_item()

        # Confirmation
        @kb.add("y", filter=confirm_active)
        def _(event):
            self.resolve_confirm(True)

        @kb.add("n", filter=confirm_active)
        @kb.add("escape", eager=True, filter=confirm_active)
        def _(event):
            self.resolve_confirm(False)

        return kb

    def run(self) -> None:
        self.app.run(pre_run=lambda: self.spawn(self.startup()))


__all__ = ["TaskTreeTUI"]
