"""Cell editing mixin for TaskTreeTUI."""

from typing import TYPE_CHECKING, Optional, Tuple

from core import Task
from core.console.application.cell_edit import Activation, CellEditSession

if TYPE_CHECKING:
    from prompt_toolkit.application import Application
    from prompt_toolkit.buffer import Buffer
    from prompt_toolkit.layout import Container

    from core.console.application.task_tree import TaskTree


class EditingMixin:
    """Binds the shared edit buffer to the active CellEditSession."""

    tree: "TaskTree"
    active_session: Optional[CellEditSession]
    active_cell: Optional[Tuple[str, str]]
    option_index: int
    edit_buffer: "Buffer"
    edit_field: "Container"
    main_window: "Container"
    app: Optional["Application"]

    @property
    def editing_mode(self) -> bool:
        session = self.active_session
        return bool(session and session.is_editing)

    @property
    def editing_inline(self) -> bool:
        session = self.active_session
        return bool(self.editing_mode and session.behavior.activation is Activation.INLINE)

    @property
    def editing_multiline(self) -> bool:
        return bool(self.editing_inline and self.active_session.behavior.multiline)

    @property
    def choosing(self) -> bool:
        return bool(self.editing_mode and not self.editing_inline)

    async def activate_cell(self, task: Task, field_path: str) -> bool:
        desc = self.tree.schema.get(field_path)
        if desc is None or not desc.is_editable:
            return False
        if self.editing_mode:
            self.outside_click()
        session = self.tree.cell(task, field_path)
        activated = await session.activate()
        if not session.is_editing:
            if session.error:
                self.set_status_message(self._t("SAVE_FAILED", error=session.error))
            self.force_render()
            return activated
        self.active_session = session
        self.active_cell = (task.id, field_path)
        self.option_index = 0
        if session.behavior.activation is Activation.INLINE:
            self._load_buffer(session.text)
        else:
            self._load_buffer("")
            self._select_current_option(session)
        self.force_render()
        return True

    def _select_current_option(self, session: CellEditSession) -> None:
        for idx, opt in enumerate(session.options()):
            if opt.value == session.persisted:
                self.option_index = idx
                return

    def _load_buffer(self, text: str) -> None:
        self._syncing_buffer = True
        try:
            self.edit_buffer.text = text
            self.edit_buffer.cursor_position = len(text)
        finally:
            self._syncing_buffer = False
        if getattr(self, "app", None):
            self.app.layout.focus(self.edit_field)

    def on_edit_buffer_changed(self, _buffer=None) -> None:
        if getattr(self, "_syncing_buffer", False):
            return
        session = self.active_session
        if session is None or not session.is_editing:
            return
        if session.behavior.activation is Activation.INLINE:
            session.set_text(self.edit_buffer.text)
        else:
            session.set_query(self.edit_buffer.text)
            self.option_index = 0
        self.force_render()

    def move_option(self, delta: int) -> None:
        session = self.active_session
        if session is None or not self.choosing:
            return
        count = len(session.options())
        if count:
            self.option_index = max(0, min(count - 1, self.option_index + delta))
        self.force_render()

    async def commit_cell(self, key: str = "enter") -> bool:
        session = self.active_session
        if session is None or not session.is_editing:
            return False
        if session.behavior.activation is Activation.INLINE:
            session.set_text(self.edit_buffer.text)
            await session.handle_key(key)
        else:
            options = session.options()
            if not options:
                return False
            idx = max(0, min(self.option_index, len(options) - 1))
            await session.select_option(options[idx].value)
        return self._after_commit(session)

    def _after_commit(self, session: CellEditSession) -> bool:
        if session.is_editing:
            # Save failed: the candidate stays in the editor for another attempt.
            self.set_status_message(self._t("SAVE_FAILED", error=session.error or ""))
            self.force_render()
            return False
        self._finish_cell_edit()
        self.refresh_rows()
        self.set_status_message(self._t("SAVED"), ttl=2)
        return True

    def cancel_cell_edit(self) -> None:
        session = self.active_session
        if session is not None:
            session.cancel()
        self._finish_cell_edit()

    def outside_click(self) -> bool:
        """Click outside the active editor: in-cell editors cancel, overlays stay open."""
        session = self.active_session
        if session is None:
            return False
        if session.outside_click():
            self._finish_cell_edit()
            return True
        return False

    def _finish_cell_edit(self) -> None:
        self.active_session = None
        self.active_cell = None
        self.option_index = 0
        self._syncing_buffer = True
        try:
            self.edit_buffer.text = ""
        finally:
            self._syncing_buffer = False
        if getattr(self, "app", None):
            self.app.layout.focus(self.main_window)
        self.force_render()


__all__ = ["EditingMixin"]
