"""Detail editor panel: form over one task, persisted by AutosaveScheduler."""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from prompt_toolkit.formatted_text import FormattedText

from core import FieldType, TASK_TYPE_EXTERNAL, TASK_TYPE_FOREACH, Task, TaskTreeError, ValidationRejection, next_code
from core.console.application.autosave import AutosaveScheduler
from core.console.interface.tui_display import fit_display

if TYPE_CHECKING:
    from prompt_toolkit.buffer import Buffer

    from core.console.application.task_tree import TaskTree

METADATA_KEY = "metadata"
EXPECTED_COUNT_KEY = "batchCounters.expectedCount"
WEBHOOK_URL_KEY = "webhookConfig.url"


@dataclass(frozen=True)
class DetailItem:
    key: str
    label: str
    field_type: Optional[FieldType] = None
    lookup_type: Optional[str] = None


def detail_items(autosave: AutosaveScheduler) -> List[DetailItem]:
    items = [
        DetailItem(d.field_path, d.label, d.field_type, d.lookup_type)
        for d in autosave.form.editable_fields
    ]
    task = autosave.task
    if task is not None:
        items.append(DetailItem(METADATA_KEY, "Metadata"))
        if task.task_type == TASK_TYPE_FOREACH:
            items.append(DetailItem(EXPECTED_COUNT_KEY, "Expected count"))
    if autosave.form.get("taskType") == TASK_TYPE_EXTERNAL:
        items.append(DetailItem(WEBHOOK_URL_KEY, "Webhook URL"))
    return items


def item_text(autosave: AutosaveScheduler, item: DetailItem) -> str:
    if item.key == METADATA_KEY:
        return json.dumps(autosave.task.metadata if autosave.task else {}, ensure_ascii=False, sort_keys=True)
    if item.key == EXPECTED_COUNT_KEY:
        counters = (autosave.task.batch_counters if autosave.task else None) or {}
        return str(counters.get("expectedCount", 0))
    if item.key == WEBHOOK_URL_KEY:
        return str((autosave.webhook_config or {}).get("url", ""))
    value = autosave.form.get(item.key)
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


class DetailMixin:
    tree: "TaskTree"
    autosave: AutosaveScheduler
    edit_buffer: "Buffer"

    detail_mode: bool
    detail_index: int
    detail_editing: bool

    def open_detail(self, task: Optional[Task], parent: Optional[Task] = None) -> None:
        self.autosave.open(task, parent)
        self.detail_mode = True
        self.detail_index = 0
        self.detail_editing = False
        self._focus_body()
        self.force_render()

    def close_detail(self):
        flush = self.autosave.close()
        self.detail_mode = False
        self.detail_editing = False
        self._focus_body()
        self.force_render()
        return flush

    def move_detail(self, delta: int) -> None:
        items = detail_items(self.autosave)
        if items:
            self.detail_index = max(0, min(len(items) - 1, self.detail_index + delta))
        self.force_render()

    def current_detail_item(self) -> Optional[DetailItem]:
        items = detail_items(self.autosave)
        if not items:
            return None
        return items[max(0, min(self.detail_index, len(items) - 1))]

    async def activate_detail_item(self) -> None:
        item = self.current_detail_item()
        if item is None:
            return
        if item.field_type is FieldType.SELECT and item.lookup_type:
            codes = [lv.code for lv in self.tree.lookups.get(item.lookup_type, [])]
            value = next_code(codes, str(self.autosave.form.get(item.key) or ""))
            if item.key == "status":
                if not await self.autosave.change_status(value):
                    self._report_detail_error()
            else:
                self.autosave.form.set_value(item.key, value)
            self.force_render()
            return
        if item.field_type is FieldType.BOOLEAN:
            self.autosave.form.set_value(item.key, not bool(self.autosave.form.get(item.key)))
            self.force_render()
            return
        self.detail_editing = True
        self._load_buffer(item_text(self.autosave, item))
        self.force_render()

    async def commit_detail_item(self) -> None:
        item = self.current_detail_item()
        if item is None or not self.detail_editing:
            return
        text = self.edit_buffer.text
        try:
            if item.key == METADATA_KEY:
                await self.autosave.save_metadata(text)
            elif item.key == EXPECTED_COUNT_KEY:
                await self.autosave.save_expected_count(text)
            elif item.key == WEBHOOK_URL_KEY:
                config = dict(self.autosave.webhook_config or {})
                config["url"] = text.strip()
                await self.autosave.save_webhook_config(config)
            else:
                self.autosave.form.set_value(item.key, text)
                if item.key == "title":
                    # Leaving the title saves right away.
                    self.autosave.title_blur()
        except ValidationRejection as exc:
            self.set_status_message(self._t("INVALID_JSON") if exc.field_path == METADATA_KEY else str(exc))
            self.force_render()
            return
        self.detail_editing = False
        self._finish_detail_edit()

    def cancel_detail_item(self) -> None:
        self.detail_editing = False
        self._finish_detail_edit()

    async def submit_detail(self) -> None:
        creating = self.autosave.is_creating
        try:
            task = await self.autosave.submit()
        except TaskTreeError as exc:
            self.set_status_message(str(exc))
            self.force_render()
            return
        self.detail_mode = False
        self.detail_editing = False
        self._focus_body()
        if creating:
            self.set_status_message(self._t("DETAIL_CREATED", title=task.title))
            await self.reload()
        else:
            self.set_status_message(self._t("SAVED"), ttl=2)
        self.force_render()

    def _report_detail_error(self) -> None:
        error = self.autosave.last_error or "; ".join(self.autosave.field_errors.values())
        if error:
            self.set_status_message(self._t("SAVE_FAILED", error=error))

    def _finish_detail_edit(self) -> None:
        self._syncing_buffer = True
        try:
            self.edit_buffer.text = ""
        finally:
            self._syncing_buffer = False
        self._focus_body()
        self.force_render()

    def _focus_body(self) -> None:
        if getattr(self, "app", None):
            self.app.layout.focus(self.detail_view if self.detail_mode else self.main_window)


def build_detail_text(tui) -> FormattedText:
    autosave = tui.autosave
    width = max(40, tui.get_terminal_width() - 2)
    title = tui._t("DETAIL_NEW") if autosave.is_creating else tui._t("DETAIL_TITLE")
    parts = [("class:header", f" {title}\n"), ("class:border", "─" * width + "\n")]
    items = detail_items(autosave)
    label_width = max((len(i.label) for i in items), default=10) + 2
    for idx, item in enumerate(items):
        is_cursor = idx == tui.detail_index
        pointer = "›" if is_cursor else " "
        if is_cursor and tui.detail_editing:
            value = tui.edit_buffer.text + "▏"
            style = "class:cell.editing"
        else:
            value = item_text(autosave, item) or "-"
            style = "class:cursor" if is_cursor else "class:text"
        parts.append(("class:header", pointer + " "))
        parts.append(("class:text.dim", fit_display(item.label, label_width)))
        parts.append((style, fit_display(value, max(4, width - label_width - 2)) + "\n"))
        error = autosave.field_errors.get(item.key)
        if error:
            parts.append(("class:text.error", " " * (label_width + 2) + error + "\n"))
    parts.append(("class:border", "─" * width + "\n"))
    if autosave.last_error:
        parts.append(("class:text.error", " " + tui._t("SAVE_FAILED", error=autosave.last_error) + "\n"))
    elif not autosave.is_creating:
        parts.append(("class:text.dim", " " + tui._t("DETAIL_AUTOSAVE") + "\n"))
    return FormattedText(parts)


__all__ = ["DetailMixin", "DetailItem", "detail_items", "item_text", "build_detail_text"]
