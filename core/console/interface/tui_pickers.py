"""Filter and column pickers: checkbox lists that replace the tree body while open."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from prompt_toolkit.formatted_text import FormattedText

from core.console.application.task_tree import HITL_FILTER
from core.console.interface.tui_display import fit_display

if TYPE_CHECKING:
    from core.console.application.task_tree import TaskTree

FILTER_PICKER = "filter"
COLUMN_PICKER = "columns"
FILTER_FIELDS = (("status", "task_status"), ("urgency", "urgency"))


@dataclass(frozen=True)
class PickerItem:
    field_path: str
    value: str
    label: str
    checked: bool
    group: str = ""


def filter_items(tree: "TaskTree") -> List[PickerItem]:
    items: List[PickerItem] = []
    for path, lookup_type in FILTER_FIELDS:
        desc = tree.schema.get(path)
        if desc is None:
            continue
        chosen = tree.filters.get(path) or []
        for lv in tree.lookups.get(lookup_type, []):
            items.append(PickerItem(path, lv.code, lv.display_name, lv.code in chosen, desc.label))
    items.append(PickerItem(HITL_FILTER, "", "Awaiting Review", bool(tree.filters.get(HITL_FILTER)), "HITL"))
    return items


def column_items(tree: "TaskTree") -> List[PickerItem]:
    return [PickerItem(d.field_path, d.field_path, d.label, shown) for d, shown in tree.column_choices()]


class PickerMixin:
    tree: "TaskTree"
    picker_mode: Optional[str]
    picker_index: int

    def picker_items(self) -> List[PickerItem]:
        if self.picker_mode == FILTER_PICKER:
            return filter_items(self.tree)
        if self.picker_mode == COLUMN_PICKER:
            return column_items(self.tree)
        return []

    def open_picker(self, mode: str) -> None:
        self.picker_mode = mode
        self.picker_index = 0
        self.force_render()

    def close_picker(self) -> None:
        self.picker_mode = None
        self.refresh_rows()

    def move_picker(self, delta: int) -> None:
        count = len(self.picker_items())
        if count:
            self.picker_index = max(0, min(count - 1, self.picker_index + delta))
        self.force_render()

    async def toggle_picker_item(self) -> None:
        items = self.picker_items()
        if not items:
            return
        item = items[max(0, min(self.picker_index, len(items) - 1))]
        if self.picker_mode == COLUMN_PICKER:
            if not self.tree.toggle_column(item.field_path):
                self.set_status_message(self._t("COLUMN_LOCKED", column=item.label))
        elif item.field_path == HITL_FILTER:
            await self.tree.set_hitl_pending(not item.checked)
        else:
            await self.tree.toggle_filter(item.field_path, item.value)
        self.refresh_rows()

    async def clear_filters(self) -> None:
        self.search_query = ""
        await self.tree.clear_filters()
        self.set_status_message(self._t("FILTERS_CLEARED"), ttl=2)
        self.refresh_rows()


def build_picker_text(tui) -> FormattedText:
    width = max(40, tui.get_terminal_width() - 2)
    title = tui._t("FILTER_TITLE" if tui.picker_mode == FILTER_PICKER else "COLUMNS_TITLE")
    parts = [("class:header", f" {title}\n"), ("class:border", "─" * width + "\n")]
    group = None
    for idx, item in enumerate(tui.picker_items()):
        if item.group and item.group != group:
            group = item.group
            parts.append(("class:text.dim", f" {group}\n"))
        is_cursor = idx == tui.picker_index
        mark = "[x]" if item.checked else "[ ]"
        style = "class:cursor" if is_cursor else ("class:selected" if item.checked else "class:text")
        parts.append(("class:header", ("›" if is_cursor else " ") + " "))
        parts.append((style, fit_display(f"{mark} {item.label}", width - 2) + "\n"))
    return FormattedText(parts)


__all__ = ["PickerMixin", "PickerItem", "filter_items", "column_items", "build_picker_text", "FILTER_PICKER", "COLUMN_PICKER"]
