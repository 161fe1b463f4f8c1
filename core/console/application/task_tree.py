"""Headless projection of the task tree.

``TaskTree`` owns one expansion controller, one selection controller and the
per-cell edit sessions for a single tree instance. Rendering layers read
``rows()`` and ``display_value()``; they never touch the store directly.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from application.ports import LookupProvider, PreferenceStore, Scheduler, TaskStore
from core import TITLE_PATH, FieldDescriptor, FieldSchema, FieldType, LookupValue, Task, UserRef
from core.console.application.cell_edit import CellEditSession, EditPhase, format_date, format_datetime
from core.console.application.expansion import ExpansionController
from core.console.application.selection import SelectionController
from config import DEFAULT_EXPAND_ALL_THRESHOLD

logger = logging.getLogger("task_tree.tree")

EMPTY = "-"
MAX_TAGS_SHOWN = 3
HITL_FILTER = "hitlPending"


@dataclass(frozen=True)
class TreeRow:
    task: Task
    depth: int
    expanded: bool
    selected: bool
    has_children: bool
    is_flow: bool
    loading: bool = False
    failed: bool = False

    @property
    def task_id(self) -> str:
        return self.task.id


class TaskTree:
    def __init__(
        self,
        store: TaskStore,
        schema: FieldSchema,
        *,
        lookup_provider: Optional[LookupProvider] = None,
        scheduler: Optional[Scheduler] = None,
        preferences: Optional[PreferenceStore] = None,
        columns: Optional[Sequence[str]] = None,
        on_open_flow=None,
        threshold: int = DEFAULT_EXPAND_ALL_THRESHOLD,
    ) -> None:
        self.store = store
        self.schema = schema
        self.lookup_provider = lookup_provider
        self.scheduler = scheduler
        self.preferences = preferences
        if columns:
            self.columns: Optional[List[str]] = list(columns)
        else:
            self.columns = preferences.get_columns() if preferences is not None else None
        self.expansion = ExpansionController(
            store,
            preferences=preferences,
            on_open_flow=on_open_flow,
            threshold=threshold,
        )
        self.selection = SelectionController(store, on_mutated=self._after_batch)
        self.lookups: Dict[str, List[LookupValue]] = {}
        self.users: List[UserRef] = []
        self.sort_field = ""
        self.sort_order = "asc"
        self.search = ""
        self.filters: Dict[str, Any] = {}
        self._sessions: Dict[Tuple[str, str], CellEditSession] = {}

    # --- loading -----------------------------------------------------------------

    async def load_lookups(self) -> None:
        if self.lookup_provider is None:
            return
        try:
            self.lookups = dict(await self.lookup_provider.lookups())
            self.users = list(await self.lookup_provider.users())
        except Exception as exc:
            logger.warning("Loading lookups failed: %s", exc)

    async def load_roots(self) -> List[Task]:
        roots = await self.store.list_roots(self.sort_field, self.sort_order, self.search, dict(self.filters))
        await self.expansion.set_roots(roots)
        await self.expansion.apply_saved_preference(len(roots))
        self._reconcile()
        return list(roots)

    async def sort_by(self, field_path: str) -> bool:
        desc = self.schema.get(field_path)
        if desc is None or not desc.is_sortable:
            return False
        if self.sort_field == field_path:
            self.sort_order = "desc" if self.sort_order == "asc" else "asc"
        else:
            self.sort_field = field_path
            self.sort_order = "asc"
        await self.load_roots()
        return True

    async def set_search(self, text: str) -> None:
        self.search = text.strip()
        await self.load_roots()

    # --- filters -----------------------------------------------------------------

    async def toggle_filter(self, field_path: str, code: str) -> None:
        """Add or remove one code of a multi-select filter (status, urgency)."""
        codes = list(self.filters.get(field_path) or [])
        if code in codes:
            codes.remove(code)
        else:
            codes.append(code)
        if codes:
            self.filters[field_path] = codes
        else:
            self.filters.pop(field_path, None)
        await self.load_roots()

    async def set_hitl_pending(self, enabled: bool) -> None:
        if enabled:
            self.filters[HITL_FILTER] = True
        else:
            self.filters.pop(HITL_FILTER, None)
        await self.load_roots()

    async def clear_filters(self) -> None:
        self.filters = {}
        self.search = ""
        await self.load_roots()

    def active_filters(self) -> List[Tuple[str, str]]:
        """(label, value) chips for the search text and every active filter."""
        chips: List[Tuple[str, str]] = []
        if self.search:
            chips.append(("Search", self.search))
        for path, codes in self.filters.items():
            if path == HITL_FILTER:
                chips.append(("HITL", "Awaiting Review"))
                continue
            desc = self.schema.get(path)
            label = desc.display_name if desc is not None else path
            for code in codes:
                chips.append((label, self._lookup_label(desc, code) if desc is not None else str(code)))
        return chips

    # --- columns -----------------------------------------------------------------

    def column_choices(self) -> List[Tuple[FieldDescriptor, bool]]:
        shown = {d.field_path for d in self.visible_columns()}
        return [(d, d.field_path in shown) for d in self.schema]

    def toggle_column(self, field_path: str) -> bool:
        """Show or hide one column and remember the set; the title column always stays."""
        if field_path == TITLE_PATH or field_path not in self.schema:
            return False
        current = [d.field_path for d in self.visible_columns()]
        if field_path in current:
            current.remove(field_path)
        else:
            current.append(field_path)
        self.columns = current
        if self.preferences is not None:
            self.preferences.set_columns(current)
        return True

    # --- projection --------------------------------------------------------------

    def rows(self) -> List[TreeRow]:
        rows: List[TreeRow] = []
        expansion = self.expansion
        stack: List[Tuple[Task, int]] = [(t, 0) for t in reversed(expansion.roots)]
        while stack:
            task, depth = stack.pop()
            expanded = expansion.is_expanded(task.id) and not task.is_flow
            rows.append(
                TreeRow(
                    task=task,
                    depth=depth,
                    expanded=expanded,
                    selected=self.selection.is_selected(task.id),
                    has_children=expansion.has_children(task),
                    is_flow=task.is_flow,
                    loading=expansion.is_loading(task.id),
                    failed=expansion.has_failed(task.id),
                )
            )
            if expanded:
                for child in reversed(expansion.children_of(task.id)):
                    stack.append((child, depth + 1))
        return rows

    def root_ids(self) -> List[str]:
        return [t.id for t in self.expansion.roots]

    def find(self, task_id: str) -> Optional[Task]:
        for task in self.expansion.materialized():
            if task.id == task_id:
                return task
        return None

    def visible_columns(self) -> List[FieldDescriptor]:
        # A remembered column list can outlive the schema it was saved against.
        return self.schema.visible(self.columns) or self.schema.visible()

    def display_value(self, task: Task, desc: FieldDescriptor) -> str:
        value = task.value(desc.field_path)
        ftype = desc.field_type
        if ftype is FieldType.BOOLEAN:
            return "Yes" if value else "No"
        if ftype is FieldType.NUMBER:
            return "0" if value is None or value == "" else str(value)
        if ftype is FieldType.SELECT:
            return self._lookup_label(desc, value)
        if ftype is FieldType.REFERENCE:
            return self._reference_label(task, desc, value)
        if ftype is FieldType.TAGS:
            tags = list(value or [])
            if not tags:
                return EMPTY
            shown = ", ".join(str(t) for t in tags[:MAX_TAGS_SHOWN])
            extra = len(tags) - MAX_TAGS_SHOWN
            return f"{shown} +{extra}" if extra > 0 else shown
        if ftype is FieldType.DATE:
            return format_date(value) or EMPTY
        if ftype is FieldType.DATETIME:
            return format_datetime(value).replace("T", " ") or EMPTY
        if value is None or value == "":
            return EMPTY
        return str(value)

    def _lookup_label(self, desc: FieldDescriptor, value: Any) -> str:
        if not value:
            return EMPTY
        for item in self.lookups.get(desc.lookup_type or "", []):
            if item.code == value:
                return item.display_name
        for opt in desc.options:
            if opt.value == value:
                return opt.label
        return str(value)

    def lookup_color(self, desc: FieldDescriptor, value: Any) -> str:
        for item in self.lookups.get(desc.lookup_type or "", []):
            if item.code == value:
                return item.color
        return ""

    def _reference_label(self, task: Task, desc: FieldDescriptor, value: Any) -> str:
        if not value:
            return EMPTY
        resolved = task.resolved.get(desc.field_path)
        if isinstance(resolved, dict):
            key = desc.reference_display_field or ""
            label = resolved.get(key) or resolved.get("displayName") or resolved.get("title") or resolved.get("name")
            if label:
                return str(label)
        if desc.is_fixed_choice_reference:
            for user in self.users:
                if user.id == value:
                    return user.display_name
        return EMPTY

    # --- editing -----------------------------------------------------------------

    def cell(self, task: Task, field_path: str) -> CellEditSession:
        key = (task.id, field_path)
        session = self._sessions.get(key)
        if session is None:
            desc = self.schema.require(field_path)
            session = CellEditSession(
                desc,
                task.value(field_path),
                self._saver(task.id),
                lookups=self.lookups,
                users=self.users,
                lookup_provider=self.lookup_provider,
                scheduler=self.scheduler,
                task_id=task.id,
            )
            self._sessions[key] = session
        else:
            session.sync(task.value(field_path))
        session.lookups = self.lookups
        session.users = list(self.users)
        return session

    def editing_sessions(self) -> List[CellEditSession]:
        return [s for s in self._sessions.values() if s.is_editing]

    def _saver(self, task_id: str):
        async def save(field_path: str, value: Any) -> None:
            await self.save_field(task_id, field_path, value)

        return save

    async def save_field(self, task_id: str, field_path: str, value: Any) -> Task:
        previous = self.find(task_id)
        old_parent = previous.parent_id if previous is not None else None
        updated = await self.store.update_one(task_id, {field_path: value})
        if previous is not None and updated.parent_id != old_parent:
            await self._moved(updated, old_parent)
            return updated
        self.apply_update(updated)
        if updated.parent_id:
            await self.expansion.refresh(updated.parent_id)
        return updated

    async def _moved(self, task: Task, old_parent: Optional[str]) -> None:
        """Re-parenting: the task leaves its old level and appears under the new one."""
        if old_parent:
            self._adjust_child_hint(old_parent, -1)
            await self.expansion.refresh(old_parent)
        else:
            self.expansion.roots = [t for t in self.expansion.roots if t.id != task.id]
        if task.parent_id:
            self._adjust_child_hint(task.parent_id, 1)
            await self.expansion.refresh(task.parent_id)
        else:
            await self.load_roots()
        self.apply_update(task)
        self._reconcile()

    def _adjust_child_hint(self, parent_id: str, delta: int) -> None:
        parent = self.find(parent_id)
        if parent is None:
            return
        count = max(0, max(parent.child_count, len(parent.children)) + delta)
        self.expansion.replace(replace(parent, children=[], child_count=count))

    def apply_update(self, task: Task) -> None:
        self.expansion.replace(task)
        for (tid, path), session in self._sessions.items():
            if tid == task.id:
                session.sync(task.value(path))

    async def toggle(self, task: Task) -> None:
        await self.expansion.toggle(task)
        self._reconcile()

    async def retry(self, task_id: str) -> None:
        await self.expansion.retry(task_id)
        self._reconcile()

    async def set_expand_all(self, enabled: bool) -> None:
        await self.expansion.set_expand_all(enabled)
        self._reconcile()

    def _reconcile(self) -> None:
        """Drop selection and idle cell sessions for rows that are no longer rendered."""
        order = [row.task_id for row in self.rows()]
        self.selection.retain(order)
        visible = set(order)
        for key in [k for k, s in self._sessions.items() if k[0] not in visible and s.phase is EditPhase.VIEWING]:
            del self._sessions[key]

    def _after_batch(self, ids: List[str], fields: Dict[str, Any]) -> None:
        if not fields:
            self.expansion.forget(ids)
            for key in [k for k in self._sessions if k[0] in ids]:
                self._sessions.pop(key, None)
            return
        for task_id in ids:
            task = self.find(task_id)
            if task is not None:
                self.apply_update(task.with_values(fields))


__all__ = ["TaskTree", "TreeRow"]
