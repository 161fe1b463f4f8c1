"""In-process task store used by the demo console and by tests.

Data can be seeded from a YAML document::

    users:
      - {id: u1, displayName: Sarah Chen, email: sarah@example.com}
    tasks:
      - title: Release 2.0
        status: in_progress
        children:
          - {title: Write notes, assigneeId: u1}

Nested ``children`` become child tasks; missing ids are generated.
"""

import copy
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from core import (
    ARCHIVED,
    HITL_PENDING_STATUS,
    BatchMutationError,
    FieldDescriptor,
    LookupValue,
    SaveFailure,
    Task,
    TransientFetchFailure,
    UserRef,
    ValidationRejection,
)

logger = logging.getLogger("task_tree.store")

DEFAULT_TASK_FIELDS: List[Dict[str, Any]] = [
    {"fieldPath": "title", "displayName": "Title", "fieldType": "text", "isRequired": True,
     "isSortable": True, "isSearchable": True, "displayOrder": 1, "width": 36},
    {"fieldPath": "summary", "displayName": "Summary", "fieldType": "textarea", "displayOrder": 2,
     "defaultVisible": False},
    {"fieldPath": "extraPrompt", "displayName": "Extra Prompt", "fieldType": "textarea", "displayOrder": 3,
     "defaultVisible": False},
    {"fieldPath": "additionalInfo", "displayName": "Additional Info", "fieldType": "textarea",
     "displayOrder": 4, "defaultVisible": False},
    {"fieldPath": "status", "displayName": "Status", "fieldType": "select", "lookupType": "task_status",
     "isSortable": True, "isFilterable": True, "displayOrder": 5, "width": 12},
    {"fieldPath": "urgency", "displayName": "Urgency", "fieldType": "select", "lookupType": "urgency",
     "isSortable": True, "isFilterable": True, "displayOrder": 6, "width": 9},
    {"fieldPath": "assigneeId", "displayName": "Assignee", "fieldType": "reference",
     "referenceCollection": "users", "referenceDisplayField": "displayName", "isSortable": True,
     "displayOrder": 7, "width": 16},
    {"fieldPath": "tags", "displayName": "Tags", "fieldType": "tags", "displayOrder": 8, "width": 18},
    {"fieldPath": "dueAt", "displayName": "Due", "fieldType": "datetime", "isSortable": True,
     "displayOrder": 9, "width": 16},
    {"fieldPath": "parentId", "displayName": "Parent Task", "fieldType": "reference",
     "referenceCollection": "tasks", "referenceDisplayField": "title", "displayOrder": 15,
     "defaultVisible": False},
]

DEFAULT_LOOKUPS: Dict[str, List[Dict[str, Any]]] = {
    "task_status": [
        {"code": "pending", "displayName": "Pending", "color": "#6B7280", "sortOrder": 1},
        {"code": "in_progress", "displayName": "In Progress", "color": "#3B82F6", "sortOrder": 2},
        {"code": "waiting", "displayName": "Waiting", "color": "#8B5CF6", "sortOrder": 3},
        {"code": "on_hold", "displayName": "On Hold", "color": "#F59E0B", "sortOrder": 4},
        {"code": "completed", "displayName": "Completed", "color": "#10B981", "sortOrder": 5},
        {"code": "failed", "displayName": "Failed", "color": "#EF4444", "sortOrder": 6},
        {"code": "cancelled", "displayName": "Cancelled", "color": "#9CA3AF", "sortOrder": 7},
        {"code": ARCHIVED, "displayName": "Archived", "color": "#6B7280", "sortOrder": 8},
    ],
    "urgency": [
        {"code": "low", "displayName": "Low", "color": "#6B7280", "sortOrder": 1},
        {"code": "normal", "displayName": "Normal", "color": "#3B82F6", "sortOrder": 2},
        {"code": "high", "displayName": "High", "color": "#F97316", "sortOrder": 3},
        {"code": "urgent", "displayName": "Urgent", "color": "#EF4444", "sortOrder": 4},
    ],
}


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class MemoryTaskStore:
    """TaskStore, SchemaProvider and LookupProvider backed by dictionaries."""

    def __init__(
        self,
        tasks: Iterable[Dict[str, Any]] = (),
        *,
        users: Iterable[Dict[str, Any]] = (),
        fields: Optional[List[Dict[str, Any]]] = None,
        lookups: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ) -> None:
        self._tasks: Dict[str, Task] = {}
        self._order: List[str] = []
        self._fields = copy.deepcopy(fields if fields is not None else DEFAULT_TASK_FIELDS)
        self._lookups = copy.deepcopy(lookups if lookups is not None else DEFAULT_LOOKUPS)
        self._users: List[UserRef] = [
            UserRef(
                id=str(u.get("id") or u.get("_id")),
                display_name=str(u.get("displayName") or u.get("email") or ""),
                email=str(u.get("email") or ""),
            )
            for u in users
        ]
        for item in tasks:
            self._add_tree(item, None)

    @classmethod
    def from_yaml(cls, path: Path) -> "MemoryTaskStore":
        try:
            raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise TransientFetchFailure(f"Cannot read seed file {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise TransientFetchFailure(f"Seed file {path} must contain a mapping")
        return cls(
            raw.get("tasks") or [],
            users=raw.get("users") or [],
            fields=raw.get("fields"),
            lookups=raw.get("lookups"),
        )

    def _add_tree(self, item: Dict[str, Any], parent_id: Optional[str]) -> str:
        data = {k: v for k, v in item.items() if k != "children"}
        data["_id"] = str(data.get("_id") or data.get("id") or _new_id())
        data.pop("id", None)
        if parent_id is not None:
            data["parentId"] = parent_id
        task = Task.from_dict(data)
        self._tasks[task.id] = task
        self._order.append(task.id)
        for child in item.get("children") or []:
            self._add_tree(child, task.id)
        return task.id

    # --- projection --------------------------------------------------------------

    def _children_ids(self, parent_id: Optional[str]) -> List[str]:
        return [tid for tid in self._order if self._tasks[tid].parent_id == parent_id]

    def _descendants(self, task_id: str) -> List[str]:
        found: List[str] = []
        stack = [task_id]
        while stack:
            current = stack.pop()
            for child_id in self._children_ids(current):
                found.append(child_id)
                stack.append(child_id)
        return found

    def _resolve(self, task: Task) -> Task:
        resolved: Dict[str, Dict[str, Any]] = {}
        if task.assignee_id:
            for user in self._users:
                if user.id == task.assignee_id:
                    resolved["assigneeId"] = {"_id": user.id, "displayName": user.display_name, "email": user.email}
        if task.parent_id and task.parent_id in self._tasks:
            parent = self._tasks[task.parent_id]
            resolved["parentId"] = {"_id": parent.id, "title": parent.title}
        return replace(
            task,
            tags=list(task.tags),
            fields=dict(task.fields),
            metadata=copy.deepcopy(task.metadata),
            children=[],
            child_count=len(self._children_ids(task.id)),
            resolved=resolved,
        )

    def snapshot(self, task_id: str) -> Task:
        return self._resolve(self._tasks[task_id])

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    # --- TaskStore ---------------------------------------------------------------

    async def list_roots(
        self,
        sort_by: str = "",
        sort_order: str = "asc",
        search: str = "",
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Task]:
        roots = [self._tasks[tid] for tid in self._children_ids(None)]
        if search:
            needle = search.lower()
            roots = [t for t in roots if needle in t.title.lower() or needle in (t.summary or "").lower()]
        if filters:
            roots = [t for t in roots if _matches(t, filters)]
        if sort_by:
            roots.sort(key=lambda t: _sort_key(t.value(sort_by)), reverse=sort_order == "desc")
        return [self._resolve(t) for t in roots]

    async def list_children(self, parent_id: str) -> List[Task]:
        if parent_id not in self._tasks:
            raise TransientFetchFailure(f"Task {parent_id} not found")
        return [self._resolve(self._tasks[tid]) for tid in self._children_ids(parent_id)]

    async def update_one(self, task_id: str, fields: Dict[str, Any]) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise SaveFailure(f"Task {task_id} not found", task_id)
        self._validate(fields)
        new_parent = fields.get("parentId")
        if new_parent:
            if new_parent not in self._tasks:
                raise ValidationRejection("parentId", f"Parent task {new_parent} not found")
            if new_parent == task_id or new_parent in self._descendants(task_id):
                raise ValidationRejection("parentId", "A task cannot be moved under itself")
        updated = task.with_values(fields)
        self._tasks[task_id] = updated
        return self._resolve(updated)

    async def update_many(self, task_ids: Sequence[str], fields: Dict[str, Any]) -> None:
        missing = [tid for tid in task_ids if tid not in self._tasks]
        if missing:
            raise BatchMutationError(f"Unknown tasks: {', '.join(missing)}", task_ids)
        for tid in task_ids:
            self._tasks[tid] = self._tasks[tid].with_values(fields)

    async def delete_many(self, task_ids: Sequence[str]) -> None:
        missing = [tid for tid in task_ids if tid not in self._tasks]
        if missing:
            raise BatchMutationError(f"Unknown tasks: {', '.join(missing)}", task_ids)
        doomed = set()
        for tid in task_ids:
            doomed.add(tid)
            doomed.update(self._descendants(tid))
        for tid in doomed:
            self._tasks.pop(tid, None)
        self._order = [tid for tid in self._order if tid not in doomed]

    async def create_one(self, fields: Dict[str, Any]) -> Task:
        if not str(fields.get("title") or "").strip():
            raise ValidationRejection("title", "Title is required")
        self._validate(fields)
        parent_id = fields.get("parentId")
        if parent_id and parent_id not in self._tasks:
            raise ValidationRejection("parentId", f"Parent task {parent_id} not found")
        task_id = self._add_tree(dict(fields), parent_id or None)
        return self._resolve(self._tasks[task_id])

    def _validate(self, fields: Dict[str, Any]) -> None:
        if "title" in fields and not str(fields.get("title") or "").strip():
            raise ValidationRejection("title", "Title is required")
        for path in ("status", "urgency"):
            lookup_type = "task_status" if path == "status" else "urgency"
            if path in fields and self._lookups.get(lookup_type):
                codes = {item.get("code") for item in self._lookups[lookup_type]}
                if fields[path] not in codes:
                    raise ValidationRejection(path, f"Unknown {path} '{fields[path]}'")

    # --- SchemaProvider ----------------------------------------------------------

    async def fields_for(self, collection: str) -> List[FieldDescriptor]:
        return [FieldDescriptor.from_dict(item) for item in self._fields]

    # --- LookupProvider ----------------------------------------------------------

    async def lookups(self) -> Dict[str, List[LookupValue]]:
        result: Dict[str, List[LookupValue]] = {}
        for lookup_type, items in self._lookups.items():
            values = [LookupValue.from_dict(item) for item in items]
            result[lookup_type] = sorted((v for v in values if v.is_active), key=lambda v: v.sort_order)
        return result

    async def users(self) -> List[UserRef]:
        return list(self._users)

    async def search(self, query: str, limit: int = 20) -> List[Task]:
        needle = (query or "").lower()
        found = [self._tasks[tid] for tid in self._order if needle in self._tasks[tid].title.lower()]
        return [self._resolve(t) for t in found[:limit]]


def _matches(task: Task, filters: Dict[str, Any]) -> bool:
    for key, wanted in filters.items():
        if wanted is None or wanted == "" or wanted == [] or wanted is False:
            continue
        if key == "hitlPending":
            if task.status != HITL_PENDING_STATUS:
                return False
        elif isinstance(wanted, (list, tuple, set)):
            if task.value(key) not in wanted:
                return False
        elif task.value(key) != wanted:
            return False
    return True


def _sort_key(value: Any):
    if value is None or value == "":
        return (1, "")
    if isinstance(value, (int, float)):
        return (0, f"{value:020.6f}")
    return (0, str(value).lower())


__all__ = ["MemoryTaskStore", "DEFAULT_TASK_FIELDS", "DEFAULT_LOOKUPS"]
