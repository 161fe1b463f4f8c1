import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from core import FieldSchema
from infrastructure.memory_task_store import DEFAULT_TASK_FIELDS, MemoryTaskStore

EXTRA_FIELDS = [
    {"fieldPath": "estimate", "displayName": "Estimate", "fieldType": "number", "displayOrder": 20},
    {"fieldPath": "billable", "displayName": "Billable", "fieldType": "boolean", "displayOrder": 21},
    {"fieldPath": "startDate", "displayName": "Start", "fieldType": "date", "displayOrder": 22},
]

TEST_FIELDS = DEFAULT_TASK_FIELDS + EXTRA_FIELDS

USERS = [
    {"id": "u1", "displayName": "Sarah Chen", "email": "sarah@example.com"},
    {"id": "u2", "displayName": "Marcus Johnson", "email": "marcus@corp.test"},
]

TREE = [
    {
        "_id": "r1",
        "title": "Root one",
        "children": [
            {"_id": "c1", "title": "Child one", "children": [{"_id": "g1", "title": "Grandchild"}]},
            {"_id": "c2", "title": "Child two"},
        ],
    },
    {
        "_id": "r2",
        "title": "Flow root",
        "taskType": "flow",
        "children": [{"_id": "f1", "title": "Flow step"}],
    },
    {"_id": "r3", "title": "Root three", "tags": ["a", "b", "c", "d", "e"], "estimate": 3},
]


class ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic clock: timers fire only from ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self._timers.append(handle)
        return handle

    def pending(self) -> List[ManualHandle]:
        return [h for h in self._timers if not h.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


class RecordingStore(MemoryTaskStore):
    """MemoryTaskStore that records calls and can fail or hold them on demand."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: List[Tuple[str, Any]] = []
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def calls_of(self, name: str) -> List[Any]:
        return [args for call, args in self.calls if call == name]

    async def _enter(self, name: str, args: Any) -> None:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        error = self.failures.get(name)
        if error is not None:
            raise error

    async def list_roots(self, sort_by: str = "", sort_order: str = "asc", search: str = "", filters=None):
        await self._enter("list_roots", (sort_by, sort_order, search, dict(filters or {})))
        return await super().list_roots(sort_by, sort_order, search, filters)

    async def list_children(self, parent_id: str):
        await self._enter("list_children", parent_id)
        return await super().list_children(parent_id)

    async def update_one(self, task_id: str, fields: Dict[str, Any]):
        await self._enter("update_one", (task_id, dict(fields)))
        return await super().update_one(task_id, fields)

    async def update_many(self, task_ids, fields: Dict[str, Any]):
        await self._enter("update_many", (list(task_ids), dict(fields)))
        return await super().update_many(task_ids, fields)

    async def delete_many(self, task_ids):
        await self._enter("delete_many", list(task_ids))
        return await super().delete_many(task_ids)

    async def create_one(self, fields: Dict[str, Any]):
        await self._enter("create_one", dict(fields))
        return await super().create_one(fields)

    async def search(self, query: str, limit: int = 20):
        await self._enter("search", (query, limit))
        return await super().search(query, limit)


class MemoryPreferences:
    def __init__(self, expand_all: Optional[bool] = None, columns: Optional[List[str]] = None) -> None:
        self.expand_all = expand_all
        self.columns = columns
        self.writes: List[bool] = []

    def get_expand_all(self) -> Optional[bool]:
        return self.expand_all

    def set_expand_all(self, enabled: bool) -> None:
        self.expand_all = enabled
        self.writes.append(enabled)

    def get_columns(self) -> Optional[List[str]]:
        return self.columns

    def set_columns(self, columns) -> None:
        self.columns = list(columns) or None


@pytest.fixture
def schema() -> FieldSchema:
    return FieldSchema.from_dicts("tasks", TEST_FIELDS)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore(TREE, users=USERS, fields=TEST_FIELDS)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def preferences() -> MemoryPreferences:
    return MemoryPreferences()
