from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from core import FieldDescriptor, LookupValue, Task, UserRef


class TaskStore(Protocol):
    async def list_roots(
        self,
        sort_by: str = "",
        sort_order: str = "asc",
        search: str = "",
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Task]:
        ...

    async def list_children(self, parent_id: str) -> List[Task]:
        ...

    async def update_one(self, task_id: str, fields: Dict[str, Any]) -> Task:
        ...

    async def update_many(self, task_ids: Sequence[str], fields: Dict[str, Any]) -> None:
        ...

    async def delete_many(self, task_ids: Sequence[str]) -> None:
        ...

    async def create_one(self, fields: Dict[str, Any]) -> Task:
        ...


class SchemaProvider(Protocol):
    async def fields_for(self, collection: str) -> List[FieldDescriptor]:
        ...


class LookupProvider(Protocol):
    async def lookups(self) -> Dict[str, List[LookupValue]]:
        ...

    async def users(self) -> List[UserRef]:
        ...

    async def search(self, query: str, limit: int = 20) -> List[Task]:
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class PreferenceStore(Protocol):
    def get_expand_all(self) -> Optional[bool]:
        ...

    def set_expand_all(self, enabled: bool) -> None:
        ...

    def get_columns(self) -> Optional[List[str]]:
        ...

    def set_columns(self, columns: Sequence[str]) -> None:
        ...
