from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


TASK_TYPE_FLOW = "flow"
TASK_TYPE_AGENT = "agent"
TASK_TYPE_EXTERNAL = "external"
TASK_TYPE_FOREACH = "foreach"

# Wire field path -> Task attribute for the core fields.
CORE_FIELDS: Dict[str, str] = {
    "title": "title",
    "summary": "summary",
    "extraPrompt": "extra_prompt",
    "additionalInfo": "additional_info",
    "status": "status",
    "urgency": "urgency",
    "assigneeId": "assignee_id",
    "dueAt": "due_at",
    "tags": "tags",
    "taskType": "task_type",
    "parentId": "parent_id",
    "webhookConfig": "webhook_config",
    "batchCounters": "batch_counters",
    "metadata": "metadata",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


@dataclass(frozen=True)
class LookupValue:
    code: str
    display_name: str
    color: str = ""
    sort_order: int = 0
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LookupValue":
        return cls(
            code=str(data.get("code", "")),
            display_name=str(data.get("displayName") or data.get("code", "")),
            color=str(data.get("color") or ""),
            sort_order=int(data.get("sortOrder") or 0),
            is_active=bool(data.get("isActive", True)),
        )


@dataclass(frozen=True)
class UserRef:
    id: str
    display_name: str
    email: str = ""


@dataclass
class Task:
    id: str
    title: str
    summary: str = ""
    extra_prompt: str = ""
    additional_info: str = ""
    status: str = "pending"
    urgency: str = "normal"
    assignee_id: Optional[str] = None
    due_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    task_type: str = TASK_TYPE_AGENT
    parent_id: Optional[str] = None
    # Shallow, possibly stale snapshot: only used to decide whether a toggle renders.
    children: List["Task"] = field(default_factory=list)
    child_count: int = 0
    fields: Dict[str, Any] = field(default_factory=dict)
    webhook_config: Optional[Dict[str, Any]] = None
    batch_counters: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    resolved: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_flow(self) -> bool:
        return self.task_type == TASK_TYPE_FLOW

    def has_child_hint(self) -> bool:
        return bool(self.children) or self.child_count > 0

    def value(self, path: str) -> Any:
        attr = CORE_FIELDS.get(path)
        if attr:
            return getattr(self, attr)
        return self.fields.get(path)

    def with_values(self, values: Dict[str, Any]) -> "Task":
        core: Dict[str, Any] = {}
        extra = dict(self.fields)
        for path, val in values.items():
            attr = CORE_FIELDS.get(path)
            if attr:
                core[attr] = val
            else:
                extra[path] = val
        return replace(self, fields=extra, **core)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        task_id = data.get("_id") or data.get("id")
        if not task_id:
            raise ValueError("task payload without id")
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, val in data.items():
            if key in ("_id", "id", "children", "childCount", "_resolved"):
                continue
            attr = CORE_FIELDS.get(key)
            if attr:
                kwargs[attr] = val
            else:
                extra[key] = val
        kwargs.setdefault("title", "")
        if kwargs.get("tags") is None:
            kwargs["tags"] = []
        if kwargs.get("metadata") is None:
            kwargs["metadata"] = {}
        # The list endpoint sends one empty placeholder per child.
        raw_children = [c for c in data.get("children") or [] if isinstance(c, dict)]
        children = [cls.from_dict(c) for c in raw_children if c.get("_id") or c.get("id")]
        child_count = int(data.get("childCount") or len(raw_children))
        return cls(
            id=str(task_id),
            children=children,
            child_count=child_count,
            fields=extra,
            resolved=dict(data.get("_resolved") or {}),
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"_id": self.id}
        for path, attr in CORE_FIELDS.items():
            data[path] = getattr(self, attr)
        data.update(self.fields)
        data["childCount"] = self.child_count
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        if self.resolved:
            data["_resolved"] = dict(self.resolved)
        return data


__all__ = [
    "Task",
    "LookupValue",
    "UserRef",
    "CORE_FIELDS",
    "TASK_TYPE_FLOW",
    "TASK_TYPE_AGENT",
    "TASK_TYPE_EXTERNAL",
    "TASK_TYPE_FOREACH",
]
