"""Form values for the detail editor and conversion back to task payloads."""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core import FieldDescriptor, FieldSchema, FieldType, Task
from core.console.application.cell_edit import format_datetime, parse_datetime, parse_number, parse_tags

FormListener = Callable[[str, Any], None]

# Fields that are always present in the form, whatever the schema declares.
CORE_DEFAULTS: Dict[str, Any] = {
    "title": "",
    "summary": "",
    "extraPrompt": "",
    "additionalInfo": "",
    "status": "pending",
    "urgency": "normal",
    "assigneeId": None,
    "dueAt": None,
    "tags": "",
    "taskType": "agent",
}

_TYPE_DEFAULTS: Dict[FieldType, Any] = {
    FieldType.TEXT: "",
    FieldType.TEXTAREA: "",
    FieldType.SELECT: "",
    FieldType.TAGS: "",
    FieldType.REFERENCE: None,
    FieldType.DATE: None,
    FieldType.DATETIME: None,
    FieldType.BOOLEAN: False,
    FieldType.NUMBER: "",
}


def serialize(values: Dict[str, Any]) -> str:
    return json.dumps(values, sort_keys=True, default=str, ensure_ascii=False)


def _to_iso(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, datetime):
        stamp = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return stamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return parse_datetime(value)


def _convert(desc_type: Optional[FieldType], path: str, value: Any) -> Any:
    if desc_type is FieldType.TAGS or path == "tags":
        return parse_tags(value) if isinstance(value, str) else value
    if desc_type is FieldType.DATETIME or path == "dueAt":
        return _to_iso(value)
    if desc_type is FieldType.REFERENCE or path in ("assigneeId", "parentId"):
        return value or None
    if desc_type is FieldType.NUMBER and value != "":
        return parse_number(value)
    if desc_type is FieldType.BOOLEAN:
        return bool(value)
    return value


class DetailForm:
    """Mutable form state with a cheap change subscription.

    Listeners are called on every ``set_value``; they are not a render
    trigger, the autosave scheduler subscribes once per open entity.
    """

    def __init__(self, schema: FieldSchema) -> None:
        self.schema = schema
        self.editable_fields: List[FieldDescriptor] = schema.editable()
        self.values: Dict[str, Any] = self.default_values()
        self._listeners: List[FormListener] = []

    def default_values(self) -> Dict[str, Any]:
        values: Dict[str, Any] = dict(CORE_DEFAULTS)
        for desc in self.editable_fields:
            if desc.default_value is not None:
                values[desc.field_path] = desc.default_value
            elif desc.field_path not in CORE_DEFAULTS:
                values[desc.field_path] = _TYPE_DEFAULTS.get(desc.field_type, "")
        return values

    def reset(self, values: Optional[Dict[str, Any]] = None) -> None:
        self.values = dict(values) if values is not None else self.default_values()

    def load(self, task: Task) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for path, default in CORE_DEFAULTS.items():
            value = task.value(path)
            if path == "tags" and isinstance(value, list):
                values[path] = ", ".join(value)
            elif path == "dueAt" and value:
                values[path] = format_datetime(value)
            else:
                values[path] = default if value is None else value
        for desc in self.editable_fields:
            value = task.value(desc.field_path)
            if desc.field_type is FieldType.TAGS and isinstance(value, list):
                values[desc.field_path] = ", ".join(value)
            elif desc.field_type is FieldType.DATETIME and value:
                values[desc.field_path] = format_datetime(value)
            elif desc.field_type is FieldType.REFERENCE and value:
                values[desc.field_path] = str(value)
            elif value is None:
                fallback = desc.default_value
                values[desc.field_path] = "" if fallback is None else fallback
            else:
                values[desc.field_path] = value
        self.values = values
        return dict(values)

    def watch(self, listener: FormListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, path: str) -> Any:
        return self.values.get(path)

    def set_value(self, path: str, value: Any) -> None:
        self.values[path] = value
        for listener in list(self._listeners):
            listener(path, value)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self.values)

    def build_task_data(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Full editable field set; never a partial diff."""
        data: Dict[str, Any] = {}
        for desc in self.editable_fields:
            data[desc.field_path] = _convert(desc.field_type, desc.field_path, values.get(desc.field_path))
        return data

    def build_create_data(self, values: Dict[str, Any]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for path in CORE_DEFAULTS:
            data[path] = _convert(None, path, values.get(path))
        for desc in self.editable_fields:
            if desc.field_path in CORE_DEFAULTS:
                continue
            data[desc.field_path] = _convert(desc.field_type, desc.field_path, values.get(desc.field_path))
        return data


__all__ = ["DetailForm", "CORE_DEFAULTS", "serialize"]
