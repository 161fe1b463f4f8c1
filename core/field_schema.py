"""Field descriptors and the per-collection schema wrapper."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import SchemaError


class FieldType(Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    SELECT = "select"
    TAGS = "tags"
    REFERENCE = "reference"

    @classmethod
    def from_string(cls, value: str) -> "FieldType":
        token = (value or "").strip().lower()
        for item in cls:
            if item.value == token:
                return item
        raise SchemaError(f"Unknown field type: {value!r}")


TITLE_PATH = "title"

# Reference collections with a fixed, locally filtered choice list.
FIXED_CHOICE_COLLECTIONS = frozenset({"users"})


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


@dataclass(frozen=True)
class FieldDescriptor:
    field_path: str
    field_type: FieldType
    display_name: str = ""
    is_required: bool = False
    is_editable: bool = True
    is_sortable: bool = False
    is_searchable: bool = False
    is_filterable: bool = False
    display_order: int = 0
    width: Optional[int] = None
    min_width: Optional[int] = None
    lookup_type: Optional[str] = None
    options: Sequence[FieldOption] = field(default_factory=tuple)
    reference_collection: Optional[str] = None
    reference_display_field: Optional[str] = None
    default_value: Any = None
    default_visible: bool = True
    render_as: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.field_path

    @property
    def is_title(self) -> bool:
        return self.field_path == TITLE_PATH

    @property
    def is_fixed_choice_reference(self) -> bool:
        return self.field_type is FieldType.REFERENCE and self.reference_collection in FIXED_CHOICE_COLLECTIONS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDescriptor":
        path = data.get("fieldPath") or data.get("field_path")
        if not path:
            raise SchemaError("Field descriptor without fieldPath")
        options = []
        for opt in data.get("options") or []:
            if "code" in opt:
                options.append(FieldOption(str(opt["code"]), str(opt.get("displayName") or opt["code"])))
            elif "value" in opt:
                options.append(FieldOption(str(opt["value"]), str(opt.get("label") or opt["value"])))
        return cls(
            field_path=path,
            field_type=FieldType.from_string(data.get("fieldType") or data.get("field_type") or ""),
            display_name=data.get("displayName") or data.get("display_name") or "",
            is_required=bool(data.get("isRequired", False)),
            is_editable=bool(data.get("isEditable", True)),
            is_sortable=bool(data.get("isSortable", False)),
            is_searchable=bool(data.get("isSearchable", False)),
            is_filterable=bool(data.get("isFilterable", False)),
            display_order=int(data.get("displayOrder") or 0),
            width=data.get("width"),
            min_width=data.get("minWidth"),
            lookup_type=data.get("lookupType"),
            options=tuple(options),
            reference_collection=data.get("referenceCollection"),
            reference_display_field=data.get("referenceDisplayField"),
            default_value=data.get("defaultValue"),
            default_visible=bool(data.get("defaultVisible", True)),
            render_as=data.get("renderAs"),
        )


class FieldSchema:
    """Ordered, immutable descriptor list for one collection.

    Provided wholesale when a tree mounts; nothing below mutates it.
    """

    def __init__(self, collection: str, descriptors: Iterable[FieldDescriptor]):
        self.collection = collection
        ordered = sorted(descriptors, key=lambda d: d.display_order)
        self._descriptors: List[FieldDescriptor] = ordered
        self._by_path: Dict[str, FieldDescriptor] = {}
        for desc in ordered:
            if desc.field_path in self._by_path:
                raise SchemaError(f"Duplicate field path: {desc.field_path}")
            self._by_path[desc.field_path] = desc
        self._check_title()

    def _check_title(self) -> None:
        title = self._by_path.get(TITLE_PATH)
        if title is None:
            raise SchemaError(f"{self.collection}: schema has no '{TITLE_PATH}' field")
        if not title.is_required or not title.is_editable:
            raise SchemaError(f"{self.collection}: '{TITLE_PATH}' must be required and editable")

    @classmethod
    def from_dicts(cls, collection: str, items: Iterable[Dict[str, Any]]) -> "FieldSchema":
        return cls(collection, [FieldDescriptor.from_dict(item) for item in items])

    def __iter__(self):
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, path: str) -> bool:
        return path in self._by_path

    def get(self, path: str) -> Optional[FieldDescriptor]:
        return self._by_path.get(path)

    def require(self, path: str) -> FieldDescriptor:
        desc = self._by_path.get(path)
        if desc is None:
            raise SchemaError(f"{self.collection}: unknown field '{path}'")
        return desc

    @property
    def title(self) -> FieldDescriptor:
        return self._by_path[TITLE_PATH]

    def editable(self) -> List[FieldDescriptor]:
        return [d for d in self._descriptors if d.is_editable]

    def visible(self, columns: Optional[Sequence[str]] = None) -> List[FieldDescriptor]:
        """Columns in the requested order, or default-visible descriptors in display order."""
        if columns:
            return [self._by_path[c] for c in columns if c in self._by_path]
        return [d for d in self._descriptors if d.default_visible]


__all__ = [
    "FieldType",
    "FieldOption",
    "FieldDescriptor",
    "FieldSchema",
    "TITLE_PATH",
    "FIXED_CHOICE_COLLECTIONS",
]
