from .status import Status, ARCHIVED, HITL_PENDING_STATUS, URGENCY_CODES, normalize_status_code, next_code
from .task import (
    Task,
    LookupValue,
    UserRef,
    CORE_FIELDS,
    TASK_TYPE_FLOW,
    TASK_TYPE_AGENT,
    TASK_TYPE_EXTERNAL,
    TASK_TYPE_FOREACH,
)
from .field_schema import (
    FieldType,
    FieldOption,
    FieldDescriptor,
    FieldSchema,
    TITLE_PATH,
)
from .errors import (
    TaskTreeError,
    SchemaError,
    TransientFetchFailure,
    SaveFailure,
    ValidationRejection,
    BatchMutationError,
)

__all__ = [
    "Status",
    "ARCHIVED",
    "HITL_PENDING_STATUS",
    "URGENCY_CODES",
    "normalize_status_code",
    "next_code",
    # Entities
    "Task",
    "LookupValue",
    "UserRef",
    "CORE_FIELDS",
    "TASK_TYPE_FLOW",
    "TASK_TYPE_AGENT",
    "TASK_TYPE_EXTERNAL",
    "TASK_TYPE_FOREACH",
    # Schema
    "FieldType",
    "FieldOption",
    "FieldDescriptor",
    "FieldSchema",
    "TITLE_PATH",
    # Errors
    "TaskTreeError",
    "SchemaError",
    "TransientFetchFailure",
    "SaveFailure",
    "ValidationRejection",
    "BatchMutationError",
]
