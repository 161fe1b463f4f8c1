from typing import Optional, Sequence


class TaskTreeError(RuntimeError):
    pass


class SchemaError(TaskTreeError):
    pass


class TransientFetchFailure(TaskTreeError):
    """Child list or lookup fetch failed; callers recover with an empty result."""


class SaveFailure(TaskTreeError):
    def __init__(self, message: str, task_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class ValidationRejection(TaskTreeError):
    """A single save was refused because one field's value is malformed."""

    def __init__(self, field_path: str, message: str) -> None:
        super().__init__(f"{field_path}: {message}")
        self.field_path = field_path
        self.message = message


class BatchMutationError(TaskTreeError):
    def __init__(self, message: str, task_ids: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.task_ids = list(task_ids)


__all__ = [
    "TaskTreeError",
    "SchemaError",
    "TransientFetchFailure",
    "SaveFailure",
    "ValidationRejection",
    "BatchMutationError",
]
