"""Debounced persistence for the detail editor.

Every form change resets one timer. When it fires the current values are
serialized and compared with the last saved serialization; identical values
issue no write. Closing the editor with a timer pending saves immediately.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from application.ports import Scheduler, TaskStore
from core import (
    FieldSchema,
    SaveFailure,
    TASK_TYPE_EXTERNAL,
    Task,
    ValidationRejection,
)
from core.console.application.detail_form import DetailForm, serialize
from core.console.application.scheduling import Debouncer, spawn

logger = logging.getLogger("task_tree.autosave")

AUTOSAVE_DELAY_SECONDS = 0.8


@dataclass
class PendingSave:
    entity_id: str
    last_saved: str
    debounce: Optional[Debouncer] = field(default=None, repr=False)

    @property
    def timer_pending(self) -> bool:
        return bool(self.debounce and self.debounce.pending)


class AutosaveScheduler:
    def __init__(
        self,
        store: TaskStore,
        schema: FieldSchema,
        scheduler: Scheduler,
        *,
        delay: float = AUTOSAVE_DELAY_SECONDS,
        on_saved: Optional[Callable[[Task], None]] = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.delay = delay
        self.on_saved = on_saved
        self.form = DetailForm(schema)
        self.task: Optional[Task] = None
        self.parent: Optional[Task] = None
        self.pending: Optional[PendingSave] = None
        self.is_open = False
        self.last_error: Optional[str] = None
        self.field_errors: Dict[str, str] = {}
        self.webhook_config: Optional[Dict[str, Any]] = None
        self.last_dispatch = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_creating(self) -> bool:
        return self.is_open and self.task is None

    def open(self, task: Optional[Task], parent: Optional[Task] = None) -> None:
        if self.is_open:
            self.close()
        self.task = task
        self.parent = parent
        self.last_error = None
        self.field_errors = {}
        if task is not None:
            values = self.form.load(task)
            self.webhook_config = task.webhook_config
            self.pending = PendingSave(
                task.id,
                serialize(values),
                Debouncer(self.scheduler, self.delay, self._on_timer),
            )
            self._unsubscribe = self.form.watch(self._on_change)
        else:
            values = self.form.default_values()
            if parent is not None:
                values["parentId"] = parent.id
            self.form.reset(values)
            self.webhook_config = None
            self.pending = None
        self.is_open = True

    def close(self):
        """Close the editor; a pending debounced save is executed now, never dropped."""
        if not self.is_open:
            return None
        flush = None
        pending = self.pending
        if self.task is not None and pending is not None and pending.debounce and pending.debounce.cancel():
            flush = spawn(self._save(self.task, pending, self.form.snapshot()))
            self.last_dispatch = flush
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.is_open = False
        self.pending = None
        self.task = None
        self.parent = None
        return flush

    def _on_change(self, path: str, value: Any) -> None:
        if self.pending is not None and self.pending.debounce is not None:
            self.pending.debounce.trigger()

    def _on_timer(self) -> None:
        if self.task is None or self.pending is None:
            return
        self.last_dispatch = spawn(self._save(self.task, self.pending, self.form.snapshot()))

    async def perform_save(self) -> bool:
        if self.task is None or self.pending is None:
            return False
        return await self._save(self.task, self.pending, self.form.snapshot())

    def title_blur(self):
        """Blur on the title saves through the same skip-if-unchanged path."""
        if self.task is None or self.pending is None:
            return None
        self.last_dispatch = spawn(self._save(self.task, self.pending, self.form.snapshot()))
        return self.last_dispatch

    async def _save(self, task: Task, pending: PendingSave, values: Dict[str, Any]) -> bool:
        serialized = serialize(values)
        if serialized == pending.last_saved:
            return False
        payload = self.form.build_task_data(values)
        try:
            updated = await self.store.update_one(task.id, payload)
        except Exception as exc:
            # Not retried; the next change or close tries again.
            logger.warning("Autosave of %s failed: %s", task.id, exc)
            self.last_error = str(exc)
            return False
        pending.last_saved = serialized
        self.last_error = None
        if updated is not None and self.task is not None and self.task.id == updated.id:
            self.task = updated
        if self.on_saved is not None and updated is not None:
            self.on_saved(updated)
        return True

    async def change_status(self, code: str) -> bool:
        """Status is written on its own, immediately, outside the debounce."""
        self.form.set_value("status", code)
        if self.task is None:
            return False
        return await self._narrow_update("status", {"status": code})

    async def save_metadata(self, text: str) -> bool:
        trimmed = (text or "").strip()
        if not trimmed:
            parsed: Any = {}
        else:
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                self.field_errors["metadata"] = "Invalid JSON"
                raise ValidationRejection("metadata", "Invalid JSON")
        self.field_errors.pop("metadata", None)
        if self.task is None:
            return False
        return await self._narrow_update("metadata", {"metadata": parsed})

    async def save_expected_count(self, raw: str) -> bool:
        if self.task is None:
            return False
        try:
            expected = int(str(raw).strip())
        except ValueError:
            expected = 0
        counters = dict(self.task.batch_counters or {})
        if counters.get("expectedCount") == expected:
            return False
        counters["expectedCount"] = expected
        return await self._narrow_update("batchCounters", {"batchCounters": counters})

    async def save_webhook_config(self, config: Dict[str, Any]) -> bool:
        self.webhook_config = dict(config)
        if self.task is None:
            return False
        return await self._narrow_update("webhookConfig", {"webhookConfig": self.webhook_config})

    async def _narrow_update(self, field_path: str, payload: Dict[str, Any]) -> bool:
        task = self.task
        if task is None:
            return False
        try:
            updated = await self.store.update_one(task.id, payload)
        except ValidationRejection as exc:
            self.field_errors[exc.field_path] = exc.message
            return False
        except Exception as exc:
            logger.warning("Saving %s of %s failed: %s", field_path, task.id, exc)
            self.last_error = str(exc)
            return False
        self.field_errors.pop(field_path, None)
        if updated is not None and self.task is not None and self.task.id == updated.id:
            self.task = updated
        if self.on_saved is not None and updated is not None:
            self.on_saved(updated)
        return True

    async def submit(self) -> Task:
        """Explicit save: creates a task in create mode, otherwise writes the full field set."""
        values = self.form.snapshot()
        if self.task is None:
            title = str(values.get("title") or "")
            if not title.strip():
                self.field_errors["title"] = "Title is required"
                raise ValidationRejection("title", "Title is required")
            data = self.form.build_create_data(values)
            if self.parent is not None:
                data["parentId"] = self.parent.id
            if data.get("taskType") == TASK_TYPE_EXTERNAL and self.webhook_config:
                data["webhookConfig"] = self.webhook_config
            try:
                created = await self.store.create_one(data)
            except ValidationRejection:
                raise
            except Exception as exc:
                raise SaveFailure(f"Create failed: {exc}") from exc
            if self.on_saved is not None:
                self.on_saved(created)
            self.close()
            return created
        task = self.task
        data = self.form.build_create_data(values)
        if data.get("taskType") == TASK_TYPE_EXTERNAL and self.webhook_config:
            data["webhookConfig"] = self.webhook_config
        if self.pending is not None and self.pending.debounce is not None:
            self.pending.debounce.cancel()
        try:
            updated = await self.store.update_one(task.id, data)
        except ValidationRejection:
            raise
        except Exception as exc:
            raise SaveFailure(f"Update failed: {exc}", task.id) from exc
        if self.pending is not None:
            self.pending.last_saved = serialize(values)
        if self.on_saved is not None and updated is not None:
            self.on_saved(updated)
        self.close()
        return updated


__all__ = ["AutosaveScheduler", "PendingSave", "AUTOSAVE_DELAY_SECONDS"]
