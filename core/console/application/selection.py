"""Row selection and batch mutations over the rendered projection."""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set

from application.ports import TaskStore
from core import ARCHIVED, BatchMutationError

logger = logging.getLogger("task_tree.selection")

ConfirmCallback = Callable[[int], Awaitable[bool]]


class SelectionController:
    def __init__(self, store: TaskStore, *, on_mutated: Optional[Callable[[List[str], Dict[str, Any]], None]] = None) -> None:
        self.store = store
        self.on_mutated = on_mutated
        self.selected: Set[str] = set()
        # Render order of the last projection, used to keep batch ids stable.
        self._order: List[str] = []

    def __len__(self) -> int:
        return len(self.selected)

    def is_selected(self, task_id: str) -> bool:
        return task_id in self.selected

    def toggle_one(self, task_id: str) -> None:
        if task_id in self.selected:
            self.selected.discard(task_id)
        else:
            self.selected.add(task_id)

    def toggle_all(self, root_ids: Sequence[str]) -> None:
        """Select every rendered root row, or clear when they are all selected already."""
        roots = list(root_ids)
        if roots and all(rid in self.selected for rid in roots) and len(self.selected) == len(roots):
            self.selected.clear()
            return
        self.selected = set(roots)

    def all_selected(self, root_ids: Sequence[str]) -> bool:
        roots = list(root_ids)
        return bool(roots) and len(self.selected) == len(roots) and all(r in self.selected for r in roots)

    def clear(self) -> None:
        self.selected.clear()

    def retain(self, visible_ids: Iterable[str]) -> None:
        """Drop ids that are no longer part of the rendered rows."""
        order = list(visible_ids)
        self._order = order
        self.selected &= set(order)

    def captured(self) -> List[str]:
        ordered = [tid for tid in self._order if tid in self.selected]
        rest = sorted(self.selected.difference(ordered))
        return ordered + rest

    async def set_status(self, status: str) -> int:
        return await self._update({"status": status})

    async def set_urgency(self, urgency: str) -> int:
        return await self._update({"urgency": urgency})

    async def set_assignee(self, assignee_id: Optional[str]) -> int:
        return await self._update({"assigneeId": assignee_id})

    async def archive(self) -> int:
        return await self.set_status(ARCHIVED)

    async def delete(self, confirm: ConfirmCallback) -> int:
        """Delete the selection after an explicit confirmation; irreversible once dispatched."""
        ids = self.captured()
        if not ids:
            return 0
        if not await confirm(len(ids)):
            return 0
        try:
            await self.store.delete_many(ids)
        except BatchMutationError:
            raise
        except Exception as exc:
            raise BatchMutationError(f"Bulk delete failed: {exc}", ids) from exc
        self.selected.clear()
        self._notify(ids, {})
        return len(ids)

    async def _update(self, fields: Dict[str, Any]) -> int:
        ids = self.captured()
        if not ids:
            return 0
        try:
            await self.store.update_many(ids, fields)
        except BatchMutationError:
            raise
        except Exception as exc:
            raise BatchMutationError(f"Bulk update failed: {exc}", ids) from exc
        self.selected.clear()
        self._notify(ids, fields)
        return len(ids)

    def _notify(self, ids: List[str], fields: Dict[str, Any]) -> None:
        if self.on_mutated is None:
            return
        try:
            self.on_mutated(ids, fields)
        except Exception as exc:
            logger.warning("Post-mutation refresh failed: %s", exc)


__all__ = ["SelectionController"]
