"""Expansion state for the lazily loaded task tree.

The expand-all flag is only true while every expandable node of the
materialized tree (roots plus every fetched child list) is expanded. Flow
tasks are never expanded inline; toggling one hands it to ``on_open_flow``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Sequence, Set

from application.ports import PreferenceStore, TaskStore
from core import Task
from config import DEFAULT_EXPAND_ALL_THRESHOLD

logger = logging.getLogger("task_tree.expansion")


@dataclass(frozen=True)
class ExpansionState:
    expanded: FrozenSet[str]
    expand_all: bool


class ExpansionController:
    def __init__(
        self,
        store: TaskStore,
        *,
        preferences: Optional[PreferenceStore] = None,
        on_open_flow: Optional[Callable[[Task], None]] = None,
        threshold: int = DEFAULT_EXPAND_ALL_THRESHOLD,
    ) -> None:
        self.store = store
        self.preferences = preferences
        self.on_open_flow = on_open_flow
        self.threshold = threshold
        self.roots: List[Task] = []
        self.expanded: Set[str] = set()
        self.expand_all = False
        self._children: Dict[str, List[Task]] = {}
        self._failed: Set[str] = set()
        self._inflight: Dict[str, "asyncio.Future"] = {}
        self._generation = 0
        self._preference_applied = False

    # --- queries -----------------------------------------------------------------

    def state(self) -> ExpansionState:
        return ExpansionState(frozenset(self.expanded), self.expand_all)

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self.expanded

    def is_loading(self, node_id: str) -> bool:
        return node_id in self._inflight

    def has_failed(self, node_id: str) -> bool:
        return node_id in self._failed

    def is_cached(self, node_id: str) -> bool:
        return node_id in self._children

    def children_of(self, node_id: str) -> List[Task]:
        """Fetched children, or an empty list while unloaded or after a failed fetch."""
        return list(self._children.get(node_id, []))

    def has_children(self, task: Task) -> bool:
        """Toggle affordance: fetched children when expanded, otherwise the embedded snapshot."""
        if task.id in self.expanded and task.id in self._children:
            return bool(self._children[task.id])
        return task.has_child_hint()

    def materialized(self) -> Iterator[Task]:
        seen: Set[str] = set()
        stack = list(reversed(self.roots))
        while stack:
            task = stack.pop()
            if task.id in seen:
                continue
            seen.add(task.id)
            yield task
            if not task.is_flow:
                stack.extend(reversed(self._children.get(task.id, [])))

    def expandable_ids(self) -> Set[str]:
        return {t.id for t in self.materialized() if self._expandable(t)}

    def _expandable(self, task: Task) -> bool:
        if task.is_flow:
            return False
        if task.id in self._children:
            return bool(self._children[task.id])
        return task.has_child_hint()

    def _all_expanded(self) -> bool:
        expandable = self.expandable_ids()
        return bool(expandable) and expandable <= self.expanded

    # --- operations --------------------------------------------------------------

    async def set_roots(self, roots: Sequence[Task]) -> None:
        self.roots = list(roots)
        if self.expand_all:
            await self._expand_pending(self._generation)

    async def toggle(self, task: Task) -> None:
        if task.is_flow:
            if self.on_open_flow is not None:
                self.on_open_flow(task)
            return
        if task.id in self.expanded:
            self.expanded.discard(task.id)
            # A single collapse can never leave "all expanded" true.
            self.expand_all = False
            return
        await self._expand(task, None)
        if not self.expand_all and self._all_expanded():
            self.expand_all = True

    async def set_expand_all(self, enabled: bool) -> None:
        self._generation += 1
        if self.preferences is not None:
            self.preferences.set_expand_all(enabled)
        if not enabled:
            self.expand_all = False
            self.expanded.clear()
            return
        self.expand_all = True
        await self._expand_pending(self._generation)

    async def apply_saved_preference(self, root_count: Optional[int] = None) -> bool:
        """Apply the remembered expand-all preference once per mount, below the size threshold."""
        if self._preference_applied or self.preferences is None:
            return False
        self._preference_applied = True
        if not self.preferences.get_expand_all():
            return False
        count = len(self.roots) if root_count is None else root_count
        if count > self.threshold:
            logger.info("Expand-all preference not applied: %s root items > %s", count, self.threshold)
            return False
        await self.set_expand_all(True)
        return True

    async def retry(self, node_id: str) -> None:
        if node_id in self._failed:
            await self._fetch(node_id)
            if self.expand_all and node_id in self.expanded:
                await self._cascade(node_id)

    def invalidate(self, node_id: str) -> None:
        self._children.pop(node_id, None)
        self._failed.discard(node_id)

    async def refresh(self, node_id: str) -> None:
        self.invalidate(node_id)
        if node_id in self.expanded:
            await self._fetch(node_id)

    def replace(self, task: Task) -> bool:
        """Swap a task object in place wherever it is materialized."""
        replaced = False
        for level in [self.roots, *self._children.values()]:
            for idx, current in enumerate(level):
                if current.id == task.id:
                    level[idx] = task
                    replaced = True
        return replaced

    def forget(self, node_ids: Sequence[str]) -> None:
        ids = set(node_ids)
        self.roots = [t for t in self.roots if t.id not in ids]
        for parent_id in list(self._children):
            if parent_id in ids:
                self._children.pop(parent_id, None)
                continue
            self._children[parent_id] = [t for t in self._children[parent_id] if t.id not in ids]
        self.expanded -= ids
        self._failed -= ids

    # --- internals ---------------------------------------------------------------

    async def _expand_pending(self, generation: int) -> None:
        targets = [t for t in self.materialized() if self._expandable(t) and t.id not in self.expanded]
        if targets:
            await asyncio.gather(*(self._expand(t, generation) for t in targets))

    async def _expand(self, task: Task, generation: Optional[int]) -> None:
        if task.is_flow:
            return
        if generation is not None and (generation != self._generation or not self.expand_all):
            return
        self.expanded.add(task.id)
        if task.id not in self._children:
            await self._fetch(task.id)
        if self.expand_all and task.id in self.expanded:
            await self._cascade(task.id)

    async def _cascade(self, node_id: str) -> None:
        generation = self._generation
        revealed = [
            child
            for child in self._children.get(node_id, [])
            if self._expandable(child) and child.id not in self.expanded
        ]
        if revealed:
            await asyncio.gather(*(self._expand(child, generation) for child in revealed))

    async def _fetch(self, node_id: str) -> None:
        existing = self._inflight.get(node_id)
        if existing is not None:
            await existing
            return
        future = asyncio.ensure_future(self._load(node_id))
        self._inflight[node_id] = future
        try:
            await future
        finally:
            self._inflight.pop(node_id, None)

    async def _load(self, node_id: str) -> None:
        try:
            children = await self.store.list_children(node_id)
        except Exception as exc:
            # Node stays expanded with no children so the user can retry.
            logger.warning("Loading children of %s failed: %s", node_id, exc)
            self._failed.add(node_id)
            return
        self._failed.discard(node_id)
        self._children[node_id] = list(children)


__all__ = ["ExpansionController", "ExpansionState"]
