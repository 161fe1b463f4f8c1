"""Per-cell edit state machine.

A cell moves Viewing -> Editing -> Committing -> Viewing, or back to Viewing
on cancel. Boolean cells skip Editing: activation commits the negated value.
Editor behaviour is chosen once per descriptor by ``editor_for``.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from application.ports import LookupProvider, Scheduler
from core import FieldDescriptor, FieldType, LookupValue, SchemaError, Task, UserRef
from core.console.application.scheduling import Debouncer, spawn

logger = logging.getLogger("task_tree.cell")

SEARCH_DEBOUNCE_SECONDS = 0.3
SEARCH_LIMIT = 20

SaveCallback = Callable[[str, Any], Awaitable[Any]]


class EditPhase(Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    COMMITTING = "committing"


class Activation(Enum):
    INLINE = "inline"
    TOGGLE = "toggle"
    CHOICE = "choice"
    SEARCH = "search"


def parse_text(raw: Any) -> str:
    return "" if raw is None else str(raw)


def parse_number(raw: Any) -> Any:
    """Unparseable input commits as 0 so transient typing never blocks an edit."""
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw or "").strip()
    try:
        value = float(text)
    except ValueError:
        return 0
    if value != value or value in (float("inf"), float("-inf")):
        return 0
    if value.is_integer() and "." not in text and "e" not in text.lower():
        return int(value)
    return value


def parse_tags(raw: Any) -> List[str]:
    if isinstance(raw, (list, tuple)):
        return [str(t).strip() for t in raw if str(t).strip()]
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def _parse_iso(text: str) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_date(raw: Any) -> Optional[str]:
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return raw.isoformat()
    parsed = raw if isinstance(raw, datetime) else _parse_iso(str(raw or ""))
    return parsed.date().isoformat() if parsed else None


def parse_datetime(raw: Any) -> Optional[str]:
    if isinstance(raw, datetime):
        parsed: Optional[datetime] = raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    else:
        parsed = _parse_iso(str(raw or ""))
    if parsed is None:
        return None
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_choice(raw: Any) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


def parse_boolean(raw: Any) -> bool:
    return bool(raw)


def format_text(value: Any) -> str:
    return "" if value is None else str(value)


def format_tags(value: Any) -> str:
    return ", ".join(str(v) for v in value) if isinstance(value, (list, tuple)) else ""


def format_date(value: Any) -> str:
    parsed = parse_date(value) if value else None
    return parsed or ""


def format_datetime(value: Any) -> str:
    parsed = parse_datetime(value) if value else None
    # Editor shows minutes precision, the way a datetime-local input does.
    return parsed[:16] if parsed else ""


@dataclass(frozen=True)
class EditorBehavior:
    activation: Activation
    # False for editors drawn in an overlay outside the cell; those never
    # treat a click outside the cell as a cancel.
    renders_within_cell: bool
    parse: Callable[[Any], Any]
    format: Callable[[Any], str]
    multiline: bool = False


def editor_for(descriptor: FieldDescriptor) -> EditorBehavior:
    ft = descriptor.field_type
    if ft is FieldType.TEXT:
        return EditorBehavior(Activation.INLINE, True, parse_text, format_text)
    if ft is FieldType.TEXTAREA:
        return EditorBehavior(Activation.INLINE, True, parse_text, format_text, multiline=True)
    if ft is FieldType.NUMBER:
        return EditorBehavior(Activation.INLINE, True, parse_number, format_text)
    if ft is FieldType.DATE:
        return EditorBehavior(Activation.INLINE, True, parse_date, format_date)
    if ft is FieldType.DATETIME:
        return EditorBehavior(Activation.INLINE, True, parse_datetime, format_datetime)
    if ft is FieldType.TAGS:
        return EditorBehavior(Activation.INLINE, True, parse_tags, format_tags)
    if ft is FieldType.BOOLEAN:
        return EditorBehavior(Activation.TOGGLE, True, parse_boolean, format_text)
    if ft is FieldType.SELECT:
        return EditorBehavior(Activation.CHOICE, False, parse_choice, format_text)
    if ft is FieldType.REFERENCE:
        if descriptor.is_fixed_choice_reference:
            return EditorBehavior(Activation.CHOICE, False, parse_choice, format_text)
        return EditorBehavior(Activation.SEARCH, False, parse_choice, format_text)
    raise SchemaError(f"No editor for field type {ft!r}")


@dataclass(frozen=True)
class ChoiceOption:
    value: Optional[str]
    label: str
    hint: str = ""
    color: str = ""


def select_options(descriptor: FieldDescriptor, lookups: Dict[str, List[LookupValue]]) -> List[ChoiceOption]:
    if descriptor.lookup_type:
        return [
            ChoiceOption(lv.code, lv.display_name, color=lv.color)
            for lv in lookups.get(descriptor.lookup_type, [])
            if lv.code
        ]
    return [ChoiceOption(opt.value, opt.label) for opt in descriptor.options if opt.value]


def user_options(users: Sequence[UserRef], query: str) -> List[ChoiceOption]:
    needle = (query or "").lower()
    options = [ChoiceOption(None, "Unassigned")]
    for user in users:
        if needle and needle not in user.display_name.lower() and needle not in (user.email or "").lower():
            continue
        options.append(ChoiceOption(user.id, user.display_name, hint=user.email))
    return options


def task_options(tasks: Sequence[Task], exclude: Optional[str] = None) -> List[ChoiceOption]:
    """Parent picker entries; the edited task itself is never offered."""
    options = [ChoiceOption(None, "No parent (root task)")]
    for task in tasks:
        if exclude is not None and task.id == exclude:
            continue
        options.append(ChoiceOption(task.id, task.title, hint=f"{task.status} • {task.id[-6:]}"))
    return options


class CellEditSession:
    """Owns the editing state of one (task, field) cell."""

    def __init__(
        self,
        descriptor: FieldDescriptor,
        value: Any,
        on_save: SaveCallback,
        *,
        lookups: Optional[Dict[str, List[LookupValue]]] = None,
        users: Sequence[UserRef] = (),
        lookup_provider: Optional[LookupProvider] = None,
        scheduler: Optional[Scheduler] = None,
        search_delay: float = SEARCH_DEBOUNCE_SECONDS,
        task_id: Optional[str] = None,
    ) -> None:
        self.descriptor = descriptor
        self.task_id = task_id
        self.behavior = editor_for(descriptor)
        self.on_save = on_save
        self.lookups = lookups or {}
        self.users = list(users)
        self.lookup_provider = lookup_provider
        self.phase = EditPhase.VIEWING
        self.persisted = value
        self.candidate = value
        self.text = ""
        self.query = ""
        self.search_results: List[Task] = []
        self.searching = False
        self.error: Optional[str] = None
        self.pending_search = None
        self._search = Debouncer(scheduler, search_delay, self._run_search) if scheduler else None

    @property
    def field_path(self) -> str:
        return self.descriptor.field_path

    @property
    def is_editing(self) -> bool:
        return self.phase is EditPhase.EDITING

    def sync(self, value: Any) -> None:
        """Accept a fresher persisted value; ignored while an edit is open."""
        if self.phase is EditPhase.VIEWING:
            self.persisted = value
            self.candidate = value

    async def activate(self) -> bool:
        if self.phase is not EditPhase.VIEWING:
            return False
        activation = self.behavior.activation
        if activation is Activation.TOGGLE:
            return await self._save(not bool(self.persisted))
        self.error = None
        self.candidate = self.persisted
        self.phase = EditPhase.EDITING
        if activation is Activation.INLINE:
            self.text = self.behavior.format(self.persisted)
        elif activation is Activation.SEARCH:
            self.query = ""
            self.pending_search = spawn(self._search_now(""))
        else:
            self.query = ""
        return True

    def set_text(self, raw: str) -> None:
        if self.phase is not EditPhase.EDITING:
            return
        self.text = raw
        self.candidate = self.behavior.parse(raw)

    def set_query(self, query: str) -> None:
        if self.phase is not EditPhase.EDITING:
            return
        self.query = query
        if self.behavior.activation is Activation.SEARCH and self._search is not None:
            self._search.trigger()

    def options(self) -> List[ChoiceOption]:
        if self.descriptor.field_type is FieldType.SELECT:
            return select_options(self.descriptor, self.lookups)
        if self.behavior.activation is Activation.CHOICE:
            return user_options(self.users, self.query)
        if self.behavior.activation is Activation.SEARCH:
            return task_options(self.search_results, exclude=self.task_id)
        return []

    async def commit(self) -> bool:
        """Persist the candidate; exactly one save per session."""
        if self.behavior.activation is Activation.TOGGLE or self.phase is not EditPhase.EDITING:
            return False
        return await self._save(self.candidate)

    async def _save(self, final: Any) -> bool:
        toggling = self.behavior.activation is Activation.TOGGLE
        self.phase = EditPhase.COMMITTING
        self._cancel_search()
        try:
            await self.on_save(self.field_path, final)
        except Exception as exc:
            logger.warning("Saving %s failed: %s", self.field_path, exc)
            self.error = str(exc)
            self.candidate = final
            self.phase = EditPhase.VIEWING if toggling else EditPhase.EDITING
            return False
        self.error = None
        self.persisted = final
        self.candidate = final
        self.text = ""
        self.query = ""
        self.phase = EditPhase.VIEWING
        return True

    async def select_option(self, value: Optional[str]) -> bool:
        if self.behavior.activation not in (Activation.CHOICE, Activation.SEARCH):
            return False
        if self.phase is not EditPhase.EDITING:
            return False
        self.candidate = value
        return await self._save(value)

    async def blur(self) -> bool:
        if self.behavior.activation is not Activation.INLINE:
            return False
        return await self.commit()

    async def handle_key(self, key: str) -> bool:
        activation = self.behavior.activation
        if activation is Activation.TOGGLE:
            if key in ("enter", "space"):
                return await self.activate()
            return False
        if self.phase is not EditPhase.EDITING:
            return False
        if key == "escape":
            self.cancel()
            return True
        if activation is not Activation.INLINE:
            return False
        if key == "meta-enter" or (key == "enter" and not self.behavior.multiline):
            await self.commit()
            return True
        return False

    def outside_click(self) -> bool:
        if self.phase is not EditPhase.EDITING or not self.behavior.renders_within_cell:
            return False
        self.cancel()
        return True

    def cancel(self) -> None:
        if self.phase is not EditPhase.EDITING:
            return
        self._cancel_search()
        self.candidate = self.persisted
        self.text = ""
        self.query = ""
        self.error = None
        self.phase = EditPhase.VIEWING

    def _cancel_search(self) -> None:
        if self._search is not None:
            self._search.cancel()

    def _run_search(self) -> None:
        self.pending_search = spawn(self._search_now(self.query))

    async def _search_now(self, query: str) -> List[Task]:
        if self.lookup_provider is None:
            self.search_results = []
            return []
        self.searching = True
        try:
            results = await self.lookup_provider.search(query, SEARCH_LIMIT)
        except Exception as exc:
            logger.warning("Lookup search %r failed: %s", query, exc)
            results = []
        finally:
            self.searching = False
        if self.phase is EditPhase.EDITING and query == self.query:
            self.search_results = list(results)
        return self.search_results


__all__ = [
    "EditPhase",
    "Activation",
    "EditorBehavior",
    "ChoiceOption",
    "CellEditSession",
    "editor_for",
    "select_options",
    "user_options",
    "task_options",
    "parse_number",
    "parse_tags",
    "parse_date",
    "parse_datetime",
    "format_tags",
    "format_datetime",
    "SEARCH_DEBOUNCE_SECONDS",
]
