from enum import Enum
from typing import Final, List


class Status(Enum):
    PENDING = ("pending", "status.pending", "○")
    IN_PROGRESS = ("in_progress", "status.active", "●")
    WAITING = ("waiting", "status.waiting", "◔")
    ON_HOLD = ("on_hold", "status.waiting", "‖")
    COMPLETED = ("completed", "status.ok", "✓")
    FAILED = ("failed", "status.fail", "✗")
    CANCELLED = ("cancelled", "status.dim", "⊘")
    ARCHIVED = ("archived", "status.dim", "▣")
    UNKNOWN = ("?", "status.unknown", "?")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def style(self) -> str:
        return self.value[1]

    @property
    def icon(self) -> str:
        return self.value[2]

    @classmethod
    def from_string(cls, value: str) -> "Status":
        val = normalize_status_code(value)
        for status in cls:
            if status.code == val:
                return status
        return cls.UNKNOWN


ARCHIVED: Final[str] = Status.ARCHIVED.code
# Tasks waiting on a human reviewer.
HITL_PENDING_STATUS: Final[str] = Status.WAITING.code

URGENCY_CODES: Final[List[str]] = ["low", "normal", "high", "urgent"]


def normalize_status_code(value: str) -> str:
    """Normalize status input to the lookup code form (lowercase, spaces→underscores)."""
    return (value or "").strip().lower().replace(" ", "_").replace("-", "_")


def next_code(codes: List[str], current: str) -> str:
    """Cycle through lookup codes; unknown current values start from the first code."""
    if not codes:
        return current
    try:
        idx = codes.index(current)
    except ValueError:
        return codes[0]
    return codes[(idx + 1) % len(codes)]
