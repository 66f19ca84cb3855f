"""
Stage store contract consumed by the phase workflow.

The executor and notifier never talk HTTP or SQL directly; they go through
a ``StageStore``. ``StageGateway`` (residentone.integrations) is the HTTP
implementation; tests pass in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class StageAction(Enum):
    """Every mutation the board can request on a stage."""

    START = "start"
    COMPLETE = "complete"
    REOPEN = "reopen"
    MARK_NOT_APPLICABLE = "mark_not_applicable"
    MARK_APPLICABLE = "mark_applicable"
    ASSIGN = "assign"
    SET_DUE_DATE = "set_due_date"

    @property
    def wire_keyword(self) -> str | None:
        """Keyword sent to the stage mutation endpoint (None for due-date updates)."""
        if self is StageAction.SET_DUE_DATE:
            return None
        return self.value


@dataclass
class StoreResult:
    """Outcome of a single store call. Never raised, always returned."""

    ok: bool
    error: str | None = None
    status_code: int | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data=None, status_code=200):
        return cls(ok=True, status_code=status_code, data=data or {})

    @classmethod
    def failure(cls, error, status_code=None, data=None):
        return cls(ok=False, error=error, status_code=status_code, data=data or {})


class StageStore(Protocol):
    def get_phases(self, room_id: int) -> list:
        ...

    def patch_stage(self, stage_id: int, action: StageAction,
                    member_id: int | None = None) -> StoreResult:
        ...

    def set_stage_due_date(self, stage_id: int, due_date: datetime | None) -> StoreResult:
        ...

    def notify_stage(self, stage_id: int) -> StoreResult:
        ...
