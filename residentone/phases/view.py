"""
Client-side view of a room's phases.

A ``Phase`` is an immutable snapshot built from the phase read endpoint
(``GET /rooms/<id>/phases``). The workflow never mutates one; after every
successful mutation it re-reads the whole room.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from residentone.core.exceptions import AmbiguousPhaseError
from residentone.phases.registry import PhaseKind, canonical_phase
from residentone.utils.helpers import parse_datetime

BULK_KEY = "bulk"


class PhaseStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    NOT_APPLICABLE = "NOT_APPLICABLE"


@dataclass(frozen=True)
class TeamMemberRef:
    id: int
    name: str
    email: str = ""
    role: str | None = None

    @classmethod
    def from_payload(cls, data):
        if not data:
            return None
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            email=data.get("email") or "",
            role=data.get("role"),
        )


@dataclass(frozen=True)
class Phase:
    kind: PhaseKind
    status: PhaseStatus = PhaseStatus.PENDING
    assigned_user: TeamMemberRef | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    due_date: datetime | None = None
    stage_id: int | None = None
    room_id: int | None = None

    @property
    def key(self) -> str:
        """In-flight key for this phase."""
        return self.kind.value

    @classmethod
    def from_payload(cls, data, room_id=None):
        """Build a phase from one entry of the phase read payload.

        The phase identifier is canonicalised, so a legacy ``RENDERING``
        entry comes back as ``PhaseKind.THREE_D``.
        """
        return cls(
            kind=canonical_phase(data.get("phase") or data.get("id")),
            status=PhaseStatus(data.get("status") or PhaseStatus.PENDING.value),
            assigned_user=TeamMemberRef.from_payload(data.get("assigned_user")),
            started_at=parse_datetime(data.get("started_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            due_date=parse_datetime(data.get("due_date")),
            stage_id=data.get("stage_id"),
            room_id=data.get("room_id", room_id),
        )


def find_phase(phases, kind) -> Phase | None:
    """The single phase of ``kind``, or None when the room has none.

    Only phases that collapse onto ``kind`` are checked, so a collision on
    one kind leaves lookups of every other kind working.

    Raises:
        AmbiguousPhaseError: more than one phase resolves to ``kind``.
    """
    kind = canonical_phase(kind)
    matches = [p for p in phases if canonical_phase(p.kind) is kind]
    if len(matches) > 1:
        raise AmbiguousPhaseError(kind.value, [p.stage_id for p in matches])
    return matches[0] if matches else None


class InFlightRegistry:
    """Keys of actions currently awaiting the server.

    Keys are phase kinds (``Phase.key``) plus ``BULK_KEY`` for bulk
    assignment. Holding ``BULK_KEY`` marks every phase busy.
    """

    def __init__(self):
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def is_busy(self, key: str) -> bool:
        with self._lock:
            return key in self._keys or BULK_KEY in self._keys

    def acquire(self, key: str) -> bool:
        """Take ``key``; False if it (or the bulk key) is already held."""
        with self._lock:
            if key in self._keys or BULK_KEY in self._keys:
                return False
            if key == BULK_KEY and self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    @contextmanager
    def hold(self, key: str):
        """Hold ``key`` for the duration of the block. Yields False if busy."""
        acquired = self.acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)

    def snapshot(self) -> frozenset:
        with self._lock:
            return frozenset(self._keys)
