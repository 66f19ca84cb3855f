"""
Board presenter interface — what a room phase board can ask for.

No rendering lives here. ``PhaseBoard`` turns user intents (start, status
change, assign, due date, bulk assign) into ``StageAction``s on the
``TransitionExecutor`` and answers "is this control disabled?" from the
in-flight registry.
"""

from __future__ import annotations

from residentone.core.exceptions import AmbiguousPhaseError
from residentone.phases.executor import ActionOutcome, ActionResult, TransitionExecutor
from residentone.phases.registry import PHASE_SEQUENCE, canonical_phase
from residentone.phases.store import StageAction
from residentone.phases.view import BULK_KEY, Phase, PhaseStatus, find_phase


def status_action(current: PhaseStatus, target: PhaseStatus) -> StageAction:
    """Action that moves a phase from ``current`` to ``target`` status."""
    target = PhaseStatus(target)
    if target is PhaseStatus.COMPLETE:
        return StageAction.COMPLETE
    if target is PhaseStatus.IN_PROGRESS:
        if PhaseStatus(current) is PhaseStatus.COMPLETE:
            return StageAction.REOPEN
        return StageAction.START
    if target is PhaseStatus.NOT_APPLICABLE:
        return StageAction.MARK_NOT_APPLICABLE
    return StageAction.MARK_APPLICABLE


class PhaseBoard:
    def __init__(self, executor: TransitionExecutor, team_members=()):
        self.executor = executor
        self.team_members = list(team_members)

    @classmethod
    def load(cls, store, room_id, *, feedback=None, team_members=(), max_workers=None):
        """Build a board for ``room_id`` and read its phases once."""
        kwargs = {"feedback": feedback}
        if max_workers is not None:
            kwargs["max_workers"] = max_workers
        board = cls(TransitionExecutor(store, room_id, **kwargs), team_members)
        board.refresh()
        return board

    @property
    def phases(self):
        return self.executor.phases

    def refresh(self):
        return self.executor.refresh()

    def phase(self, kind) -> Phase:
        """Current snapshot of ``kind``; a stage-less placeholder if the room lacks one.

        Raises:
            AmbiguousPhaseError: the room holds more than one stage of ``kind``.
        """
        kind = canonical_phase(kind)
        return find_phase(self.phases, kind) or Phase(kind=kind, room_id=self.executor.room_id)

    def ordered_phases(self):
        """Every phase in sequence order, colliding stages included."""
        return sorted(self.phases, key=lambda p: (PHASE_SEQUENCE.index(canonical_phase(p.kind)),
                                                  p.stage_id or 0))

    # ── Disabled state ────────────────────────────────────────────────────

    def is_disabled(self, kind) -> bool:
        return self.executor.in_flight.is_busy(canonical_phase(kind).value)

    def is_bulk_in_flight(self) -> bool:
        return BULK_KEY in self.executor.in_flight.snapshot()

    # ── Intents ───────────────────────────────────────────────────────────

    def _apply(self, kind, action_for, **kwargs) -> ActionResult:
        try:
            phase = self.phase(kind)
        except AmbiguousPhaseError as exc:
            message = f"Cannot update phase: {exc}"
            self.executor.feedback.error(message)
            return ActionResult(ActionOutcome.FAILED, message)
        return self.executor.apply_action(phase, action_for(phase), **kwargs)

    def start(self, kind):
        return self._apply(kind, lambda _: StageAction.START)

    def change_status(self, kind, status):
        return self._apply(kind, lambda phase: status_action(phase.status, status))

    def assign(self, kind, member_id):
        return self._apply(kind, lambda _: StageAction.ASSIGN, member_id=member_id)

    def change_due_date(self, kind, due_date):
        return self._apply(kind, lambda _: StageAction.SET_DUE_DATE, due_date=due_date)

    def bulk_assign(self, assignments):
        return self.executor.bulk_assign(assignments)
