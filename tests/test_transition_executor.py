"""
Transition Executor and Board presenter interface.

Covers:
    - Stage-less phases are skipped with no store call
    - One store call + full refresh per non-completion action
    - Failures reported through feedback, snapshot left stale
    - In-flight guard (phase key and the "bulk" sentinel)
    - Bulk assignment
    - Board intent → StageAction mapping
"""

from datetime import datetime, timezone

import pytest

from residentone.phases.board import PhaseBoard, status_action
from residentone.phases.executor import REFRESH_FAILED_MESSAGE, ActionOutcome, TransitionExecutor
from residentone.phases.registry import PhaseKind
from residentone.phases.store import StageAction, StoreResult
from residentone.phases.view import BULK_KEY, Phase, PhaseStatus, TeamMemberRef

DESIGNER = TeamMemberRef(id=1, name="Aylin", email="a@studio.test")
RENDERER = TeamMemberRef(id=2, name="Bora", email="b@studio.test")


def _phases():
    return [
        Phase(PhaseKind.DESIGN_CONCEPT, PhaseStatus.IN_PROGRESS, DESIGNER, stage_id=11, room_id=3),
        Phase(PhaseKind.THREE_D, PhaseStatus.PENDING, RENDERER, stage_id=12, room_id=3),
        Phase(PhaseKind.CLIENT_APPROVAL, PhaseStatus.PENDING, None, stage_id=13, room_id=3),
        Phase(PhaseKind.DRAWINGS, PhaseStatus.PENDING, None, stage_id=14, room_id=3),
        Phase(PhaseKind.FFE, PhaseStatus.PENDING, None, stage_id=None, room_id=3),
    ]


class FakeStore:
    def __init__(self, phases=None, errors=None, raises=None):
        self.phases = phases if phases is not None else _phases()
        self.errors = errors or {}
        self.raises = raises
        self.calls = []

    def get_phases(self, room_id):
        self.calls.append(("get_phases", room_id))
        return list(self.phases)

    def patch_stage(self, stage_id, action, member_id=None):
        self.calls.append(("patch", stage_id, action, member_id))
        if self.raises:
            raise self.raises
        if stage_id in self.errors:
            return StoreResult.failure(self.errors[stage_id], status_code=409)
        return StoreResult.success({"id": stage_id})

    def set_stage_due_date(self, stage_id, due_date):
        self.calls.append(("due_date", stage_id, due_date))
        return StoreResult.success({"id": stage_id})

    def notify_stage(self, stage_id):
        self.calls.append(("notify", stage_id))
        return StoreResult.success({"success": True})

    def mutations(self):
        return [c for c in self.calls if c[0] != "get_phases"]

    def reads(self):
        return [c for c in self.calls if c[0] == "get_phases"]


class UnreadableStore(FakeStore):
    """Accepts mutations but cannot read the room back."""

    def get_phases(self, room_id):
        self.calls.append(("get_phases", room_id))
        raise ConnectionError("phase read timed out")


def _colliding_phases():
    """A room holding both the legacy RENDERING stage and a THREE_D stage."""
    legacy = Phase.from_payload({"phase": "RENDERING", "status": "PENDING", "stage_id": 16}, room_id=3)
    return _phases() + [legacy]


class RecordingFeedback:
    def __init__(self, answer=True):
        self.answer = answer
        self.errors = []
        self.infos = []

    def confirm(self, prompt):
        return self.answer

    def error(self, message):
        self.errors.append(message)

    def info(self, message):
        self.infos.append(message)


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def feedback():
    return RecordingFeedback()


@pytest.fixture()
def executor(store, feedback):
    return TransitionExecutor(store, 3, phases=_phases(), feedback=feedback)


def _get(executor, kind):
    return next(p for p in executor.phases if p.kind is kind)


# ═════════════════════════════════════════════════════════════════════════════
# apply_action
# ═════════════════════════════════════════════════════════════════════════════


class TestApplyAction:

    @pytest.mark.parametrize("action", list(StageAction))
    def test_phase_without_stage_makes_no_call(self, executor, store, feedback, action):
        result = executor.apply_action(_get(executor, PhaseKind.FFE), action, member_id=1)
        assert result.outcome is ActionOutcome.SKIPPED
        assert store.calls == []
        assert feedback.errors == []

    def test_start_patches_once_then_refreshes(self, executor, store):
        store.phases = [p for p in _phases() if p.kind is not PhaseKind.FFE]

        result = executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.START)

        assert result.outcome is ActionOutcome.APPLIED
        assert store.mutations() == [("patch", 12, StageAction.START, None)]
        assert store.reads() == [("get_phases", 3)]
        assert len(executor.phases) == 4

    def test_string_action_is_accepted(self, executor, store):
        executor.apply_action(_get(executor, PhaseKind.THREE_D), "mark_not_applicable")
        assert store.mutations() == [("patch", 12, StageAction.MARK_NOT_APPLICABLE, None)]

    def test_member_id_only_sent_for_assign(self, executor, store):
        executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.REOPEN, member_id=9)
        executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.ASSIGN, member_id=9)
        assert store.mutations() == [
            ("patch", 12, StageAction.REOPEN, None),
            ("patch", 12, StageAction.ASSIGN, 9),
        ]

    def test_due_date_goes_to_due_date_endpoint(self, executor, store):
        due = datetime(2026, 11, 2, tzinfo=timezone.utc)
        result = executor.apply_action(_get(executor, PhaseKind.DRAWINGS),
                                       StageAction.SET_DUE_DATE, due_date=due)
        assert result.ok
        assert store.mutations() == [("due_date", 14, due)]

    def test_rejected_action_reports_reason_and_keeps_snapshot(self, store, feedback):
        store.errors = {12: "Cannot start a stage in status completed"}
        store.phases = []
        executor = TransitionExecutor(store, 3, phases=_phases(), feedback=feedback)

        result = executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.START)

        assert result.outcome is ActionOutcome.FAILED
        assert result.message == "Failed to start phase: Cannot start a stage in status completed"
        assert feedback.errors == [result.message]
        assert store.reads() == []
        assert len(executor.phases) == 5

    def test_exception_is_caught_at_action_boundary(self, feedback):
        store = FakeStore(raises=ConnectionError("connection refused"))
        executor = TransitionExecutor(store, 3, phases=_phases(), feedback=feedback)

        result = executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.ASSIGN, member_id=1)

        assert result.outcome is ActionOutcome.FAILED
        assert feedback.errors == ["Failed to assign phase: Unknown error"]

    def test_refresh_failure_after_accepted_action_is_reported(self, feedback):
        store = UnreadableStore()
        executor = TransitionExecutor(store, 3, phases=_phases(), feedback=feedback)

        result = executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.START)

        assert result.outcome is ActionOutcome.APPLIED
        assert result.message == REFRESH_FAILED_MESSAGE
        assert store.mutations() == [("patch", 12, StageAction.START, None)]
        assert feedback.errors == [REFRESH_FAILED_MESSAGE]
        assert _get(executor, PhaseKind.THREE_D).status is PhaseStatus.PENDING
        assert not executor.in_flight.is_busy(PhaseKind.THREE_D.value)

    def test_complete_runs_completion_sequence(self, executor, store):
        result = executor.apply_action(_get(executor, PhaseKind.DESIGN_CONCEPT), StageAction.COMPLETE)

        assert result.ok
        assert result.completion.sent == 1
        assert store.mutations() == [("patch", 11, StageAction.COMPLETE, None), ("notify", 12)]
        assert len(store.reads()) == 1

    def test_in_flight_phase_is_busy(self, executor, store):
        phase = _get(executor, PhaseKind.THREE_D)
        assert executor.in_flight.acquire(phase.key)

        result = executor.apply_action(phase, StageAction.START)

        assert result.outcome is ActionOutcome.BUSY
        assert store.calls == []

    def test_bulk_in_flight_blocks_every_phase(self, executor, store):
        executor.in_flight.acquire(BULK_KEY)
        result = executor.apply_action(_get(executor, PhaseKind.DRAWINGS), StageAction.START)
        assert result.outcome is ActionOutcome.BUSY
        assert store.calls == []

    def test_key_released_after_action(self, executor):
        executor.apply_action(_get(executor, PhaseKind.THREE_D), StageAction.START)
        assert executor.in_flight.snapshot() == frozenset()


# ═════════════════════════════════════════════════════════════════════════════
# bulk_assign
# ═════════════════════════════════════════════════════════════════════════════


class TestBulkAssign:

    def test_assigns_each_staged_phase_and_refreshes_once(self, executor, store):
        result = executor.bulk_assign({
            PhaseKind.CLIENT_APPROVAL: 1,
            "DRAWINGS": 2,
            "FFE": 2,          # no stage: skipped
        })

        assert result.ok
        assert sorted(c for c in store.mutations()) == [
            ("patch", 13, StageAction.ASSIGN, 1),
            ("patch", 14, StageAction.ASSIGN, 2),
        ]
        assert len(store.reads()) == 1

    def test_any_failure_is_reported(self, executor, store, feedback):
        store.errors = {14: "Team member 2 not found or inactive"}

        result = executor.bulk_assign({"CLIENT_APPROVAL": 1, "DRAWINGS": 2})

        assert result.outcome is ActionOutcome.FAILED
        assert feedback.errors == ["Failed to save assignments: Team member 2 not found or inactive"]
        assert len(store.reads()) == 1

    def test_refresh_failure_after_saving_is_reported(self, feedback):
        store = UnreadableStore()
        executor = TransitionExecutor(store, 3, phases=_phases(), feedback=feedback)

        result = executor.bulk_assign({"CLIENT_APPROVAL": 1, "DRAWINGS": 2})

        assert result.outcome is ActionOutcome.APPLIED
        assert "could not be refreshed" in result.message
        assert len(store.mutations()) == 2
        assert feedback.errors == [REFRESH_FAILED_MESSAGE]
        assert not executor.in_flight.is_busy(BULK_KEY)

    def test_busy_while_a_phase_is_in_flight(self, executor, store):
        executor.in_flight.acquire(PhaseKind.DRAWINGS.value)
        result = executor.bulk_assign({"DRAWINGS": 2})
        assert result.outcome is ActionOutcome.BUSY
        assert store.calls == []

    def test_nothing_to_assign_is_skipped(self, executor, store):
        assert executor.bulk_assign({"FFE": 1}).outcome is ActionOutcome.SKIPPED
        assert store.calls == []


# ═════════════════════════════════════════════════════════════════════════════
# Board presenter interface
# ═════════════════════════════════════════════════════════════════════════════


class TestPhaseBoard:

    @pytest.mark.parametrize("current,target,expected", [
        (PhaseStatus.IN_PROGRESS, PhaseStatus.COMPLETE, StageAction.COMPLETE),
        (PhaseStatus.PENDING, PhaseStatus.IN_PROGRESS, StageAction.START),
        (PhaseStatus.COMPLETE, PhaseStatus.IN_PROGRESS, StageAction.REOPEN),
        (PhaseStatus.PENDING, PhaseStatus.NOT_APPLICABLE, StageAction.MARK_NOT_APPLICABLE),
        (PhaseStatus.NOT_APPLICABLE, PhaseStatus.PENDING, StageAction.MARK_APPLICABLE),
    ])
    def test_status_action_mapping(self, current, target, expected):
        assert status_action(current, target) is expected

    def test_load_reads_room_once(self, store):
        board = PhaseBoard.load(store, 3)
        assert store.calls == [("get_phases", 3)]
        assert [p.kind for p in board.ordered_phases()][0] is PhaseKind.DESIGN_CONCEPT

    def test_change_status_dispatches_mapped_action(self, store, feedback):
        board = PhaseBoard.load(store, 3, feedback=feedback)
        board.change_status("THREE_D", "NOT_APPLICABLE")
        assert store.mutations() == [("patch", 12, StageAction.MARK_NOT_APPLICABLE, None)]

    def test_missing_phase_is_skipped(self, feedback):
        store = FakeStore(phases=[])
        board = PhaseBoard.load(store, 3, feedback=feedback)
        assert board.start("DRAWINGS").outcome is ActionOutcome.SKIPPED
        assert store.mutations() == []

    def test_is_disabled_follows_in_flight_keys(self, store):
        board = PhaseBoard.load(store, 3)
        assert not board.is_disabled("RENDERING")
        board.executor.in_flight.acquire("THREE_D")
        assert board.is_disabled("RENDERING")
        assert not board.is_disabled("FFE")
        board.executor.in_flight.release("THREE_D")
        board.executor.in_flight.acquire(BULK_KEY)
        assert board.is_disabled("FFE") and board.is_bulk_in_flight()


class TestDuplicatePhaseStages:

    @pytest.fixture()
    def board(self, feedback):
        return PhaseBoard.load(FakeStore(phases=_colliding_phases()), 3, feedback=feedback)

    def test_unrelated_phase_still_updates(self, board):
        result = board.start("DESIGN_CONCEPT")
        assert result.outcome is ActionOutcome.APPLIED
        assert board.executor.store.mutations() == [("patch", 11, StageAction.START, None)]

    @pytest.mark.parametrize("kind", ["THREE_D", "RENDERING"])
    def test_colliding_phase_fails_without_a_call(self, board, feedback, kind):
        result = board.start(kind)
        assert result.outcome is ActionOutcome.FAILED
        assert "Multiple stages" in result.message
        assert feedback.errors == [result.message]
        assert board.executor.store.mutations() == []

    def test_assign_and_due_date_on_colliding_phase_fail(self, board):
        assert board.assign("THREE_D", 2).outcome is ActionOutcome.FAILED
        due = datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert board.change_due_date("THREE_D", due).outcome is ActionOutcome.FAILED
        assert board.executor.store.mutations() == []

    def test_completing_into_colliding_phase_fails_before_patch(self, board, feedback):
        result = board.change_status("DESIGN_CONCEPT", "COMPLETE")
        assert result.outcome is ActionOutcome.FAILED
        assert "Multiple stages" in feedback.errors[0]
        assert board.executor.store.mutations() == []
        assert not board.is_disabled("DESIGN_CONCEPT")

    def test_bulk_assign_naming_colliding_phase_fails(self, board, feedback):
        result = board.bulk_assign({"DRAWINGS": 1, "THREE_D": 2})
        assert result.outcome is ActionOutcome.FAILED
        assert result.message.startswith("Failed to save assignments: Multiple stages")
        assert board.executor.store.mutations() == []

    def test_bulk_assign_of_other_phases_succeeds(self, board):
        assert board.bulk_assign({"DRAWINGS": 1}).ok

    def test_ordered_phases_lists_every_stage(self, board):
        ordered = board.ordered_phases()
        assert len(ordered) == 6
        assert [p.stage_id for p in ordered[1:3]] == [12, 16]
        assert ordered[0].kind is PhaseKind.DESIGN_CONCEPT
