"""
Transition Executor — applies a board action to the stage behind a phase.

Every action except COMPLETE is one store call followed by a full room
refresh. COMPLETE goes through the CompletionNotifier, which owns the
confirm/notify sequence.

Failures never propagate to the caller: they are logged, reported through
the feedback sink and returned as a FAILED ``ActionResult``. The room
snapshot is left as it was until the next successful refresh.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

from residentone.core.exceptions import AmbiguousPhaseError
from residentone.phases.feedback import LoggingFeedback
from residentone.phases.notifier import DEFAULT_MAX_WORKERS, CompletionNotifier, CompletionOutcome
from residentone.phases.store import StageAction, StoreResult
from residentone.phases.view import BULK_KEY, InFlightRegistry, find_phase

logger = logging.getLogger(__name__)


class ActionOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    outcome: ActionOutcome
    message: str = ""
    completion: CompletionOutcome | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ActionOutcome.APPLIED


# User-facing prefix when an action fails.
FAILURE_MESSAGES = {
    StageAction.START: "Failed to start phase",
    StageAction.COMPLETE: "Failed to complete phase",
    StageAction.REOPEN: "Failed to update phase status",
    StageAction.MARK_NOT_APPLICABLE: "Failed to update phase status",
    StageAction.MARK_APPLICABLE: "Failed to update phase status",
    StageAction.ASSIGN: "Failed to assign phase",
    StageAction.SET_DUE_DATE: "Failed to update due date",
}

REFRESH_FAILED_MESSAGE = "Saved, but the board could not be refreshed"


class TransitionExecutor:
    """Runs stage actions for one room against a ``StageStore``."""

    def __init__(self, store, room_id, *, phases=(), feedback=None,
                 in_flight=None, max_workers=DEFAULT_MAX_WORKERS):
        self.store = store
        self.room_id = room_id
        self.phases = list(phases)
        self.feedback = feedback or LoggingFeedback()
        self.in_flight = in_flight or InFlightRegistry()
        self.max_workers = max_workers
        self.notifier = CompletionNotifier(
            store, self.feedback, refresh=self.refresh, max_workers=max_workers,
        )

    # ── Reads ─────────────────────────────────────────────────────────────

    def refresh(self):
        """Re-read every phase of the room; the only way the snapshot changes."""
        self.phases = list(self.store.get_phases(self.room_id))
        logger.debug("Room %s refreshed: %d phase(s)", self.room_id, len(self.phases),
                     extra={"room_id": self.room_id})
        return self.phases

    def _refresh_after(self, what) -> bool:
        """Refresh after an accepted mutation; a read failure is reported, not raised."""
        try:
            self.refresh()
        except Exception:
            logger.exception("Refresh after %s failed", what, extra={"room_id": self.room_id})
            self.feedback.error(REFRESH_FAILED_MESSAGE)
            return False
        return True

    # ── Actions ───────────────────────────────────────────────────────────

    def apply_action(self, phase, action, *, member_id=None, due_date=None) -> ActionResult:
        """Apply ``action`` to ``phase``'s stage.

        A phase without a stage is skipped silently. A phase whose key (or
        the bulk key) is in flight comes back BUSY without a store call.
        """
        action = StageAction(action)
        if phase.stage_id is None:
            logger.debug("Skipping %s on %s: no stage", action.value, phase.kind,
                         extra={"room_id": self.room_id, "action": action.value})
            return ActionResult(ActionOutcome.SKIPPED)

        with self.in_flight.hold(phase.key) as acquired:
            if not acquired:
                return ActionResult(ActionOutcome.BUSY, "Another update for this phase is in progress")
            handler = _HANDLERS[action]
            try:
                return handler(self, phase, action, member_id=member_id, due_date=due_date)
            except AmbiguousPhaseError as exc:
                message = f"{FAILURE_MESSAGES[action]}: {exc}"
                logger.warning("Stage action %s blocked for stage %s: %s", action.value, phase.stage_id, exc,
                               extra={"stage_id": phase.stage_id, "action": action.value})
                self.feedback.error(message)
                return ActionResult(ActionOutcome.FAILED, message)
            except Exception:
                logger.exception("Stage action %s failed for stage %s", action.value, phase.stage_id,
                                 extra={"stage_id": phase.stage_id, "action": action.value})
                message = f"{FAILURE_MESSAGES[action]}: Unknown error"
                self.feedback.error(message)
                return ActionResult(ActionOutcome.FAILED, message)

    def bulk_assign(self, assignments) -> ActionResult:
        """Assign several phases at once under the bulk key.

        ``assignments`` maps a phase identifier to a member id (None
        unassigns). Phases without a stage are skipped. The room is
        refreshed once after every request has resolved.
        """
        jobs = []
        for identifier, member_id in assignments.items():
            try:
                phase = find_phase(self.phases, identifier)
            except AmbiguousPhaseError as exc:
                message = f"Failed to save assignments: {exc}"
                self.feedback.error(message)
                return ActionResult(ActionOutcome.FAILED, message)
            if phase is None or phase.stage_id is None:
                continue
            jobs.append((phase, member_id))
        if not jobs:
            return ActionResult(ActionOutcome.SKIPPED)

        with self.in_flight.hold(BULK_KEY) as acquired:
            if not acquired:
                return ActionResult(ActionOutcome.BUSY, "Another update is in progress")
            try:
                results = self._assign_all(jobs)
            except Exception:
                logger.exception("Bulk assignment failed for room %s", self.room_id,
                                 extra={"room_id": self.room_id, "action": "assign"})
                message = "Failed to save assignments: Unknown error"
                self.feedback.error(message)
                return ActionResult(ActionOutcome.FAILED, message)

            failures = [r for r in results if not r.ok]
            refreshed = True
            if len(failures) < len(results):
                refreshed = self._refresh_after(f"bulk assignment in room {self.room_id}")

        if failures:
            message = f"Failed to save assignments: {failures[0].error or 'Unknown error'}"
            self.feedback.error(message)
            return ActionResult(ActionOutcome.FAILED, message)
        message = f"Saved {len(results)} assignment(s)"
        if not refreshed:
            message = f"{message}. {REFRESH_FAILED_MESSAGE}"
        return ActionResult(ActionOutcome.APPLIED, message)

    # ── Handlers ──────────────────────────────────────────────────────────

    def _complete(self, phase, action, **_):
        completion = self.notifier.on_phase_completed(phase, self.phases)
        outcome = ActionOutcome.APPLIED if completion.completed else ActionOutcome.FAILED
        return ActionResult(outcome, completion.message, completion)

    def _patch(self, phase, action, *, member_id=None, **_):
        if action is not StageAction.ASSIGN:
            member_id = None
        result = self.store.patch_stage(phase.stage_id, action, member_id)
        return self._finish(phase, action, result)

    def _set_due_date(self, phase, action, *, due_date=None, **_):
        result = self.store.set_stage_due_date(phase.stage_id, due_date)
        return self._finish(phase, action, result)

    def _finish(self, phase, action, result: StoreResult) -> ActionResult:
        if not result.ok:
            message = f"{FAILURE_MESSAGES[action]}: {result.error or 'Unknown error'}"
            logger.warning("Stage %s rejected %s: %s", phase.stage_id, action.value, result.error,
                           extra={"stage_id": phase.stage_id, "action": action.value})
            self.feedback.error(message)
            return ActionResult(ActionOutcome.FAILED, message)
        if not self._refresh_after(f"stage {phase.stage_id} {action.value}"):
            return ActionResult(ActionOutcome.APPLIED, REFRESH_FAILED_MESSAGE)
        return ActionResult(ActionOutcome.APPLIED)

    def _assign_all(self, jobs):
        workers = max(1, min(self.max_workers, len(jobs)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.store.patch_stage, phase.stage_id, StageAction.ASSIGN, member_id)
                for phase, member_id in jobs
            ]
            results = []
            for (phase, _), future in zip(jobs, futures):
                try:
                    results.append(future.result())
                except Exception:
                    logger.exception("Assignment raised for stage %s", phase.stage_id)
                    results.append(StoreResult.failure("Unknown error"))
        return results


_HANDLERS = {
    StageAction.START: TransitionExecutor._patch,
    StageAction.COMPLETE: TransitionExecutor._complete,
    StageAction.REOPEN: TransitionExecutor._patch,
    StageAction.MARK_NOT_APPLICABLE: TransitionExecutor._patch,
    StageAction.MARK_APPLICABLE: TransitionExecutor._patch,
    StageAction.ASSIGN: TransitionExecutor._patch,
    StageAction.SET_DUE_DATE: TransitionExecutor._set_due_date,
}

_unhandled = set(StageAction) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler for stage action(s): {sorted(a.value for a in _unhandled)}")
