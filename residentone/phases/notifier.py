"""
Completion Notifier — completes a phase and tells whoever is next.

Flow for one completion:
    1. downstream targets = next_of(phase) ∩ phases with an assignee and a stage
    2. targets exist  → ask the acting user once (feedback.confirm)
    3. complete the stage regardless of the answer
    4. completion failed → report, notify nobody
    5. confirmed      → one notify_stage per target, in parallel, join-all
    6. refresh the room

A notification failure is informational only; it never undoes the
completion or the other notifications.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from residentone.phases.feedback import CompletionPrompt, LoggingFeedback
from residentone.phases.registry import canonical_phase, display_name, next_of
from residentone.phases.store import StageAction, StoreResult
from residentone.phases.view import find_phase

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class CompletionOutcome:
    completed: bool
    targets: tuple = ()
    confirmed: bool = False
    sent: int = 0
    failed: int = 0
    errors: tuple = ()
    message: str = ""

    @property
    def partial(self) -> bool:
        """Some notifications went out and some did not."""
        return self.sent > 0 and self.failed > 0


def notification_targets(phase, phases) -> tuple:
    """Downstream phases of ``phase`` that can be notified.

    Keeps successors (both branches after CLIENT_APPROVAL) that have an
    assignee and a backing stage; the rest are dropped silently.
    """
    targets = []
    for kind in next_of(phase.kind):
        candidate = find_phase(phases, kind)
        if candidate is None or candidate.assigned_user is None or candidate.stage_id is None:
            continue
        targets.append(candidate)
    return tuple(targets)


def summarize_notifications(sent: int, failed: int) -> str:
    if failed == 0:
        return f"Sent {sent} notification(s)"
    if sent == 0:
        return "Failed to send notifications"
    return f"{sent} sent, {failed} failed"


class CompletionNotifier:
    """Coordinates the completion mutation with downstream notifications."""

    def __init__(self, store, feedback=None, *, refresh=None, max_workers=DEFAULT_MAX_WORKERS):
        self.store = store
        self.feedback = feedback or LoggingFeedback()
        self.refresh = refresh
        self.max_workers = max_workers

    def on_phase_completed(self, phase, all_phases) -> CompletionOutcome:
        kind = canonical_phase(phase.kind)
        targets = notification_targets(phase, all_phases)

        confirmed = False
        if targets:
            recipients = tuple(dict.fromkeys(t.assigned_user for t in targets))
            prompt = CompletionPrompt(
                completed_phase=kind,
                recipients=recipients,
                next_phases=tuple(t.kind for t in targets),
            )
            confirmed = bool(self.feedback.confirm(prompt))

        result = self.store.patch_stage(phase.stage_id, StageAction.COMPLETE)
        if not result.ok:
            message = f"Failed to complete phase: {result.error or 'Unknown error'}"
            logger.warning("Completion failed for stage %s: %s", phase.stage_id, result.error,
                           extra={"stage_id": phase.stage_id, "phase": kind.value})
            self.feedback.error(message)
            return CompletionOutcome(
                completed=False,
                targets=targets,
                confirmed=confirmed,
                errors=(result.error or "Unknown error",),
                message=message,
            )

        sent = failed = 0
        errors: tuple = ()
        message = f"{display_name(kind)} completed"
        if confirmed and targets:
            sent, failed, errors = self.notify_targets(targets)
            message = summarize_notifications(sent, failed)
            if sent == 0:
                self.feedback.error(message)
            else:
                self.feedback.info(message)
        else:
            self.feedback.info(message)

        logger.info("Phase %s completed (stage %s): %d target(s), confirmed=%s, sent=%d, failed=%d",
                    kind.value, phase.stage_id, len(targets), confirmed, sent, failed,
                    extra={"stage_id": phase.stage_id, "phase": kind.value})

        if self.refresh is not None:
            try:
                self.refresh()
            except Exception:
                logger.exception("Refresh after completing stage %s failed", phase.stage_id,
                                 extra={"stage_id": phase.stage_id})
                self.feedback.error("Phase completed, but the board could not be refreshed")

        return CompletionOutcome(
            completed=True,
            targets=targets,
            confirmed=confirmed,
            sent=sent,
            failed=failed,
            errors=errors,
            message=message,
        )

    def notify_targets(self, targets):
        """Notify every target in parallel and wait for all of them."""
        workers = max(1, min(self.max_workers, len(targets)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self.store.notify_stage, t.stage_id) for t in targets]
            results = []
            for target, future in zip(targets, futures):
                try:
                    results.append(future.result())
                except Exception:
                    logger.exception("Notification for stage %s raised", target.stage_id)
                    results.append(StoreResult.failure("Unknown error"))

        sent = sum(1 for r in results if r.ok)
        errors = tuple(r.error or "Unknown error" for r in results if not r.ok)
        return sent, len(errors), errors
