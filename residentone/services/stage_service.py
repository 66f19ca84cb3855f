"""
Stage workflow — Service Layer.

Business logic for:
    - Stage actions:       start / complete / reopen / mark (not) applicable / assign
    - Due dates:           set or clear a stage due date
    - Room provisioning:   one not_started stage per phase kind
    - Phase read payload:  the room's phases in canonical order
    - Room progress:       completed over applicable stages

Transition rules live in residentone.models.stage (ACTION_TRANSITIONS);
the phase order lives in residentone.phases.registry.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from residentone.core.exceptions import ValidationError
from residentone.models import db
from residentone.models.stage import STAGE_ACTIONS, Stage, resolve_action_target
from residentone.models.studio import TeamMember
from residentone.phases.registry import (
    PHASE_SEQUENCE,
    canonical_phase,
    description,
    display_name,
    next_of,
    prerequisites_of,
    suggested_role,
    transition_summary,
)
from residentone.services.notification import NotificationService

logger = logging.getLogger(__name__)

_DONE_STATUSES = {"completed", "not_applicable"}


# ── Stage Actions ────────────────────────────────────────────────────────────


def apply_stage_action(stage: Stage, action: str, *, member_id=None, actor_id=None) -> tuple[bool, str]:
    """
    Apply a board action to a stage.

    Returns:
        (ok, message). An action the current status does not allow returns
        ``(False, "Cannot <action> a stage in status <status>")`` and leaves
        the stage untouched.

    Raises:
        ValidationError: unknown action, or assignee is missing/inactive.
    """
    if action not in STAGE_ACTIONS:
        raise ValidationError(
            f"Unknown action '{action}'",
            details={"valid_actions": sorted(STAGE_ACTIONS)},
        )

    if action == "assign":
        return _assign(stage, member_id)

    old = stage.status
    new = resolve_action_target(old, action)
    if new is None:
        return False, f"Cannot {action} a stage in status {old}"

    now = datetime.now(timezone.utc)
    stage.status = new
    if action == "start":
        stage.started_at = stage.started_at or now
    elif action == "complete":
        stage.started_at = stage.started_at or now
        stage.completed_at = now
        stage.completed_by_id = actor_id
    elif action == "reopen":
        stage.completed_at = None
        stage.completed_by_id = None

    db.session.commit()

    logger.info("Stage %s %s: %s → %s", stage.id, action, old, new,
                extra={"stage_id": stage.id, "room_id": stage.room_id,
                       "phase": stage.phase_kind.value, "action": action})
    if action == "complete":
        room = stage.room
        logger.info(transition_summary(
            stage.phase_kind, next_of(stage.phase_kind),
            room.display_name, room.project.name,
        ), extra={"stage_id": stage.id, "room_id": stage.room_id})
    return True, f"Stage transitioned: {old} → {new}"


def _assign(stage: Stage, member_id) -> tuple[bool, str]:
    if member_id is not None:
        member = db.session.get(TeamMember, member_id)
        if not member or not member.is_active:
            raise ValidationError(
                f"Team member {member_id} not found or inactive",
                details={"assigned_to": member_id},
            )

    previous = stage.assigned_to
    stage.assigned_to = member_id
    if member_id is not None and member_id != previous:
        room = stage.room
        NotificationService.notify_stage_assigned(
            stage,
            phase_name=display_name(stage.phase_kind),
            room_name=room.display_name,
            project_name=room.project.name,
        )
    db.session.commit()

    logger.info("Stage %s assigned: %s → %s", stage.id, previous, member_id,
                extra={"stage_id": stage.id, "action": "assign"})
    if member_id is None:
        return True, "Stage unassigned"
    return True, f"Stage assigned to member {member_id}"


def set_due_date(stage: Stage, due_date) -> tuple[bool, str]:
    """Set (or clear, with None) the stage due date."""
    stage.due_date = due_date
    db.session.commit()
    if due_date is None:
        return True, "Due date cleared"
    return True, f"Due date set to {due_date.date().isoformat()}"


# ── Room Provisioning ────────────────────────────────────────────────────────


def provision_room_stages(room) -> list[Stage]:
    """
    Create a not_started stage for every phase kind the room lacks.

    Existing stages (including legacy RENDERING rows) are left alone.
    Added to the session; the caller commits.
    """
    existing = {canonical_phase(s.phase) for s in room.stages}
    created = []
    for kind in PHASE_SEQUENCE:
        if kind in existing:
            continue
        stage = Stage(room_id=room.id, phase=kind.value, status="not_started")
        db.session.add(stage)
        created.append(stage)
    db.session.flush()
    return created


# ── Reads ────────────────────────────────────────────────────────────────────


def _room_stages(room_id) -> list[Stage]:
    stages = db.session.execute(
        select(Stage).where(Stage.room_id == room_id)
    ).scalars().all()
    return sorted(stages, key=lambda s: (s.sequence_order, s.id))


def list_room_phases(room_id) -> list[dict]:
    """
    Phase read payload for a room, in canonical order.

    ``phase`` carries the stored identifier so clients can see legacy rows;
    ``prerequisites_met`` is true once every prerequisite phase is completed
    or not applicable.
    """
    stages = _room_stages(room_id)
    done = {s.phase_kind for s in stages if s.status in _DONE_STATUSES}

    phases = []
    for stage in stages:
        kind = stage.phase_kind
        phases.append({
            "phase": stage.phase.upper(),
            "name": display_name(kind),
            "description": description(kind),
            "suggested_role": suggested_role(kind),
            "sequence_order": stage.sequence_order + 1,
            "stage_id": stage.id,
            "room_id": stage.room_id,
            "status": stage.phase_status,
            "stage_status": stage.status,
            "assigned_user": stage.assigned_user.to_ref() if stage.assigned_user else None,
            "started_at": stage.started_at.isoformat() if stage.started_at else None,
            "completed_at": stage.completed_at.isoformat() if stage.completed_at else None,
            "due_date": stage.due_date.isoformat() if stage.due_date else None,
            "prerequisites_met": all(p in done for p in prerequisites_of(kind)),
        })
    return phases


def room_progress(room_id) -> dict:
    """Completion percentage over applicable stages (not_applicable excluded)."""
    stages = _room_stages(room_id)
    counts = {"not_started": 0, "in_progress": 0, "completed": 0, "not_applicable": 0}
    for stage in stages:
        counts[stage.status] += 1

    applicable = len(stages) - counts["not_applicable"]
    percent = round(counts["completed"] / applicable * 100) if applicable else 0
    return {
        "room_id": room_id,
        "total": len(stages),
        "applicable": applicable,
        "completed": counts["completed"],
        "in_progress": counts["in_progress"],
        "not_started": counts["not_started"],
        "not_applicable": counts["not_applicable"],
        "percent": percent,
    }
