"""
Phase notification service.

Two kinds of outbound messages follow a completion:

    notify_stage             "phase ready" email + in-app notification to the
                             assignee of one downstream stage (called once per
                             target by the CompletionNotifier)
    send_team_notifications  "phase completed" email to team members picked
                             by the acting user; members already emailed for
                             the completed stage are skipped

Every email is recorded in EmailLog (with stage_id), which is also how
"already sent" is detected.
"""

import logging

from flask import current_app
from sqlalchemy import select

from residentone.core.exceptions import AmbiguousPhaseError
from residentone.models import db
from residentone.models.notification import EmailLog
from residentone.models.stage import Stage
from residentone.models.studio import TeamMember
from residentone.phases.registry import (
    canonical_phase,
    display_name,
    next_of,
    prerequisites_of,
    transition_summary,
)
from residentone.services.email_service import EmailService
from residentone.services.notification import NotificationService

logger = logging.getLogger(__name__)

PHASE_READY_TEMPLATE = "phase_ready"
PHASE_COMPLETED_TEMPLATE = "phase_completed"


# ── Lookups ──────────────────────────────────────────────────────────────────


def stages_by_kind(room_id) -> dict:
    """Stages of a room keyed by canonical phase kind.

    Raises:
        AmbiguousPhaseError: the room has both a legacy RENDERING and a
            THREE_D stage.
    """
    keyed = {}
    stages = db.session.execute(
        select(Stage).where(Stage.room_id == room_id).order_by(Stage.id)
    ).scalars().all()
    for stage in stages:
        kind = stage.phase_kind
        if kind in keyed:
            raise AmbiguousPhaseError(kind.value, [keyed[kind].id, stage.id])
        keyed[kind] = stage
    return keyed


def downstream_stages(stage: Stage) -> list[Stage]:
    """Stages released by completing ``stage`` (both branches after Client Approval)."""
    keyed = stages_by_kind(stage.room_id)
    return [keyed[k] for k in next_of(stage.phase_kind) if k in keyed]


def _already_emailed(stage_id, recipient_id, template_name) -> bool:
    return db.session.execute(
        select(EmailLog.id).where(
            EmailLog.stage_id == stage_id,
            EmailLog.recipient_id == recipient_id,
            EmailLog.template_name == template_name,
            EmailLog.status == "sent",
        ).limit(1)
    ).first() is not None


def _phase_url(stage: Stage) -> str:
    base = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    return f"{base}/stages/{stage.id}"


def next_phase_targets(stage: Stage, actor_id=None) -> dict:
    """
    Downstream phases of ``stage`` and the distinct members assigned to them.

    Returns:
        {"next_phases": [...], "recipients": [...], "actor_included": bool}
        Each recipient carries ``already_sent`` (a completion email for this
        stage was already delivered to them).
    """
    room = stage.room
    next_phases = []
    recipients = {}
    for target in downstream_stages(stage):
        member = target.assigned_user
        next_phases.append({
            "stage_id": target.id,
            "phase": target.phase_kind.value,
            "phase_name": display_name(target.phase_kind),
            "status": target.status,
            "assignee": member.to_ref() if member else None,
            "email_preview": {
                "subject": f"{display_name(target.phase_kind)} Phase Ready to Start - {room.project.name}",
                "to": member.email if member else None,
            },
        })
        if member and member.id not in recipients:
            recipients[member.id] = {
                **member.to_ref(),
                "phases": [],
                "already_sent": _already_emailed(stage.id, member.id, PHASE_COMPLETED_TEMPLATE),
            }
        if member:
            recipients[member.id]["phases"].append(target.phase_kind.value)

    return {
        "next_phases": next_phases,
        "recipients": list(recipients.values()),
        "actor_included": actor_id is not None and actor_id in recipients,
    }


# ── Phase ready (single stage) ───────────────────────────────────────────────


def notify_stage(stage_id, *, completed_phase=None, custom_message=None) -> dict:
    """
    Tell the assignee of ``stage_id`` that their phase is ready.

    ``completed_phase`` defaults to the stage's first prerequisite.

    Returns:
        {"success": bool, "error": str | None}. Success means the email was
        accepted for dispatch, not that it was delivered.
    """
    stage = db.session.get(Stage, stage_id)
    if not stage:
        return {"success": False, "error": f"Stage {stage_id} not found"}

    member = stage.assigned_user
    if member is None:
        return {"success": False, "error": "Stage has no assignee"}
    if not member.email:
        return {"success": False, "error": f"{member.name} has no email address"}

    kind = stage.phase_kind
    if completed_phase is not None:
        completed_kind = canonical_phase(completed_phase)
    else:
        prereqs = prerequisites_of(kind)
        completed_kind = prereqs[0] if prereqs else None
    completed_name = display_name(completed_kind) if completed_kind else "Previous phase"

    room = stage.room
    project = room.project
    notif = NotificationService.notify_phase_ready(
        stage,
        completed_phase_name=completed_name,
        next_phase_name=display_name(kind),
        room_name=room.display_name,
        project_name=project.name,
    )
    log = EmailService.send_from_template(
        to_email=member.email,
        to_name=member.name,
        template_name=PHASE_READY_TEMPLATE,
        context={
            "assignee_name": member.name,
            "next_phase": display_name(kind),
            "completed_phase": completed_name,
            "project_name": project.name,
            "room_name": room.display_name,
            "client_line": (
                f"<li><strong>Client:</strong> {project.client_name}</li>"
                if project.client_name else ""
            ),
            "custom_message": f"<p><em>{custom_message}</em></p>" if custom_message else "",
            "phase_url": _phase_url(stage),
        },
        recipient_id=member.id,
        stage_id=stage.id,
        notification_id=notif.id if notif else None,
    )
    db.session.commit()

    if log is None:
        return {"success": False, "error": "Email template missing"}
    if log.status != "sent":
        return {"success": False, "error": log.error_message or "Email not sent"}

    logger.info("Phase ready notification sent: stage=%s to=%s", stage.id, member.email,
                extra={"stage_id": stage.id, "phase": kind.value})
    return {"success": True, "error": None, "email_log_id": log.id}


# ── Team notifications (completed stage) ─────────────────────────────────────


def send_team_notifications(stage: Stage, recipient_ids, *, custom_message=None,
                            include_actor=False, actor_id=None) -> dict:
    """
    Email the "phase completed" summary to the selected team members.

    Members already emailed for this stage are skipped. Unless
    ``include_actor`` is set, the acting member is dropped from the list.

    Returns:
        {"sent_count", "skipped_count", "failed_count", "results": [...]}
    """
    ids = list(dict.fromkeys(recipient_ids))
    if actor_id is not None and not include_actor:
        ids = [i for i in ids if i != actor_id]

    members = db.session.execute(
        select(TeamMember).where(TeamMember.id.in_(ids), TeamMember.is_active.is_(True))
    ).scalars().all() if ids else []

    room = stage.room
    project = room.project
    kind = stage.phase_kind
    summary_line = transition_summary(
        kind, [s.phase_kind for s in downstream_stages(stage)],
        room.display_name, project.name,
    )
    if custom_message:
        summary_line = f"{summary_line} {custom_message}"
    completed_by = stage.completed_by.name if stage.completed_by else "a team member"
    completed_at = stage.completed_at.strftime("%Y-%m-%d %H:%M") if stage.completed_at else ""

    summary = {"sent_count": 0, "skipped_count": 0, "failed_count": 0, "results": []}
    for member in members:
        if _already_emailed(stage.id, member.id, PHASE_COMPLETED_TEMPLATE):
            summary["skipped_count"] += 1
            summary["results"].append({"member_id": member.id, "status": "skipped",
                                       "reason": "Already notified"})
            continue

        log = EmailService.send_from_template(
            to_email=member.email,
            to_name=member.name,
            template_name=PHASE_COMPLETED_TEMPLATE,
            context={
                "completed_phase": display_name(kind),
                "project_name": project.name,
                "room_name": room.display_name,
                "completed_by": completed_by,
                "completed_at": completed_at,
                "summary": summary_line,
                "phase_url": _phase_url(stage),
            },
            recipient_id=member.id,
            stage_id=stage.id,
        )
        if log is not None and log.status == "sent":
            summary["sent_count"] += 1
            summary["results"].append({"member_id": member.id, "status": "sent"})
        else:
            summary["failed_count"] += 1
            error = log.error_message if log is not None else "Email template missing"
            summary["results"].append({"member_id": member.id, "status": "error",
                                       "error": f"Failed to send to {member.name}: {error}"})

    db.session.commit()

    found = {m.id for m in members}
    for missing in (i for i in ids if i not in found):
        summary["failed_count"] += 1
        summary["results"].append({"member_id": missing, "status": "error",
                                   "error": f"Team member {missing} not found"})

    logger.info("Team notifications for stage %s: sent=%d skipped=%d failed=%d",
                stage.id, summary["sent_count"], summary["skipped_count"], summary["failed_count"],
                extra={"stage_id": stage.id, "phase": kind.value})
    return summary
