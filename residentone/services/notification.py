"""
ResidentOne
Notification Service.

Central service for creating and querying in-app notifications.
Stage workflow events (phase ready, phase completed) land here alongside
the emails sent by EmailService.
"""

from datetime import datetime, timezone

from residentone.models import db
from residentone.models.notification import Notification


class NotificationService:
    """Stateless service class for notification operations.

    Writes are added and flushed; the calling service owns the commit.
    """

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, recipient_id, title, message="", type="system", severity="info",
               entity_type="stage", entity_id=None):
        """Create a single notification record (flushed, not committed)."""
        notif = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.flush()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient_id, unread_only=False, limit=50, offset=0):
        """Retrieve notifications for a team member, newest first."""
        q = Notification.query.filter_by(recipient_id=recipient_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = q.order_by(Notification.created_at.desc(), Notification.id.desc()) \
            .offset(offset).limit(limit).all()
        return items, total

    @staticmethod
    def unread_count(recipient_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(recipient_id=recipient_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id):
        """Mark a single notification as read."""
        notif = db.session.get(Notification, notification_id)
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id):
        """Mark all notifications for a team member as read."""
        now = datetime.now(timezone.utc)
        count = Notification.query.filter_by(recipient_id=recipient_id, is_read=False) \
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        db.session.commit()
        return count

    # ── Stage workflow helpers ────────────────────────────────────────────

    @staticmethod
    def notify_phase_ready(stage, *, completed_phase_name, next_phase_name, room_name, project_name):
        """In-app counterpart of the phase-ready email for the stage assignee."""
        if not stage.assigned_to:
            return None
        return NotificationService.create(
            recipient_id=stage.assigned_to,
            type="stage_ready",
            title=f"{next_phase_name} Phase Ready",
            message=(
                f"{completed_phase_name} for {room_name} in {project_name} has been completed. "
                f"You can now start the {next_phase_name} phase."
            ),
            severity="success",
            entity_id=stage.id,
        )

    @staticmethod
    def notify_stage_assigned(stage, *, phase_name, room_name, project_name):
        """Tell a member they were assigned to a stage."""
        if not stage.assigned_to:
            return None
        return NotificationService.create(
            recipient_id=stage.assigned_to,
            type="stage_assigned",
            title=f"Assigned: {phase_name}",
            message=f"You have been assigned the {phase_name} phase for {room_name} in {project_name}.",
            entity_id=stage.id,
        )
