"""
ResidentOne
Stage domain model — the persisted backing record of a room phase.

Models:
    - Stage: one row per (room, phase kind); mutated only through the
             stage action endpoint

Lifecycle states:
    not_started → in_progress → completed
    not_started | in_progress → not_applicable → not_started
    completed → in_progress (reopen)

The phase sequence itself (which phase follows which) lives in
residentone.phases.registry and is never stored per stage.
"""

from datetime import datetime, timezone

from residentone.models import db
from residentone.phases.registry import canonical_phase, PHASE_SEQUENCE


# ── Constants ────────────────────────────────────────────────────────────────

STAGE_STATUSES = {"not_started", "in_progress", "completed", "not_applicable"}

STAGE_ACTIONS = {
    "start", "complete", "reopen",
    "mark_not_applicable", "mark_applicable", "assign",
}

# Stage status → phase status shown on the board.
PHASE_STATUS_BY_STAGE_STATUS = {
    "not_started": "PENDING",
    "in_progress": "IN_PROGRESS",
    "completed": "COMPLETE",
    "not_applicable": "NOT_APPLICABLE",
}


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

# action → {from_status: to_status}. "assign" does not change status.
ACTION_TRANSITIONS = {
    "start":               {"not_started": "in_progress"},
    "complete":            {"not_started": "completed", "in_progress": "completed"},
    "reopen":              {"completed": "in_progress"},
    "mark_not_applicable": {"not_started": "not_applicable", "in_progress": "not_applicable"},
    "mark_applicable":     {"not_applicable": "not_started"},
}


def resolve_action_target(old_status, action):
    """Return the status ``action`` moves a stage to, or None if not allowed."""
    return ACTION_TRANSITIONS.get(action, {}).get(old_status)


class Stage(db.Model):
    """
    Persisted stage of a room.

    ``phase`` is stored in canonical form; legacy rows may still carry the
    ``RENDERING`` identifier, which readers fold onto THREE_D.
    """

    __tablename__ = "stages"

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(
        db.Integer, db.ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    phase = db.Column(
        db.String(30), nullable=False,
        comment="DESIGN_CONCEPT | THREE_D | CLIENT_APPROVAL | DRAWINGS | FFE",
    )
    status = db.Column(
        db.String(20), default="not_started", nullable=False,
        comment="not_started | in_progress | completed | not_applicable",
    )

    # Assignment (weak reference: user management owns the member)
    assigned_to = db.Column(
        db.Integer, db.ForeignKey("team_members.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )

    # Timeline
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by_id = db.Column(
        db.Integer, db.ForeignKey("team_members.id", ondelete="SET NULL"),
        nullable=True,
    )
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Constraints ──────────────────────────────────────────────────────
    __table_args__ = (
        db.UniqueConstraint("room_id", "phase", name="uq_stage_room_phase"),
        db.CheckConstraint(
            "status IN ('not_started','in_progress','completed','not_applicable')",
            name="ck_stage_status",
        ),
    )

    # ── Relationships ────────────────────────────────────────────────────
    assigned_user = db.relationship("TeamMember", foreign_keys=[assigned_to])
    completed_by = db.relationship("TeamMember", foreign_keys=[completed_by_id])

    @property
    def phase_kind(self):
        return canonical_phase(self.phase)

    @property
    def phase_status(self):
        return PHASE_STATUS_BY_STAGE_STATUS[self.status]

    @property
    def sequence_order(self):
        return PHASE_SEQUENCE.index(self.phase_kind)

    def to_dict(self):
        return {
            "id": self.id,
            "room_id": self.room_id,
            "phase": self.phase_kind.value,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "assigned_user": self.assigned_user.to_ref() if self.assigned_user else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "completed_by_id": self.completed_by_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Stage {self.id}: room={self.room_id} {self.phase} [{self.status}]>"
