"""
ResidentOne
Studio domain models.

Models:
    - TeamMember: studio staff member who can be assigned to room phases
    - Project:    client engagement grouping one or more rooms
    - Room:       unit of design work; owns one Stage per phase kind

Architecture:
    Project ──1:N──▶ Room ──1:N──▶ Stage  (see residentone.models.stage)
    TeamMember ──1:N──▶ Stage  (weak: stages.assigned_to SET NULL)
"""

from datetime import datetime, timezone

from residentone.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TEAM_ROLES = {"owner", "admin", "designer", "renderer", "drafter", "ffe", "viewer"}


class TeamMember(db.Model):
    """
    Studio team member.

    Lifecycle is owned by user management; this workflow only reads members
    and references them as phase assignees.
    """

    __tablename__ = "team_members"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(
        db.String(30),
        default="designer",
        comment="owner | admin | designer | renderer | drafter | ffe | viewer",
    )
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_ref(self):
        """Compact form embedded in phase payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def to_dict(self):
        return {
            **self.to_ref(),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TeamMember {self.id}: {self.name} ({self.role})>"


class Project(db.Model):
    """Client engagement. Rooms hang off a project."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    client_name = db.Column(db.String(200), default="")
    client_email = db.Column(db.String(255), default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    rooms = db.relationship(
        "Room", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Room.id",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "room_count": self.rooms.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["rooms"] = [r.to_dict() for r in self.rooms]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


class Room(db.Model):
    """
    A room within a project (e.g. Master Bedroom, Kitchen).

    Stages are provisioned for every phase kind when the room is created;
    overall progress is derived from them and never stored.
    """

    __tablename__ = "rooms"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), default="")
    room_type = db.Column(
        db.String(50), nullable=False,
        comment="e.g. MASTER_BEDROOM, KITCHEN, POWDER_ROOM",
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    stages = db.relationship(
        "Stage", backref="room", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Stage.id",
    )

    @property
    def display_name(self):
        """Room name, or the room type in title case (MASTER_BEDROOM → Master Bedroom)."""
        if self.name:
            return self.name
        return (self.room_type or "").replace("_", " ").title()

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "room_type": self.room_type,
            "display_name": self.display_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Room {self.id}: {self.display_name}>"
