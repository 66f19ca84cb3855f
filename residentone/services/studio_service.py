"""
Studio records — Service Layer.

Team members, projects and rooms: the records the phase workflow hangs
off. Creating a room provisions its stages in the same transaction.
"""

import logging

from sqlalchemy import select

from residentone.core.exceptions import ConflictError, ValidationError
from residentone.models import db
from residentone.models.studio import TEAM_ROLES, Project, Room, TeamMember
from residentone.services.stage_service import provision_room_stages

logger = logging.getLogger(__name__)


def create_team_member(data: dict) -> TeamMember:
    """
    Raises:
        ValidationError: name/email missing or role unknown.
        ConflictError: an active member already uses the email.
    """
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    role = (data.get("role") or "designer").strip().lower()
    if not name or not email:
        raise ValidationError("name and email are required")
    if role not in TEAM_ROLES:
        raise ValidationError(f"Invalid role '{role}'", details={"valid_roles": sorted(TEAM_ROLES)})

    existing = db.session.execute(
        select(TeamMember.id).where(TeamMember.email == email, TeamMember.is_active.is_(True))
    ).first()
    if existing:
        raise ConflictError("TeamMember", "email", email)

    member = TeamMember(name=name, email=email, role=role)
    db.session.add(member)
    db.session.commit()
    logger.info("Team member created: %s (%s)", member.id, role)
    return member


def list_team_members(active_only=True):
    q = select(TeamMember).order_by(TeamMember.name)
    if active_only:
        q = q.where(TeamMember.is_active.is_(True))
    return db.session.execute(q).scalars().all()


def create_project(data: dict) -> Project:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    project = Project(
        name=name,
        client_name=(data.get("client_name") or "").strip(),
        client_email=(data.get("client_email") or "").strip(),
    )
    db.session.add(project)
    db.session.commit()
    logger.info("Project created: %s", project.id)
    return project


def create_room(project: Project, data: dict) -> Room:
    """Create a room and one not_started stage per phase kind."""
    room_type = (data.get("room_type") or "").strip().upper()
    if not room_type:
        raise ValidationError("room_type is required")
    room = Room(project_id=project.id, name=(data.get("name") or "").strip(), room_type=room_type)
    db.session.add(room)
    db.session.flush()
    stages = provision_room_stages(room)
    db.session.commit()
    logger.info("Room created: %s with %d stage(s)", room.id, len(stages),
                extra={"room_id": room.id})
    return room
