"""
Studio Blueprint — team, projects and rooms.

Endpoints:
  TeamMember:  GET/POST /team
  Project:     GET/POST /projects, GET /projects/<id>
  Room:        POST /projects/<id>/rooms (provisions one stage per phase), GET /rooms/<id>
  Inbox:       GET /team/<id>/notifications, POST /team/<id>/notifications/mark-all-read,
               PATCH /notifications/<id>/read
"""

from flask import Blueprint, jsonify, request

from residentone.blueprints import paginate_query
from residentone.models.studio import Project, Room, TeamMember
from residentone.services import studio_service
from residentone.services.notification import NotificationService
from residentone.services.stage_service import list_room_phases
from residentone.utils.helpers import get_or_404

studio_bp = Blueprint("studio", __name__, url_prefix="/api/v1")


# ── Team ─────────────────────────────────────────────────────────────────────

@studio_bp.route("/team", methods=["GET"])
def list_team():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    members = studio_service.list_team_members(active_only=not include_inactive)
    return jsonify({"items": [m.to_dict() for m in members], "total": len(members)})


@studio_bp.route("/team", methods=["POST"])
def create_team_member():
    member = studio_service.create_team_member(request.get_json(silent=True) or {})
    return jsonify(member.to_dict()), 201


# ── Projects ─────────────────────────────────────────────────────────────────

@studio_bp.route("/projects", methods=["GET"])
def list_projects():
    items, total = paginate_query(Project.query.order_by(Project.id))
    return jsonify({"items": [p.to_dict() for p in items], "total": total})


@studio_bp.route("/projects", methods=["POST"])
def create_project():
    project = studio_service.create_project(request.get_json(silent=True) or {})
    return jsonify(project.to_dict()), 201


@studio_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project, err = get_or_404(Project, project_id)
    if err:
        return err
    return jsonify(project.to_dict(include_children=True))


# ── Rooms ────────────────────────────────────────────────────────────────────

@studio_bp.route("/projects/<int:project_id>/rooms", methods=["POST"])
def create_room(project_id):
    project, err = get_or_404(Project, project_id)
    if err:
        return err
    room = studio_service.create_room(project, request.get_json(silent=True) or {})
    return jsonify({**room.to_dict(), "phases": list_room_phases(room.id)}), 201


@studio_bp.route("/rooms/<int:room_id>", methods=["GET"])
def get_room(room_id):
    room, err = get_or_404(Room, room_id)
    if err:
        return err
    return jsonify({**room.to_dict(), "project": room.project.name})


# ── In-app notifications ─────────────────────────────────────────────────────

@studio_bp.route("/team/<int:member_id>/notifications", methods=["GET"])
def list_notifications(member_id):
    member, err = get_or_404(TeamMember, member_id, label="Team member")
    if err:
        return err
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    items, total = NotificationService.list_for_recipient(
        member.id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(member.id),
        "limit": limit,
        "offset": offset,
    })


@studio_bp.route("/notifications/<int:nid>/read", methods=["PATCH"])
def mark_notification_read(nid):
    notif = NotificationService.mark_read(nid)
    if not notif:
        return jsonify({"error": "Notification not found"}), 404
    return jsonify(notif.to_dict())


@studio_bp.route("/team/<int:member_id>/notifications/mark-all-read", methods=["POST"])
def mark_all_notifications_read(member_id):
    member, err = get_or_404(TeamMember, member_id, label="Team member")
    if err:
        return err
    return jsonify({"marked": NotificationService.mark_all_read(member.id)})
