"""
Stage Blueprint — room phase workflow endpoints.

Endpoints:
  Stage actions:      PATCH /stages/<id>                {action, assigned_to?, actor_id?}
                      PATCH /stages/<id>/due-date       {due_date | null}
  Notifications:      POST  /stages/<id>/notify         phase-ready email to the stage assignee
                      GET   /stages/<id>/next-assignees
                      POST  /stages/<id>/notifications  {recipient_ids, custom_message?, include_actor?}
  Room phases:        GET   /rooms/<id>/phases
                      GET   /rooms/<id>/progress
"""

from flask import Blueprint, jsonify, request

from residentone.core.exceptions import ValidationError
from residentone.models.stage import STAGE_ACTIONS, Stage
from residentone.models.studio import Room
from residentone.services import phase_notification_service, stage_service
from residentone.utils.errors import E, api_error
from residentone.utils.helpers import get_or_404, parse_datetime

stage_bp = Blueprint("stage", __name__, url_prefix="/api/v1")


# ═════════════════════════════════════════════════════════════════════════════
# Stage actions
# ═════════════════════════════════════════════════════════════════════════════

@stage_bp.route("/stages/<int:stage_id>", methods=["GET"])
def get_stage(stage_id):
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    return jsonify(stage.to_dict())


@stage_bp.route("/stages/<int:stage_id>", methods=["PATCH"])
def update_stage(stage_id):
    """Apply a board action (start, complete, reopen, mark_*, assign) to a stage."""
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")
    if action not in STAGE_ACTIONS:
        return api_error(E.VALIDATION_INVALID, f"Invalid action '{action}'",
                         details={"valid_actions": sorted(STAGE_ACTIONS)})
    if action == "assign" and "assigned_to" not in data:
        return api_error(E.VALIDATION_REQUIRED, "assigned_to is required for assign (null to unassign)")

    try:
        ok, msg = stage_service.apply_stage_action(
            stage, action,
            member_id=data.get("assigned_to"),
            actor_id=data.get("actor_id"),
        )
    except ValidationError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)
    if not ok:
        return api_error(E.CONFLICT_STATE, msg)
    return jsonify({"message": msg, "stage": stage.to_dict()})


@stage_bp.route("/stages/<int:stage_id>/due-date", methods=["PATCH"])
def update_due_date(stage_id):
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    if "due_date" not in data:
        return api_error(E.VALIDATION_REQUIRED, "due_date is required (null to clear)")
    try:
        due_date = parse_datetime(data["due_date"])
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    ok, msg = stage_service.set_due_date(stage, due_date)
    return jsonify({"message": msg, "stage": stage.to_dict()})


# ═════════════════════════════════════════════════════════════════════════════
# Notifications
# ═════════════════════════════════════════════════════════════════════════════

@stage_bp.route("/stages/<int:stage_id>/notify", methods=["POST"])
def notify_stage(stage_id):
    """Send the phase-ready email to the stage assignee."""
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    result = phase_notification_service.notify_stage(
        stage.id,
        completed_phase=data.get("completed_phase"),
        custom_message=data.get("custom_message"),
    )
    if not result["success"]:
        return jsonify({"success": False, "error": result["error"]}), 422
    return jsonify(result)


@stage_bp.route("/stages/<int:stage_id>/next-assignees", methods=["GET"])
def next_assignees(stage_id):
    """Downstream phases and their assignees, with already-notified flags."""
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    actor_id = request.args.get("actor_id", type=int)
    return jsonify(phase_notification_service.next_phase_targets(stage, actor_id=actor_id))


@stage_bp.route("/stages/<int:stage_id>/notifications", methods=["POST"])
def send_team_notifications(stage_id):
    """Email the completion summary to selected team members."""
    stage, err = get_or_404(Stage, stage_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    recipient_ids = data.get("recipient_ids")
    if not isinstance(recipient_ids, list) or not recipient_ids:
        return api_error(E.VALIDATION_REQUIRED, "recipient_ids must be a non-empty list")
    if not all(isinstance(i, int) for i in recipient_ids):
        return api_error(E.VALIDATION_INVALID, "recipient_ids must be integers")

    summary = phase_notification_service.send_team_notifications(
        stage, recipient_ids,
        custom_message=data.get("custom_message"),
        include_actor=bool(data.get("include_actor", False)),
        actor_id=data.get("actor_id"),
    )
    results = summary.pop("results")
    body = {"summary": summary, "results": results}
    if summary["failed_count"] == 0:
        return jsonify(body)
    if summary["sent_count"] > 0:
        return jsonify(body), 207
    return jsonify({**body, "error": "Failed to send notifications"}), 502


# ═════════════════════════════════════════════════════════════════════════════
# Room phases
# ═════════════════════════════════════════════════════════════════════════════

@stage_bp.route("/rooms/<int:room_id>/phases", methods=["GET"])
def room_phases(room_id):
    room, err = get_or_404(Room, room_id)
    if err:
        return err
    return jsonify({"room_id": room.id, "phases": stage_service.list_room_phases(room.id)})


@stage_bp.route("/rooms/<int:room_id>/progress", methods=["GET"])
def room_progress(room_id):
    room, err = get_or_404(Room, room_id)
    if err:
        return err
    return jsonify(stage_service.room_progress(room.id))
