"""
StageGateway — HTTP StageStore.

Unit tests use a scripted fake session; the end-to-end tests route the
gateway into the Flask test client (see conftest.FlaskClientSession) and
drive a PhaseBoard against the real endpoints.
"""

import json
from datetime import datetime, timezone

import pytest
import requests

from residentone.integrations.stage_gateway import StageGateway, StageGatewayError
from residentone.models import db
from residentone.models.notification import EmailLog
from residentone.phases.board import PhaseBoard
from residentone.phases.executor import ActionOutcome
from residentone.phases.registry import PhaseKind
from residentone.phases.store import StageAction
from residentone.phases.view import PhaseStatus


def _response(status_code, body=None):
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = json.dumps(body).encode() if body is not None else b""
    return resp


class ScriptedSession:
    """Returns (or raises) the queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _gateway(*responses):
    session = ScriptedSession(*responses)
    return StageGateway("http://api.test/api/v1/", session=session, timeout=5), session


# ═════════════════════════════════════════════════════════════════════════════
# Unit
# ═════════════════════════════════════════════════════════════════════════════


class TestRequests:

    def test_assign_body_and_url(self):
        gw, session = _gateway(_response(200, {"message": "ok"}))
        result = gw.patch_stage(7, StageAction.ASSIGN, member_id=3)
        assert result.ok
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("PATCH", "http://api.test/api/v1/stages/7")
        assert kwargs["json"] == {"action": "assign", "assigned_to": 3}
        assert kwargs["timeout"] == 5

    def test_status_action_body_has_no_assignee(self):
        gw, session = _gateway(_response(200, {}))
        gw.patch_stage(7, StageAction.MARK_NOT_APPLICABLE)
        assert session.calls[0][2]["json"] == {"action": "mark_not_applicable"}

    def test_due_date_is_iso_or_null(self):
        gw, session = _gateway(_response(200, {}), _response(200, {}))
        gw.set_stage_due_date(7, datetime(2026, 11, 2, tzinfo=timezone.utc))
        gw.set_stage_due_date(7, None)
        assert session.calls[0][2]["json"] == {"due_date": "2026-11-02T00:00:00+00:00"}
        assert session.calls[1][2]["json"] == {"due_date": None}

    def test_set_due_date_is_not_a_patch_action(self):
        gw, _ = _gateway()
        with pytest.raises(ValueError):
            gw.patch_stage(7, StageAction.SET_DUE_DATE)


class TestErrors:

    def test_error_with_string_details(self):
        gw, _ = _gateway(_response(409, {"error": "Conflict", "details": "already completed"}))
        result = gw.patch_stage(7, StageAction.COMPLETE)
        assert not result.ok
        assert result.error == "Conflict: already completed"
        assert result.status_code == 409

    def test_error_with_message_details(self):
        gw, _ = _gateway(_response(400, {"error": "Bad", "details": {"message": "no member"}}))
        assert gw.patch_stage(7, StageAction.ASSIGN, 1).error == "Bad: no member"

    def test_empty_error_body_falls_back_to_status(self):
        gw, _ = _gateway(_response(503))
        assert gw.patch_stage(7, StageAction.START).error == "HTTP 503"

    def test_timeout(self):
        gw, _ = _gateway(requests.Timeout("slow"))
        result = gw.patch_stage(7, StageAction.START)
        assert not result.ok
        assert result.error == "Request timed out after 5s"

    def test_network_error(self):
        gw, _ = _gateway(requests.ConnectionError("refused"))
        result = gw.notify_stage(7)
        assert not result.ok and "refused" in result.error

    def test_notify_success_false_is_failure(self):
        gw, _ = _gateway(_response(200, {"success": False, "error": "Stage has no assignee"}))
        result = gw.notify_stage(7)
        assert not result.ok
        assert result.error == "Stage has no assignee"

    def test_failed_phase_read_raises(self):
        gw, _ = _gateway(_response(404, {"error": "Room not found"}))
        with pytest.raises(StageGatewayError) as exc:
            gw.get_phases(3)
        assert exc.value.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# End-to-end over the Flask test client
# ═════════════════════════════════════════════════════════════════════════════


class RecordingFeedback:
    def __init__(self, answer=True):
        self.answer = answer
        self.prompts = []
        self.errors = []
        self.infos = []

    def confirm(self, prompt):
        self.prompts.append(prompt)
        return self.answer

    def error(self, message):
        self.errors.append(message)

    def info(self, message):
        self.infos.append(message)


class TestBoardOverHttp:

    def _board(self, stage_gateway, room, team, feedback=None):
        return PhaseBoard.load(stage_gateway, room["id"], feedback=feedback,
                               team_members=team.values(), max_workers=1)

    def test_load_reads_phases(self, stage_gateway, room, team):
        board = self._board(stage_gateway, room, team)
        assert [p.kind for p in board.ordered_phases()] == list(PhaseKind)
        assert all(p.stage_id for p in board.phases)

    def test_start_then_snapshot_refreshed(self, stage_gateway, room, team):
        board = self._board(stage_gateway, room, team)
        result = board.start("THREE_D")
        assert result.outcome is ActionOutcome.APPLIED
        assert board.phase("THREE_D").status is PhaseStatus.IN_PROGRESS

    def test_rejected_transition_surfaces_server_reason(self, stage_gateway, room, team):
        feedback = RecordingFeedback()
        board = self._board(stage_gateway, room, team, feedback)
        board.change_status("FFE", "NOT_APPLICABLE")

        result = board.change_status("FFE", "COMPLETE")

        assert result.outcome is ActionOutcome.FAILED
        assert feedback.errors == [
            "Failed to complete phase: Cannot complete a stage in status not_applicable"
        ]

    def test_bulk_assign_and_completion_notifies_both_branches(self, stage_gateway, room, team):
        feedback = RecordingFeedback()
        board = self._board(stage_gateway, room, team, feedback)

        result = board.bulk_assign({
            "DRAWINGS": team["drafter"]["id"],
            "FFE": team["ffe"]["id"],
        })
        assert result.outcome is ActionOutcome.APPLIED
        assert board.phase("FFE").assigned_user.id == team["ffe"]["id"]

        result = board.change_status("CLIENT_APPROVAL", "COMPLETE")

        assert result.ok
        assert result.completion.sent == 2
        assert board.phase("CLIENT_APPROVAL").status is PhaseStatus.COMPLETE
        assert "Client Approval" in feedback.prompts[0].text
        logs = db.session.query(EmailLog).filter_by(template_name="phase_ready").all()
        assert {log.recipient_email for log in logs} == {"drafter@studio.test", "ffe@studio.test"}

    def test_completion_without_assignees_sends_nothing(self, stage_gateway, room, team):
        feedback = RecordingFeedback()
        board = self._board(stage_gateway, room, team, feedback)

        result = board.change_status("DESIGN_CONCEPT", "COMPLETE")

        assert result.ok and result.completion.sent == 0
        assert feedback.prompts == []
        assert db.session.query(EmailLog).count() == 0

    def test_due_date_round_trip(self, stage_gateway, room, team):
        board = self._board(stage_gateway, room, team)
        due = datetime(2026, 11, 2, 12, 0, tzinfo=timezone.utc)
        assert board.change_due_date("DRAWINGS", due).ok
        assert board.phase("DRAWINGS").due_date == due
