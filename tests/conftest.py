"""
Shared pytest fixtures for the ResidentOne test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - team / project / room: records created through the API
    - stage_gateway: StageGateway whose HTTP calls are routed into the test client
"""

import pytest
import requests

from residentone import create_app
from residentone.integrations.stage_gateway import StageGateway
from residentone.models import db as _db

TEST_API_HOST = "http://residentone.test"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def team(client):
    """Four active members keyed by role-ish handle: designer, renderer, drafter, ffe."""
    members = {}
    for handle, name in (
        ("designer", "Aylin Designer"),
        ("renderer", "Bora Renderer"),
        ("drafter", "Cem Drafter"),
        ("ffe", "Deniz Sourcing"),
    ):
        res = client.post("/api/v1/team", json={
            "name": name, "email": f"{handle}@studio.test", "role": handle,
        })
        assert res.status_code == 201
        members[handle] = res.get_json()
    return members


@pytest.fixture()
def project(client):
    res = client.post("/api/v1/projects", json={
        "name": "Smith Residence", "client_name": "Jane Smith",
    })
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def room(client, project):
    """A kitchen with its five provisioned stages."""
    res = client.post(f"/api/v1/projects/{project['id']}/rooms", json={"room_type": "KITCHEN"})
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def stages(room):
    """phase → stage_id for the room fixture."""
    return {p["phase"]: p["stage_id"] for p in room["phases"]}


# ── Gateway over the test client ─────────────────────────────────────────


class FlaskClientSession:
    """requests.Session stand-in that routes gateway calls into the Flask test client."""

    def __init__(self, client, host=TEST_API_HOST):
        self.client = client
        self.host = host
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        assert url.startswith(self.host), url
        path = url[len(self.host):]
        self.calls.append((method, path, json))
        flask_resp = self.client.open(path, method=method, json=json, headers=headers)
        resp = requests.Response()
        resp.status_code = flask_resp.status_code
        resp._content = flask_resp.get_data()
        resp.headers.update(dict(flask_resp.headers))
        resp.url = url
        return resp


@pytest.fixture()
def stage_gateway(app, client):
    return StageGateway.from_config(app.config, session=FlaskClientSession(client))
