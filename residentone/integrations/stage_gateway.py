"""
Stage API gateway — the HTTP ``StageStore`` used by the phase workflow.

All outbound calls from the board side to the stage endpoints go through
this class:
  - Base URL: STAGE_API_BASE_URL (e.g. http://localhost:5000/api/v1)
  - One attempt per call; nothing is retried automatically
  - Timeout: STAGE_API_TIMEOUT seconds (per call)
  - Mutations return a StoreResult and never raise for HTTP or network
    errors; reads raise StageGatewayError because a phase list has no
    room for an error

Testability: pass a fake ``session`` (anything with
``request(method, url, **kwargs)``) instead of letting the gateway create a
real requests.Session.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from residentone.phases.store import StageAction, StoreResult
from residentone.phases.view import Phase

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30


class StageGatewayError(Exception):
    """Raised when the phase read endpoint cannot be read."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def _error_message(resp) -> str:
    """Human-readable reason from an error response: error + details, else HTTP <code>."""
    try:
        body = resp.json() if resp.content else {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    error = body.get("error")
    if not error:
        return f"HTTP {resp.status_code}"
    details = body.get("details")
    if isinstance(details, str) and details:
        return f"{error}: {details}"
    if isinstance(details, dict) and details.get("message"):
        return f"{error}: {details['message']}"
    return str(error)


class StageGateway:
    """``StageStore`` over the stage REST endpoints.

    Usage:
        gateway = StageGateway.from_config(current_app.config)
        board = PhaseBoard.load(gateway, room_id)
    """

    def __init__(self, base_url: str, *, session: requests.Session | None = None,
                 timeout: int = _DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config, *, session=None) -> "StageGateway":
        return cls(
            config["STAGE_API_BASE_URL"],
            session=session,
            timeout=config.get("STAGE_API_TIMEOUT", _DEFAULT_TIMEOUT),
        )

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Core request dispatcher ──────────────────────────────────────────────

    def request(self, method: str, path: str, *, json_body: dict | None = None) -> StoreResult:
        """Execute a single request against the stage API.

        Returns:
            StoreResult — always returns (never raises). Callers check .ok.
        """
        url = f"{self.base_url}{path}"
        kwargs: dict[str, Any] = {
            "headers": {"Accept": "application/json"},
            "timeout": self.timeout,
        }
        if json_body is not None:
            kwargs["json"] = json_body

        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.Timeout:
            logger.warning("Stage API timed out after %ss: %s %s", self.timeout, method, url)
            return StoreResult.failure(f"Request timed out after {self.timeout}s")
        except requests.RequestException as exc:
            logger.warning("Stage API network error: %s %s error=%s", method, url, exc)
            return StoreResult.failure(str(exc)[:500] or "Network error")
        duration_ms = int((time.perf_counter() - t0) * 1000)

        if resp.ok:
            try:
                data = resp.json() if resp.content else {}
            except ValueError:
                data = {}
            logger.debug("Stage API %s %s → %d (%dms)", method, url, resp.status_code, duration_ms)
            return StoreResult.success(data if isinstance(data, dict) else {"items": data},
                                       status_code=resp.status_code)

        error = _error_message(resp)
        logger.warning("Stage API %s %s → %d: %s", method, url, resp.status_code, error)
        return StoreResult.failure(error, status_code=resp.status_code)

    # ── StageStore ───────────────────────────────────────────────────────────

    def get_phases(self, room_id: int) -> list[Phase]:
        result = self.request("GET", f"/rooms/{room_id}/phases")
        if not result.ok:
            raise StageGatewayError(
                f"Could not load phases for room {room_id}: {result.error}",
                status_code=result.status_code,
            )
        return [Phase.from_payload(p, room_id=room_id) for p in result.data.get("phases", [])]

    def patch_stage(self, stage_id: int, action: StageAction,
                    member_id: int | None = None) -> StoreResult:
        action = StageAction(action)
        if action.wire_keyword is None:
            raise ValueError(f"{action.value} is not a stage mutation")
        body: dict[str, Any] = {"action": action.wire_keyword}
        if action is StageAction.ASSIGN:
            body["assigned_to"] = member_id
        return self.request("PATCH", f"/stages/{stage_id}", json_body=body)

    def set_stage_due_date(self, stage_id: int, due_date) -> StoreResult:
        value = due_date.isoformat() if due_date is not None else None
        return self.request("PATCH", f"/stages/{stage_id}/due-date", json_body={"due_date": value})

    def notify_stage(self, stage_id: int) -> StoreResult:
        result = self.request("POST", f"/stages/{stage_id}/notify", json_body={})
        # Dispatch accepted only when the endpoint says so.
        if result.ok and result.data.get("success") is False:
            return StoreResult.failure(result.data.get("error") or "Notification not sent",
                                       status_code=result.status_code, data=result.data)
        return result
