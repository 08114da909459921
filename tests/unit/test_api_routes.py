from datetime import UTC, datetime
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from queue_router.api.deps import (
    get_assignment_service,
    get_queue_service,
    get_session_reaper,
    get_session_service,
)
from queue_router.api.router import api_router
from queue_router.domain.enums import (
    AssignmentReason,
    Department,
    SessionStatus,
    TransitionAction,
)
from queue_router.domain.exceptions import (
    ConflictState,
    InvalidTransition,
    NoOperatorAvailable,
)
from queue_router.services.errors import (
    AlreadyAssigned,
    DepartmentMismatch,
    DependencyTimeout,
    InvalidOperatorPosition,
    InvalidSessionRequest,
    InvalidTimeRange,
    MissingDepartment,
    OperatorListNotFound,
    OperatorNotEligible,
    SessionNotFound,
    SessionRefInUse,
)


class RaisingService:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def __getattr__(self, name: str):
        async def _raise(*args, **kwargs):
            raise self.exc

        return _raise


class StubReaper:
    async def reap_once(self) -> int:
        return 3


class EmptyClaimService:
    async def claim_next(self, operator_id):
        return None


def _client(overrides: dict, raise_server_exceptions: bool = True) -> TestClient:
    app = FastAPI()
    app.include_router(api_router, prefix="/api")
    app.dependency_overrides.update(overrides)
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


def test_create_and_complete_automation_flow(engine) -> None:
    client = _client({get_session_service: lambda: engine.session_service})

    created = client.post(
        "/api/v1/sessions", json={"customer_ref": "cust-1", "session_id": "chat-1"}
    )
    assert created.status_code == 201
    assert created.json()["status"] == "automated"

    duplicate = client.post(
        "/api/v1/sessions", json={"customer_ref": "cust-1", "session_id": "chat-2"}
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["existing_session_id"] == "chat-1"

    completed = client.post(
        "/api/v1/sessions/chat-1/automation/complete", json={"department": "Fiscal"}
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "waiting"
    assert completed.json()["department"] == "fiscal"

    active = client.get("/api/v1/customers/cust-1/active-session")
    assert active.status_code == 200
    assert active.json()["session"]["session_id"] == "chat-1"


def test_terminal_calls_are_idempotent_over_http(engine) -> None:
    client = _client({get_session_service: lambda: engine.session_service})
    client.post("/api/v1/sessions", json={"customer_ref": "cust-1", "session_id": "chat-1"})

    first = client.post("/api/v1/sessions/chat-1/cancel")
    second = client.post("/api/v1/sessions/chat-1/cancel")
    conflict = client.post("/api/v1/sessions/chat-1/complete", json={})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["cancelled_at"] == first.json()["cancelled_at"]
    assert conflict.status_code == 409
    assert len(engine.history.events) == 1


@pytest.mark.parametrize(
    ("exc", "expected_status"),
    [
        (SessionNotFound("chat-1"), 404),
        (OperatorListNotFound("chat-1"), 404),
        (AlreadyAssigned("chat-1", uuid4()), 409),
        (ConflictState(SessionStatus.COMPLETED, TransitionAction.ASSIGN, "chat-1"), 409),
        (InvalidTransition(SessionStatus.AUTOMATED, TransitionAction.ASSIGN, "chat-1"), 409),
        (OperatorNotEligible(uuid4(), "operator is offline"), 409),
        (MissingDepartment("chat-1", SessionStatus.WAITING), 409),
        (SessionRefInUse("chat-1"), 409),
        (
            NoOperatorAvailable(Department.PERSONAL, AssignmentReason.DEPARTMENT_UNAVAILABLE),
            503,
        ),
        (DependencyTimeout("operator directory", 2.0), 503),
        (DepartmentMismatch("chat-1", Department.PERSONAL, Department.FISCAL), 409),
        (InvalidOperatorPosition(7, 3), 400),
        (InvalidSessionRequest("Outbound sessions require a department."), 400),
        (
            InvalidTimeRange(
                datetime(2026, 10, 19, tzinfo=UTC), datetime(2026, 10, 18, tzinfo=UTC)
            ),
            400,
        ),
    ],
)
def test_service_errors_map_to_http_status(exc: Exception, expected_status: int) -> None:
    client = _client({get_assignment_service: lambda: RaisingService(exc)})

    response = client.post("/api/v1/sessions/chat-1/assign")

    assert response.status_code == expected_status


def test_no_operator_available_reports_pending_supervisor() -> None:
    supervisor_id = uuid4()
    exc = NoOperatorAvailable(
        Department.FISCAL,
        AssignmentReason.PREFERRED_UNAVAILABLE,
        pending_supervisor_id=supervisor_id,
    )
    client = _client({get_assignment_service: lambda: RaisingService(exc)})

    response = client.post("/api/v1/sessions/chat-1/operator-choices/select", json={"position": 1})

    assert response.status_code == 503
    detail = response.json()["detail"]
    assert detail["reason"] == "preferred_unavailable"
    assert detail["pending_supervisor_id"] == str(supervisor_id)


def test_outcome_lookup_for_unknown_session_is_404() -> None:
    client = _client({get_queue_service: lambda: RaisingService(SessionNotFound("nope"))})

    response = client.get("/api/v1/sessions/nope/outcome")

    assert response.status_code == 404


def test_manual_reap_reports_count() -> None:
    client = _client({get_session_reaper: lambda: StubReaper()})

    response = client.post("/api/v1/maintenance/reap")

    assert response.status_code == 200
    assert response.json() == {"reaped": 3}


def test_claim_next_with_empty_queue_returns_no_content() -> None:
    client = _client({get_assignment_service: lambda: EmptyClaimService()})

    response = client.post(f"/api/v1/operators/{uuid4()}/claim-next")

    assert response.status_code == 204


def test_unexpected_value_error_is_a_server_error() -> None:
    exc = ValueError("badly formed hexadecimal UUID string")
    client = _client(
        {get_assignment_service: lambda: RaisingService(exc)},
        raise_server_exceptions=False,
    )

    response = client.post("/api/v1/sessions/chat-1/assign")

    assert response.status_code == 500
