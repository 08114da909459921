from datetime import datetime
from uuid import UUID

from queue_router.domain.enums import Department, SessionStatus


class SessionNotFound(LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class DuplicateActiveSession(ValueError):
    def __init__(self, customer_ref: str, existing_session_id: str | None) -> None:
        super().__init__(
            f"Customer '{customer_ref}' already has an active session "
            f"'{existing_session_id}'"
        )
        self.customer_ref = customer_ref
        self.existing_session_id = existing_session_id


class SessionRefInUse(ValueError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session id '{session_id}' already belongs to another customer")
        self.session_id = session_id


class AlreadyAssigned(ValueError):
    def __init__(self, session_id: str, assigned_operator_id: UUID | None) -> None:
        super().__init__(
            f"Session '{session_id}' is already assigned to operator '{assigned_operator_id}'"
        )
        self.session_id = session_id
        self.assigned_operator_id = assigned_operator_id


class OperatorNotFound(LookupError):
    def __init__(self, operator_id: UUID) -> None:
        super().__init__(f"Operator '{operator_id}' not found")
        self.operator_id = operator_id


class OperatorNotEligible(ValueError):
    def __init__(self, operator_id: UUID, detail: str) -> None:
        super().__init__(f"Operator '{operator_id}' cannot take this session: {detail}")
        self.operator_id = operator_id
        self.detail = detail


class OperatorListNotFound(LookupError):
    def __init__(self, session_id: str, list_id: UUID | None = None) -> None:
        if list_id is None:
            message = f"No operator choice list was presented for session '{session_id}'"
        else:
            message = f"Operator choice list '{list_id}' not found for session '{session_id}'"
        super().__init__(message)
        self.session_id = session_id
        self.list_id = list_id


class InvalidOperatorPosition(ValueError):
    def __init__(self, position: int, size: int) -> None:
        super().__init__(f"Position {position} is outside the presented list of {size} operators")
        self.position = position
        self.size = size


class MissingDepartment(ValueError):
    def __init__(self, session_id: str, status: SessionStatus) -> None:
        super().__init__(
            f"Session '{session_id}' ({status.value}) has no department to route on"
        )
        self.session_id = session_id
        self.status = status


class InvalidSessionRequest(ValueError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class DepartmentMismatch(ValueError):
    def __init__(
        self, session_id: str, routed: Department | None, requested: Department
    ) -> None:
        routed_label = routed.value if routed is not None else "no department"
        super().__init__(
            f"Session '{session_id}' is routed to '{routed_label}', "
            f"not '{requested.value}'"
        )
        self.session_id = session_id
        self.routed = routed
        self.requested = requested


class InvalidTimeRange(ValueError):
    def __init__(self, start: datetime, end: datetime) -> None:
        super().__init__(f"Range start {start.isoformat()} is after end {end.isoformat()}")
        self.start = start
        self.end = end


class DependencyTimeout(TimeoutError):
    def __init__(self, dependency: str, timeout_seconds: float) -> None:
        super().__init__(f"{dependency} did not answer within {timeout_seconds}s")
        self.dependency = dependency
        self.timeout_seconds = timeout_seconds
