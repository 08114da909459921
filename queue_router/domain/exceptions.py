from uuid import UUID

from queue_router.domain.enums import (
    AssignmentReason,
    Department,
    SessionStatus,
    TransitionAction,
)


class InvalidTransition(ValueError):
    def __init__(
        self,
        current: SessionStatus,
        action: TransitionAction,
        session_id: str | None = None,
    ) -> None:
        subject = f"Session '{session_id}'" if session_id else "Session"
        super().__init__(
            f"{subject} cannot apply action '{action.value}' from state '{current.value}'."
        )
        self.current = current
        self.action = action
        self.session_id = session_id


class ConflictState(InvalidTransition):
    """Raised for any non-replay action against a terminal session."""

    def __init__(
        self,
        current: SessionStatus,
        action: TransitionAction,
        session_id: str | None = None,
    ) -> None:
        super().__init__(current, action, session_id)
        subject = f"Session '{session_id}'" if session_id else "Session"
        self.args = (
            f"{subject} is already '{current.value}'; action '{action.value}' rejected.",
        )


class NoOperatorAvailable(LookupError):
    def __init__(
        self,
        department: Department | None,
        reason: AssignmentReason,
        pending_supervisor_id: UUID | None = None,
        session_id: str | None = None,
    ) -> None:
        department_label = department.value if department is not None else "unknown"
        super().__init__(
            f"No operator or supervisor is available in department '{department_label}'"
        )
        self.department = department
        self.reason = reason
        self.pending_supervisor_id = pending_supervisor_id
        self.session_id = session_id
