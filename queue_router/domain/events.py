from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from queue_router.domain.enums import ParticipantKind, SessionOutcome, SessionStatus


@dataclass(frozen=True, slots=True)
class OperatorRef:
    id: UUID
    kind: ParticipantKind = ParticipantKind.OPERATOR


@dataclass(frozen=True, slots=True)
class CustomerRef:
    ref: str
    kind: ParticipantKind = ParticipantKind.CUSTOMER

    @property
    def id(self) -> str:
        return self.ref


ParticipantRef = OperatorRef | CustomerRef


def participant_from_parts(kind: ParticipantKind | None, raw_id: str | None) -> ParticipantRef | None:
    if kind is None or raw_id is None:
        return None
    if kind == ParticipantKind.OPERATOR:
        return OperatorRef(id=UUID(raw_id))
    return CustomerRef(ref=raw_id)


class TerminalSession(Protocol):
    session_id: str
    status: SessionStatus
    assigned_operator_id: UUID | None
    supervisor_id: UUID | None
    created_at: datetime
    completed_at: datetime | None
    cancelled_at: datetime | None


@dataclass(frozen=True, slots=True)
class CompletionEvent:
    session_id: str
    outcome: SessionOutcome
    assigned_operator_id: UUID | None
    supervisor_id: UUID | None
    started_at: datetime
    ended_at: datetime
    reason: str | None = None
    resolution_code: str | None = None
    closed_by: ParticipantRef | None = None

    @classmethod
    def from_session(
        cls,
        session: TerminalSession,
        *,
        reason: str | None = None,
        resolution_code: str | None = None,
        closed_by: ParticipantRef | None = None,
    ) -> "CompletionEvent":
        if session.status == SessionStatus.COMPLETED and session.completed_at is not None:
            outcome = SessionOutcome.COMPLETED
            ended_at = session.completed_at
        elif session.status == SessionStatus.CANCELLED and session.cancelled_at is not None:
            outcome = SessionOutcome.CANCELLED
            ended_at = session.cancelled_at
        else:
            raise ValueError(
                f"Session '{session.session_id}' is not terminal ('{session.status.value}')."
            )

        return cls(
            session_id=session.session_id,
            outcome=outcome,
            assigned_operator_id=session.assigned_operator_id,
            supervisor_id=session.supervisor_id,
            started_at=session.created_at,
            ended_at=ended_at,
            reason=reason,
            resolution_code=resolution_code,
            closed_by=closed_by,
        )
