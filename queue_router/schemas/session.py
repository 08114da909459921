from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from queue_router.domain.enums import (
    CancellationReason,
    Department,
    ParticipantKind,
    SessionDirection,
    SessionOutcome,
    SessionStatus,
)
from queue_router.domain.events import ParticipantRef, participant_from_parts


class CreateSessionRequest(BaseModel):
    customer_ref: str = Field(min_length=1, max_length=120)
    direction: SessionDirection = SessionDirection.INBOUND
    session_id: str | None = Field(default=None, min_length=1, max_length=120)
    department: Department | None = None


class StartOutboundRequest(BaseModel):
    customer_ref: str = Field(min_length=1, max_length=120)


class CompleteAutomationRequest(BaseModel):
    department: Department
    requested_operator_id: UUID | None = None


class ParticipantPayload(BaseModel):
    kind: ParticipantKind
    id: str = Field(min_length=1, max_length=120)

    @model_validator(mode="after")
    def check_operator_id(self) -> "ParticipantPayload":
        if self.kind == ParticipantKind.OPERATOR:
            UUID(self.id)
        return self

    def to_ref(self) -> ParticipantRef | None:
        return participant_from_parts(self.kind, self.id)


class CompleteSessionRequest(BaseModel):
    resolution_code: str | None = Field(default=None, max_length=120)
    closed_by: ParticipantPayload | None = None


class CancelSessionRequest(BaseModel):
    closed_by: ParticipantPayload | None = None


class SessionResponse(BaseModel):
    session_id: str
    customer_ref: str
    status: SessionStatus
    direction: SessionDirection
    department: Department | None
    requested_operator_id: UUID | None
    assigned_operator_id: UUID | None
    supervisor_id: UUID | None
    cancellation_reason: CancellationReason | None
    automation_completed_at: datetime | None
    assigned_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActiveSessionResponse(BaseModel):
    customer_ref: str
    session: SessionResponse | None


class SessionOutcomeResponse(BaseModel):
    session_id: str
    outcome: SessionOutcome
    reason: str | None
    assigned_operator_id: UUID | None
    supervisor_id: UUID | None
    resolution_code: str | None
    closed_by_kind: ParticipantKind | None
    closed_by_id: str | None
    started_at: datetime
    ended_at: datetime

    model_config = ConfigDict(from_attributes=True)
