from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from queue_router.domain.enums import (
    AssignmentReason,
    AssignmentTargetKind,
    Department,
    OperatorProfile,
)
from queue_router.schemas.session import SessionResponse


class AssignmentDecisionResponse(BaseModel):
    target_operator_id: UUID
    target_kind: AssignmentTargetKind
    reason: AssignmentReason

    model_config = ConfigDict(from_attributes=True)


class AssignmentResponse(BaseModel):
    session: SessionResponse
    decision: AssignmentDecisionResponse


class PresentChoicesRequest(BaseModel):
    department: Department | None = None


class OperatorChoiceResponse(BaseModel):
    position: int
    operator_id: UUID
    display_name: str
    profile: OperatorProfile
    is_online: bool


class OperatorChoiceListResponse(BaseModel):
    list_id: UUID
    session_id: str
    department: Department
    choices: list[OperatorChoiceResponse]


class SelectOperatorRequest(BaseModel):
    position: int
    list_id: UUID | None = None


class ClaimSessionRequest(BaseModel):
    operator_id: UUID


class TransferSessionRequest(BaseModel):
    target_operator_id: UUID
    from_operator_id: UUID | None = None


class TransferResponse(BaseModel):
    session: SessionResponse
    previous_operator_id: UUID | None = Field(default=None)
