from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from queue_router.domain.enums import (
    AssignmentReason,
    AssignmentTargetKind,
    Department,
    OperatorProfile,
)


@dataclass(frozen=True, slots=True)
class OperatorRecord:
    """Read-only directory view of one operator."""

    id: UUID
    display_name: str
    department: Department
    profile: OperatorProfile
    is_active: bool
    is_listable: bool
    created_at: datetime

    @property
    def is_eligible(self) -> bool:
        return (
            self.is_active
            and self.is_listable
            and self.profile != OperatorProfile.ADMIN
        )


@dataclass(frozen=True, slots=True)
class Candidate:
    operator: OperatorRecord
    is_online: bool
    active_load: int | None = None

    @property
    def id(self) -> UUID:
        return self.operator.id

    @property
    def is_supervisor(self) -> bool:
        return self.operator.profile == OperatorProfile.SUPERVISOR

    def with_load(self, active_load: int) -> "Candidate":
        return replace(self, active_load=active_load)


@dataclass(frozen=True, slots=True)
class AssignmentDecision:
    target_operator_id: UUID
    target_kind: AssignmentTargetKind
    reason: AssignmentReason

    @classmethod
    def for_candidate(
        cls, candidate: Candidate, reason: AssignmentReason
    ) -> "AssignmentDecision":
        kind = (
            AssignmentTargetKind.SUPERVISOR
            if candidate.is_supervisor
            else AssignmentTargetKind.OPERATOR
        )
        return cls(target_operator_id=candidate.id, target_kind=kind, reason=reason)
