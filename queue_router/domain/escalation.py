from collections.abc import Sequence

from queue_router.domain.enums import AssignmentReason, Department
from queue_router.domain.exceptions import NoOperatorAvailable
from queue_router.domain.routing import AssignmentDecision, Candidate


class EscalationPolicy:
    """Decides the supervisor fallback when no regular operator can take a session.

    Pure: callers supply the supervisors already annotated with availability
    and, when known, their current in-service load. Supervisors from other
    departments are ignored; there is no cross-department fallback.
    """

    _escalation_reasons = frozenset(
        {AssignmentReason.PREFERRED_UNAVAILABLE, AssignmentReason.DEPARTMENT_UNAVAILABLE}
    )

    @classmethod
    def escalate(
        cls,
        department: Department,
        reason: AssignmentReason,
        supervisors: Sequence[Candidate],
    ) -> AssignmentDecision:
        if reason not in cls._escalation_reasons:
            raise ValueError(f"'{reason.value}' is not an escalation reason.")

        eligible = [
            candidate
            for candidate in supervisors
            if candidate.is_supervisor
            and candidate.operator.is_eligible
            and candidate.operator.department == department
        ]
        if not eligible:
            raise NoOperatorAvailable(department=department, reason=reason)

        ranked = cls._rank(eligible)
        online = [candidate for candidate in ranked if candidate.is_online]
        if online:
            return AssignmentDecision.for_candidate(online[0], reason)

        raise NoOperatorAvailable(
            department=department,
            reason=reason,
            pending_supervisor_id=ranked[0].id,
        )

    @staticmethod
    def _rank(candidates: Sequence[Candidate]) -> list[Candidate]:
        # Least load first; unknown load sorts last; ties keep directory order.
        indexed = list(enumerate(candidates))
        indexed.sort(
            key=lambda item: (
                item[1].active_load is None,
                item[1].active_load or 0,
                item[0],
            )
        )
        return [candidate for _, candidate in indexed]
