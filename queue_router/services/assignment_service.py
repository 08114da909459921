import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, NoReturn
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.core.config import EngineConfig
from queue_router.core.logging import get_logger
from queue_router.domain.enums import (
    AssignmentReason,
    AssignmentTargetKind,
    Department,
    OperatorProfile,
    SessionStatus,
    TransitionAction,
)
from queue_router.domain.escalation import EscalationPolicy
from queue_router.domain.exceptions import ConflictState, NoOperatorAvailable
from queue_router.domain.routing import AssignmentDecision, Candidate, OperatorRecord
from queue_router.domain.state_machine import SessionLifecycle
from queue_router.infra.availability import (
    AvailabilityOracle,
    check_availability,
    is_online_within,
)
from queue_router.infra.db.models import CustomerSession
from queue_router.infra.db.repositories import (
    OperatorChoiceListRepository,
    SessionRepository,
)
from queue_router.infra.directory import OperatorDirectory
from queue_router.services.errors import (
    AlreadyAssigned,
    DepartmentMismatch,
    DependencyTimeout,
    InvalidOperatorPosition,
    MissingDepartment,
    OperatorListNotFound,
    OperatorNotEligible,
    OperatorNotFound,
    SessionNotFound,
)

logger = get_logger(__name__)


@dataclass(slots=True)
class AssignmentResult:
    session: CustomerSession
    decision: AssignmentDecision


@dataclass(slots=True)
class TransferResult:
    session: CustomerSession
    previous_operator_id: UUID | None


@dataclass(slots=True)
class OperatorChoice:
    position: int
    operator: OperatorRecord
    is_online: bool


@dataclass(slots=True)
class OperatorChoiceList:
    list_id: UUID
    session_id: str
    department: Department
    choices: list[OperatorChoice]


class AssignmentService:
    """Routes waiting sessions to operators.

    Every write is a compare-and-set on the session's current status, so two
    callers racing on the same session produce exactly one assignment; the
    loser sees AlreadyAssigned (or ConflictState when the session was closed
    in between).
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: OperatorDirectory,
        oracle: AvailabilityOracle,
        config: EngineConfig | None = None,
        sessions: SessionRepository | None = None,
        choice_lists: OperatorChoiceListRepository | None = None,
    ) -> None:
        self.session = session
        self.directory = directory
        self.oracle = oracle
        self.config = config or EngineConfig()
        self.sessions = sessions or SessionRepository(session)
        self.choice_lists = choice_lists or OperatorChoiceListRepository(session)

    async def assign(self, session_id: str) -> AssignmentResult:
        current = await self._get_or_raise(session_id)
        self._ensure_assignable(current)
        department = self._require_department(current)

        candidates = await self._load_candidates(department)
        decision = await self._decide(current, department, candidates)
        return await self._apply_assignment(current, decision)

    async def present_operator_choices(
        self,
        session_id: str,
        department: Department | None = None,
    ) -> OperatorChoiceList:
        current = await self._get_or_raise(session_id)
        self._ensure_open_for_preference(current)

        if current.status == SessionStatus.AUTOMATED:
            resolved_department = department or current.department
        else:
            if department is not None and department != current.department:
                raise DepartmentMismatch(session_id, current.department, department)
            resolved_department = current.department
        if resolved_department is None:
            raise MissingDepartment(session_id, current.status)

        candidates = await self._load_candidates(resolved_department)
        snapshot = await self.choice_lists.create(
            session_id=session_id,
            department=resolved_department,
            operator_ids=[candidate.id for candidate in candidates],
        )
        await self.session.commit()

        logger.info(
            "operator_choices_presented",
            session_id=session_id,
            list_id=str(snapshot.list_id),
            department=resolved_department.value,
            size=len(candidates),
        )
        return OperatorChoiceList(
            list_id=snapshot.list_id,
            session_id=session_id,
            department=resolved_department,
            choices=[
                OperatorChoice(
                    position=position,
                    operator=candidate.operator,
                    is_online=candidate.is_online,
                )
                for position, candidate in enumerate(candidates, start=1)
            ],
        )

    async def resolve_preference_by_position(
        self,
        session_id: str,
        position: int,
        list_id: UUID | None = None,
    ) -> AssignmentResult:
        current = await self._get_or_raise(session_id)
        self._ensure_open_for_preference(current)
        observed_status = current.status

        if list_id is not None:
            snapshot = await self.choice_lists.get(list_id)
        else:
            snapshot = await self.choice_lists.get_latest_for_session(session_id)
        if snapshot is None or snapshot.session_id != session_id:
            raise OperatorListNotFound(session_id, list_id)

        operator_ids = list(snapshot.operator_ids)
        if position < 1 or position > len(operator_ids):
            raise InvalidOperatorPosition(position, len(operator_ids))
        chosen_operator_id = UUID(operator_ids[position - 1])

        if observed_status == SessionStatus.AUTOMATED:
            action = TransitionAction.COMPLETE_AUTOMATION
            values: dict[str, Any] = {
                "status": SessionLifecycle.transition(observed_status, action, session_id),
                "department": snapshot.department,
                "requested_operator_id": chosen_operator_id,
                "automation_completed_at": datetime.now(UTC),
            }
        else:
            action = TransitionAction.ASSIGN
            values = {"requested_operator_id": chosen_operator_id}

        updated = await self.sessions.transition(
            session_id, frozenset({observed_status}), values
        )
        if updated is None:
            await self._raise_for_lost_race(session_id, action)
        await self.session.commit()

        logger.info(
            "operator_preference_recorded",
            session_id=session_id,
            list_id=str(snapshot.list_id),
            position=position,
            requested_operator_id=str(chosen_operator_id),
        )
        return await self.assign(session_id)

    async def claim(self, session_id: str, operator_id: UUID) -> AssignmentResult:
        current = await self._get_or_raise(session_id)
        self._ensure_assignable(current)
        department = self._require_department(current)

        operator = await self._get_operator_or_raise(operator_id)
        self._ensure_can_serve(operator, department)

        decision = AssignmentDecision(
            target_operator_id=operator.id,
            target_kind=self._target_kind(operator),
            reason=AssignmentReason.OPERATOR_CLAIM,
        )
        return await self._apply_assignment(current, decision)

    async def claim_next(self, operator_id: UUID) -> AssignmentResult | None:
        operator = await self._get_operator_or_raise(operator_id)
        if not operator.is_eligible:
            raise OperatorNotEligible(operator_id, "operator is inactive or not listable")

        pending = await self.sessions.find_latest_waiting_for_operator(operator_id)
        if pending is None:
            return None
        return await self.claim(pending.session_id, operator_id)

    async def transfer(
        self,
        session_id: str,
        target_operator_id: UUID,
        from_operator_id: UUID | None = None,
    ) -> TransferResult:
        current = await self._get_or_raise(session_id)
        SessionLifecycle.transition(current.status, TransitionAction.TRANSFER, session_id)
        department = self._require_department(current)

        previous_operator_id = current.assigned_operator_id
        if from_operator_id is not None and from_operator_id != previous_operator_id:
            raise OperatorNotEligible(from_operator_id, "operator is not the current assignee")
        if target_operator_id == previous_operator_id:
            raise OperatorNotEligible(target_operator_id, "operator already serves this session")

        target = await self._get_operator_or_raise(target_operator_id)
        self._ensure_can_serve(target, department)
        if not await is_online_within(
            self.oracle, target.id, self.config.dependency_timeout_seconds
        ):
            raise OperatorNotEligible(target_operator_id, "operator is offline")

        values: dict[str, Any] = {"assigned_operator_id": target.id}
        if target.profile == OperatorProfile.SUPERVISOR:
            values["supervisor_id"] = target.id

        updated = await self.sessions.transition(
            session_id,
            SessionLifecycle.sources(TransitionAction.TRANSFER),
            values,
            expected_operator_id=previous_operator_id,
        )
        if updated is None:
            fresh = await self._get_or_raise(session_id, refresh=True)
            SessionLifecycle.transition(fresh.status, TransitionAction.TRANSFER, session_id)
            raise AlreadyAssigned(session_id, fresh.assigned_operator_id)
        await self.session.commit()

        logger.info(
            "session_transferred",
            session_id=session_id,
            from_operator_id=str(previous_operator_id) if previous_operator_id else None,
            to_operator_id=str(target.id),
        )
        return TransferResult(session=updated, previous_operator_id=previous_operator_id)

    async def _decide(
        self,
        current: CustomerSession,
        department: Department,
        candidates: list[Candidate],
    ) -> AssignmentDecision:
        preferred_id = current.requested_operator_id
        if preferred_id is not None:
            preferred = next(
                (candidate for candidate in candidates if candidate.id == preferred_id), None
            )
            if preferred is not None:
                if preferred.is_online:
                    return AssignmentDecision.for_candidate(
                        preferred, AssignmentReason.REQUESTED_OPERATOR
                    )
                # The customer chose someone specific; never hand them to a peer.
                return await self._escalate(
                    current, department, AssignmentReason.PREFERRED_UNAVAILABLE, candidates
                )

        for candidate in candidates:
            if candidate.is_online and not candidate.is_supervisor:
                return AssignmentDecision.for_candidate(
                    candidate, AssignmentReason.FIRST_AVAILABLE
                )

        return await self._escalate(
            current, department, AssignmentReason.DEPARTMENT_UNAVAILABLE, candidates
        )

    async def _escalate(
        self,
        current: CustomerSession,
        department: Department,
        reason: AssignmentReason,
        candidates: list[Candidate],
    ) -> AssignmentDecision:
        supervisors: list[Candidate] = []
        for candidate in candidates:
            if not candidate.is_supervisor:
                continue
            load = await self.sessions.count_in_service_for_operator(candidate.id)
            supervisors.append(candidate.with_load(load))

        try:
            decision = EscalationPolicy.escalate(department, reason, supervisors)
        except NoOperatorAvailable as exc:
            exc.session_id = current.session_id
            if exc.pending_supervisor_id is not None:
                await self._record_pending_supervisor(current, exc.pending_supervisor_id)
            logger.warning(
                "no_operator_available",
                session_id=current.session_id,
                department=department.value,
                reason=reason.value,
                pending_supervisor_id=(
                    str(exc.pending_supervisor_id) if exc.pending_supervisor_id else None
                ),
            )
            raise

        logger.info(
            "assignment_escalated",
            session_id=current.session_id,
            department=department.value,
            reason=reason.value,
            supervisor_id=str(decision.target_operator_id),
        )
        return decision

    async def _record_pending_supervisor(
        self, current: CustomerSession, supervisor_id: UUID
    ) -> None:
        if current.supervisor_id == supervisor_id:
            return
        # Keeps the session waiting; it only becomes visible in the supervisor's queue.
        updated = await self.sessions.transition(
            current.session_id,
            frozenset({SessionStatus.WAITING}),
            {"supervisor_id": supervisor_id},
        )
        if updated is not None:
            await self.session.commit()

    async def _apply_assignment(
        self, current: CustomerSession, decision: AssignmentDecision
    ) -> AssignmentResult:
        session_id = current.session_id
        values: dict[str, Any] = {
            "status": SessionLifecycle.transition(
                SessionStatus.WAITING, TransitionAction.ASSIGN, session_id
            ),
            "assigned_operator_id": decision.target_operator_id,
            "assigned_at": datetime.now(UTC),
        }
        if decision.target_kind == AssignmentTargetKind.SUPERVISOR:
            values["supervisor_id"] = decision.target_operator_id

        updated = await self.sessions.transition(
            session_id, SessionLifecycle.sources(TransitionAction.ASSIGN), values
        )
        if updated is None:
            await self._raise_for_lost_race(session_id, TransitionAction.ASSIGN)
        await self.session.commit()

        logger.info(
            "session_assigned",
            session_id=session_id,
            operator_id=str(decision.target_operator_id),
            target_kind=decision.target_kind.value,
            reason=decision.reason.value,
        )
        return AssignmentResult(session=updated, decision=decision)

    async def _load_candidates(self, department: Department) -> list[Candidate]:
        timeout = self.config.dependency_timeout_seconds
        try:
            operators = await asyncio.wait_for(
                self.directory.list_eligible(department), timeout=timeout
            )
        except TimeoutError:
            logger.warning(
                "directory_lookup_timed_out",
                department=department.value,
                timeout_seconds=timeout,
            )
            operators = []
        except Exception as exc:
            logger.warning(
                "directory_lookup_failed", department=department.value, error=str(exc)
            )
            operators = []

        eligible = sorted(
            (
                operator
                for operator in operators
                if operator.is_eligible and operator.department == department
            ),
            key=lambda operator: (operator.created_at, str(operator.id)),
        )
        availability = await check_availability(
            self.oracle, [operator.id for operator in eligible], timeout
        )
        return [
            Candidate(operator=operator, is_online=availability.get(operator.id, False))
            for operator in eligible
        ]

    async def _get_operator_or_raise(self, operator_id: UUID) -> OperatorRecord:
        timeout = self.config.dependency_timeout_seconds
        try:
            operator = await asyncio.wait_for(self.directory.get(operator_id), timeout=timeout)
        except TimeoutError as exc:
            raise DependencyTimeout("operator directory", timeout) from exc
        if operator is None:
            raise OperatorNotFound(operator_id)
        return operator

    @staticmethod
    def _ensure_can_serve(operator: OperatorRecord, department: Department) -> None:
        if not operator.is_eligible:
            raise OperatorNotEligible(operator.id, "operator is inactive or not listable")
        if operator.department != department:
            raise OperatorNotEligible(
                operator.id, f"operator belongs to '{operator.department.value}'"
            )

    @staticmethod
    def _target_kind(operator: OperatorRecord) -> AssignmentTargetKind:
        if operator.profile == OperatorProfile.SUPERVISOR:
            return AssignmentTargetKind.SUPERVISOR
        return AssignmentTargetKind.OPERATOR

    @staticmethod
    def _ensure_assignable(current: CustomerSession) -> None:
        if current.status == SessionStatus.IN_SERVICE:
            raise AlreadyAssigned(current.session_id, current.assigned_operator_id)
        SessionLifecycle.transition(current.status, TransitionAction.ASSIGN, current.session_id)

    @staticmethod
    def _ensure_open_for_preference(current: CustomerSession) -> None:
        if SessionLifecycle.is_terminal(current.status):
            raise ConflictState(current.status, TransitionAction.ASSIGN, current.session_id)
        if current.status == SessionStatus.IN_SERVICE:
            raise AlreadyAssigned(current.session_id, current.assigned_operator_id)

    @staticmethod
    def _require_department(current: CustomerSession) -> Department:
        if current.department is None:
            raise MissingDepartment(current.session_id, current.status)
        return current.department

    async def _raise_for_lost_race(
        self, session_id: str, action: TransitionAction
    ) -> NoReturn:
        fresh = await self._get_or_raise(session_id, refresh=True)
        if fresh.status == SessionStatus.IN_SERVICE:
            raise AlreadyAssigned(session_id, fresh.assigned_operator_id)
        SessionLifecycle.transition(fresh.status, action, session_id)
        raise AlreadyAssigned(session_id, fresh.assigned_operator_id)

    async def _get_or_raise(self, session_id: str, refresh: bool = False) -> CustomerSession:
        customer_session = await self.sessions.get(session_id, refresh=refresh)
        if customer_session is None:
            raise SessionNotFound(session_id)
        return customer_session
