import asyncio
from datetime import UTC, datetime
from typing import Any, NoReturn
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.core.config import EngineConfig
from queue_router.core.logging import get_logger
from queue_router.domain.enums import (
    CancellationReason,
    Department,
    OperatorProfile,
    SessionDirection,
    SessionStatus,
    TransitionAction,
)
from queue_router.domain.events import CompletionEvent, ParticipantRef
from queue_router.domain.state_machine import SessionLifecycle
from queue_router.infra.db.models import CustomerSession
from queue_router.infra.db.repositories import SessionRepository
from queue_router.infra.directory import OperatorDirectory
from queue_router.infra.history import HistoryRecorder, SqlHistoryRecorder
from queue_router.services.errors import (
    DependencyTimeout,
    DuplicateActiveSession,
    InvalidSessionRequest,
    OperatorNotEligible,
    OperatorNotFound,
    SessionNotFound,
    SessionRefInUse,
)

logger = get_logger(__name__)


class SessionService:
    def __init__(
        self,
        session: AsyncSession,
        sessions: SessionRepository | None = None,
        history: HistoryRecorder | None = None,
        directory: OperatorDirectory | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.session = session
        self.sessions = sessions or SessionRepository(session)
        self.history = history or SqlHistoryRecorder(session)
        self.directory = directory
        self.config = config or EngineConfig()

    async def create_session(
        self,
        customer_ref: str,
        direction: SessionDirection = SessionDirection.INBOUND,
        session_id: str | None = None,
        department: Department | None = None,
    ) -> CustomerSession:
        customer_session = await self._insert_session(
            customer_ref, direction, session_id, department
        )
        await self.session.commit()
        await self.session.refresh(customer_session)
        return customer_session

    async def record_automated_completion(
        self,
        session_id: str,
        department: Department,
        requested_operator_id: UUID | None = None,
    ) -> CustomerSession:
        current = await self._get_or_raise(session_id)
        next_status = SessionLifecycle.transition(
            current.status, TransitionAction.COMPLETE_AUTOMATION, session_id
        )

        updated = await self.sessions.transition(
            session_id,
            SessionLifecycle.sources(TransitionAction.COMPLETE_AUTOMATION),
            {
                "status": next_status,
                "department": department,
                "requested_operator_id": requested_operator_id,
                "automation_completed_at": datetime.now(UTC),
            },
        )
        if updated is None:
            await self._raise_for_lost_race(session_id, TransitionAction.COMPLETE_AUTOMATION)

        await self.session.commit()
        logger.info(
            "automation_completed",
            session_id=session_id,
            department=department.value,
            requested_operator_id=(
                str(requested_operator_id) if requested_operator_id is not None else None
            ),
        )
        return updated

    async def mark_completed(
        self,
        session_id: str,
        resolution_code: str | None = None,
        closed_by: ParticipantRef | None = None,
    ) -> CustomerSession:
        return await self._terminate(
            session_id,
            TransitionAction.COMPLETE,
            resolution_code=resolution_code,
            closed_by=closed_by,
        )

    async def mark_cancelled(
        self,
        session_id: str,
        closed_by: ParticipantRef | None = None,
    ) -> CustomerSession:
        return await self._terminate(
            session_id,
            TransitionAction.CANCEL,
            cancellation_reason=CancellationReason.CUSTOMER_REQUEST,
            closed_by=closed_by,
        )

    async def force_cancel(
        self,
        session_id: str,
        closed_by: ParticipantRef | None = None,
    ) -> CustomerSession:
        """Administrative cancel, recorded with the forced reason."""
        return await self._terminate(
            session_id,
            TransitionAction.CANCEL,
            cancellation_reason=CancellationReason.FORCED,
            closed_by=closed_by,
        )

    async def get_active_session_for_customer(
        self, customer_ref: str
    ) -> CustomerSession | None:
        return await self.sessions.get_active_for_customer(customer_ref.strip())

    async def get_session(self, session_id: str) -> CustomerSession:
        return await self._get_or_raise(session_id)

    async def start_outbound(self, customer_ref: str, operator_id: UUID) -> CustomerSession:
        """Operator-initiated contact: created waiting, claimed by the caller at once."""
        if self.directory is None:
            raise RuntimeError("An operator directory is required to start outbound sessions.")

        try:
            operator = await asyncio.wait_for(
                self.directory.get(operator_id),
                timeout=self.config.dependency_timeout_seconds,
            )
        except TimeoutError as exc:
            raise DependencyTimeout(
                "operator directory", self.config.dependency_timeout_seconds
            ) from exc
        if operator is None:
            raise OperatorNotFound(operator_id)
        if not operator.is_eligible:
            raise OperatorNotEligible(operator_id, "operator is inactive or not listable")

        customer_session = await self._insert_session(
            customer_ref,
            SessionDirection.OUTBOUND,
            session_id=None,
            department=operator.department,
        )
        next_status = SessionLifecycle.transition(
            customer_session.status, TransitionAction.ASSIGN, customer_session.session_id
        )
        values: dict[str, Any] = {
            "status": next_status,
            "assigned_operator_id": operator.id,
            "assigned_at": datetime.now(UTC),
        }
        if operator.profile == OperatorProfile.SUPERVISOR:
            values["supervisor_id"] = operator.id

        updated = await self.sessions.transition(
            customer_session.session_id,
            SessionLifecycle.sources(TransitionAction.ASSIGN),
            values,
        )
        if updated is None:
            await self._raise_for_lost_race(
                customer_session.session_id, TransitionAction.ASSIGN
            )

        await self.session.commit()
        logger.info(
            "outbound_session_started",
            session_id=updated.session_id,
            operator_id=str(operator.id),
            department=operator.department.value,
        )
        return updated

    async def _insert_session(
        self,
        customer_ref: str,
        direction: SessionDirection,
        session_id: str | None,
        department: Department | None,
    ) -> CustomerSession:
        cleaned_customer_ref = customer_ref.strip()
        if not cleaned_customer_ref:
            raise InvalidSessionRequest("customer_ref cannot be empty.")
        if direction == SessionDirection.OUTBOUND and department is None:
            raise InvalidSessionRequest("Outbound sessions require a department.")

        resolved_session_id = (session_id or "").strip() or uuid4().hex

        existing = await self.sessions.get(resolved_session_id)
        if existing is not None:
            return self._replay_or_raise(existing, cleaned_customer_ref)

        active = await self.sessions.get_active_for_customer(cleaned_customer_ref)
        if active is not None:
            raise DuplicateActiveSession(cleaned_customer_ref, active.session_id)

        created = await self.sessions.create(
            session_id=resolved_session_id,
            customer_ref=cleaned_customer_ref,
            direction=direction,
            status=SessionLifecycle.initial_status(direction),
            department=department,
        )
        if created is None:
            # A concurrent insert won; report whichever row beat us.
            existing = await self.sessions.get(resolved_session_id, refresh=True)
            if existing is not None:
                return self._replay_or_raise(existing, cleaned_customer_ref)
            active = await self.sessions.get_active_for_customer(cleaned_customer_ref)
            raise DuplicateActiveSession(
                cleaned_customer_ref, active.session_id if active is not None else None
            )

        logger.info(
            "session_created",
            session_id=created.session_id,
            customer_ref=cleaned_customer_ref,
            direction=direction.value,
            status=created.status.value,
        )
        return created

    @staticmethod
    def _replay_or_raise(existing: CustomerSession, customer_ref: str) -> CustomerSession:
        if existing.customer_ref != customer_ref:
            raise SessionRefInUse(existing.session_id)
        return existing

    async def _terminate(
        self,
        session_id: str,
        action: TransitionAction,
        cancellation_reason: CancellationReason | None = None,
        resolution_code: str | None = None,
        closed_by: ParticipantRef | None = None,
    ) -> CustomerSession:
        current = await self._get_or_raise(session_id)
        next_status = SessionLifecycle.transition(current.status, action, session_id)
        if SessionLifecycle.is_terminal(current.status):
            return current

        now = datetime.now(UTC)
        values: dict[str, Any] = {"status": next_status}
        if next_status == SessionStatus.COMPLETED:
            values["completed_at"] = now
        else:
            values["cancelled_at"] = now
            values["cancellation_reason"] = cancellation_reason

        updated = await self.sessions.transition(
            session_id, SessionLifecycle.sources(action), values
        )
        if updated is None:
            return await self._resolve_terminal_race(session_id, action)

        reason = cancellation_reason.value if cancellation_reason is not None else None
        await self.history.record(
            CompletionEvent.from_session(
                updated,
                reason=reason,
                resolution_code=resolution_code,
                closed_by=closed_by,
            )
        )
        await self.session.commit()

        logger.info(
            "session_terminated",
            session_id=session_id,
            status=next_status.value,
            reason=reason,
            closed_by=str(closed_by.id) if closed_by is not None else None,
        )
        return updated

    async def _resolve_terminal_race(
        self, session_id: str, action: TransitionAction
    ) -> CustomerSession:
        fresh = await self._get_or_raise(session_id, refresh=True)
        # Same terminal state reached by a concurrent call is a replay.
        SessionLifecycle.transition(fresh.status, action, session_id)
        if SessionLifecycle.is_terminal(fresh.status):
            return fresh
        await self._raise_for_lost_race(session_id, action)

    async def _raise_for_lost_race(
        self, session_id: str, action: TransitionAction
    ) -> NoReturn:
        fresh = await self._get_or_raise(session_id, refresh=True)
        SessionLifecycle.transition(fresh.status, action, session_id)
        raise RuntimeError(
            f"Session '{session_id}' changed concurrently while applying '{action.value}'."
        )

    async def _get_or_raise(self, session_id: str, refresh: bool = False) -> CustomerSession:
        customer_session = await self.sessions.get(session_id, refresh=refresh)
        if customer_session is None:
            raise SessionNotFound(session_id)
        return customer_session
