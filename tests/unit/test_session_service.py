import asyncio
from uuid import uuid4

import pytest
from fakes import make_operator, make_session

from queue_router.domain.enums import (
    CancellationReason,
    Department,
    ParticipantKind,
    SessionDirection,
    SessionOutcome,
    SessionStatus,
)
from queue_router.domain.events import CustomerRef, OperatorRef
from queue_router.domain.exceptions import ConflictState, InvalidTransition
from queue_router.services.errors import (
    DuplicateActiveSession,
    OperatorNotEligible,
    OperatorNotFound,
    SessionNotFound,
    SessionRefInUse,
)


@pytest.mark.asyncio
async def test_inbound_session_starts_automated(engine) -> None:
    created = await engine.session_service.create_session("cust-1", session_id="chat-1")

    assert created.session_id == "chat-1"
    assert created.status == SessionStatus.AUTOMATED
    assert created.department is None
    assert engine.session.commits == 1


@pytest.mark.asyncio
async def test_outbound_session_starts_waiting_and_needs_department(engine) -> None:
    with pytest.raises(ValueError):
        await engine.session_service.create_session(
            "cust-1", direction=SessionDirection.OUTBOUND
        )

    created = await engine.session_service.create_session(
        "cust-1", direction=SessionDirection.OUTBOUND, department=Department.FISCAL
    )

    assert created.status == SessionStatus.WAITING
    assert created.department == Department.FISCAL
    assert created.session_id


@pytest.mark.asyncio
async def test_second_live_session_for_customer_is_rejected(engine) -> None:
    first = await engine.session_service.create_session("cust-1", session_id="chat-1")

    with pytest.raises(DuplicateActiveSession) as exc_info:
        await engine.session_service.create_session("cust-1", session_id="chat-2")

    assert exc_info.value.existing_session_id == first.session_id


@pytest.mark.asyncio
async def test_retrying_same_session_id_returns_existing(engine) -> None:
    first = await engine.session_service.create_session("cust-1", session_id="chat-1")
    again = await engine.session_service.create_session("cust-1", session_id="chat-1")

    assert again is first
    assert len(engine.sessions.sessions) == 1


@pytest.mark.asyncio
async def test_session_id_of_another_customer_is_rejected(engine) -> None:
    await engine.session_service.create_session("cust-1", session_id="chat-1")

    with pytest.raises(SessionRefInUse):
        await engine.session_service.create_session("cust-2", session_id="chat-1")


@pytest.mark.asyncio
async def test_concurrent_creates_leave_one_active_session(engine) -> None:
    results = await asyncio.gather(
        *(
            engine.session_service.create_session("cust-1", session_id=f"chat-{index}")
            for index in range(5)
        ),
        return_exceptions=True,
    )

    created = [result for result in results if not isinstance(result, Exception)]
    rejected = [result for result in results if isinstance(result, DuplicateActiveSession)]
    assert len(created) == 1
    assert len(rejected) == 4
    assert all(error.existing_session_id == created[0].session_id for error in rejected)


@pytest.mark.asyncio
async def test_new_session_allowed_after_previous_one_ends(engine) -> None:
    await engine.session_service.create_session("cust-1", session_id="chat-1")
    await engine.session_service.mark_cancelled("chat-1")

    second = await engine.session_service.create_session("cust-1", session_id="chat-2")

    assert second.status == SessionStatus.AUTOMATED


@pytest.mark.asyncio
async def test_record_automated_completion_moves_to_waiting(engine) -> None:
    await engine.session_service.create_session("cust-1", session_id="chat-1")
    preferred = uuid4()

    updated = await engine.session_service.record_automated_completion(
        "chat-1", Department.ACCOUNTING, requested_operator_id=preferred
    )

    assert updated.status == SessionStatus.WAITING
    assert updated.department == Department.ACCOUNTING
    assert updated.requested_operator_id == preferred
    assert updated.automation_completed_at is not None


@pytest.mark.asyncio
async def test_record_automated_completion_only_from_automated(engine) -> None:
    engine.sessions.add(make_session("chat-1", status=SessionStatus.WAITING))

    with pytest.raises(InvalidTransition):
        await engine.session_service.record_automated_completion(
            "chat-1", Department.PERSONAL
        )


@pytest.mark.asyncio
async def test_unknown_session_raises_not_found(engine) -> None:
    with pytest.raises(SessionNotFound):
        await engine.session_service.get_session("missing")
    with pytest.raises(SessionNotFound):
        await engine.session_service.mark_completed("missing")


@pytest.mark.asyncio
async def test_mark_completed_records_one_event(engine) -> None:
    operator_id = uuid4()
    engine.sessions.add(
        make_session(
            "chat-1", status=SessionStatus.IN_SERVICE, assigned_operator_id=operator_id
        )
    )

    completed = await engine.session_service.mark_completed(
        "chat-1", resolution_code="resolved", closed_by=OperatorRef(id=operator_id)
    )
    replay = await engine.session_service.mark_completed("chat-1")

    assert completed.status == SessionStatus.COMPLETED
    assert replay is completed
    assert replay.completed_at == completed.completed_at
    assert len(engine.history.events) == 1
    event = engine.history.events[0]
    assert event.outcome == SessionOutcome.COMPLETED
    assert event.resolution_code == "resolved"
    assert event.assigned_operator_id == operator_id
    assert event.closed_by == OperatorRef(id=operator_id)
    assert event.ended_at == completed.completed_at


@pytest.mark.asyncio
async def test_cancel_after_complete_is_a_conflict(engine) -> None:
    engine.sessions.add(make_session("chat-1", status=SessionStatus.IN_SERVICE))
    await engine.session_service.mark_completed("chat-1")

    with pytest.raises(ConflictState):
        await engine.session_service.mark_cancelled("chat-1")

    assert engine.sessions.sessions["chat-1"].status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_mark_cancelled_records_customer_request(engine) -> None:
    engine.sessions.add(make_session("chat-1", status=SessionStatus.WAITING))

    cancelled = await engine.session_service.mark_cancelled(
        "chat-1", closed_by=CustomerRef(ref="cust-1")
    )

    assert cancelled.status == SessionStatus.CANCELLED
    assert cancelled.cancellation_reason == CancellationReason.CUSTOMER_REQUEST
    event = engine.history.events[0]
    assert event.outcome == SessionOutcome.CANCELLED
    assert event.reason == CancellationReason.CUSTOMER_REQUEST.value
    assert event.closed_by is not None
    assert event.closed_by.kind == ParticipantKind.CUSTOMER


@pytest.mark.asyncio
async def test_force_cancel_replay_returns_cancelled_session(engine) -> None:
    engine.sessions.add(make_session("chat-1", status=SessionStatus.AUTOMATED))

    first = await engine.session_service.force_cancel("chat-1")
    second = await engine.session_service.force_cancel("chat-1")

    assert first.cancellation_reason == CancellationReason.FORCED
    assert second is first
    assert len(engine.history.events) == 1


@pytest.mark.asyncio
async def test_concurrent_completions_emit_single_event(engine) -> None:
    engine.sessions.add(make_session("chat-1", status=SessionStatus.IN_SERVICE))

    results = await asyncio.gather(
        *(engine.session_service.mark_completed("chat-1") for _ in range(4))
    )

    assert all(result.status == SessionStatus.COMPLETED for result in results)
    assert len(engine.history.events) == 1


@pytest.mark.asyncio
async def test_active_session_lookup_ignores_terminal_sessions(engine) -> None:
    engine.sessions.add(
        make_session("old", status=SessionStatus.COMPLETED, customer_ref="cust-1")
    )
    assert await engine.session_service.get_active_session_for_customer("cust-1") is None

    engine.sessions.add(
        make_session("new", status=SessionStatus.WAITING, customer_ref="cust-1")
    )
    active = await engine.session_service.get_active_session_for_customer(" cust-1 ")
    assert active is not None
    assert active.session_id == "new"


@pytest.mark.asyncio
async def test_start_outbound_assigns_the_calling_operator(engine) -> None:
    operator = engine.directory.add(make_operator("Ana", department=Department.FISCAL))

    started = await engine.session_service.start_outbound("cust-9", operator.id)

    assert started.direction == SessionDirection.OUTBOUND
    assert started.status == SessionStatus.IN_SERVICE
    assert started.department == Department.FISCAL
    assert started.assigned_operator_id == operator.id
    assert started.assigned_at is not None


@pytest.mark.asyncio
async def test_start_outbound_rejects_unknown_or_unlisted_operator(engine) -> None:
    hidden = engine.directory.add(make_operator("Hidden", is_listable=False))

    with pytest.raises(OperatorNotFound):
        await engine.session_service.start_outbound("cust-9", uuid4())
    with pytest.raises(OperatorNotEligible):
        await engine.session_service.start_outbound("cust-9", hidden.id)
    assert engine.sessions.sessions == {}
