import pytest

from queue_router.domain.enums import SessionDirection, SessionStatus, TransitionAction
from queue_router.domain.exceptions import ConflictState, InvalidTransition
from queue_router.domain.state_machine import SessionLifecycle


def test_automated_to_waiting_transition() -> None:
    next_state = SessionLifecycle.transition(
        SessionStatus.AUTOMATED, TransitionAction.COMPLETE_AUTOMATION
    )
    assert next_state == SessionStatus.WAITING


def test_waiting_to_in_service_transition() -> None:
    next_state = SessionLifecycle.transition(SessionStatus.WAITING, TransitionAction.ASSIGN)
    assert next_state == SessionStatus.IN_SERVICE


def test_transfer_keeps_session_in_service() -> None:
    next_state = SessionLifecycle.transition(
        SessionStatus.IN_SERVICE, TransitionAction.TRANSFER
    )
    assert next_state == SessionStatus.IN_SERVICE


@pytest.mark.parametrize(
    "status",
    [SessionStatus.AUTOMATED, SessionStatus.WAITING, SessionStatus.IN_SERVICE],
)
def test_any_live_state_can_complete_or_cancel(status: SessionStatus) -> None:
    assert SessionLifecycle.transition(status, TransitionAction.COMPLETE) == SessionStatus.COMPLETED
    assert SessionLifecycle.transition(status, TransitionAction.CANCEL) == SessionStatus.CANCELLED


def test_expire_only_applies_to_automated() -> None:
    assert (
        SessionLifecycle.transition(SessionStatus.AUTOMATED, TransitionAction.EXPIRE)
        == SessionStatus.CANCELLED
    )
    with pytest.raises(InvalidTransition):
        SessionLifecycle.transition(SessionStatus.WAITING, TransitionAction.EXPIRE)


def test_terminal_replays_are_idempotent() -> None:
    assert (
        SessionLifecycle.transition(SessionStatus.COMPLETED, TransitionAction.COMPLETE)
        == SessionStatus.COMPLETED
    )
    assert (
        SessionLifecycle.transition(SessionStatus.CANCELLED, TransitionAction.CANCEL)
        == SessionStatus.CANCELLED
    )


def test_crossing_terminal_states_raises_conflict() -> None:
    with pytest.raises(ConflictState):
        SessionLifecycle.transition(SessionStatus.COMPLETED, TransitionAction.CANCEL)
    with pytest.raises(ConflictState):
        SessionLifecycle.transition(SessionStatus.CANCELLED, TransitionAction.ASSIGN)


def test_assign_from_automated_is_invalid() -> None:
    with pytest.raises(InvalidTransition) as exc_info:
        SessionLifecycle.transition(
            SessionStatus.AUTOMATED, TransitionAction.ASSIGN, session_id="s-1"
        )
    assert not isinstance(exc_info.value, ConflictState)
    assert exc_info.value.session_id == "s-1"


def test_sources_lists_compare_and_set_expectations() -> None:
    assert SessionLifecycle.sources(TransitionAction.ASSIGN) == {SessionStatus.WAITING}
    assert SessionLifecycle.sources(TransitionAction.EXPIRE) == {SessionStatus.AUTOMATED}
    assert SessionLifecycle.sources(TransitionAction.COMPLETE) == {
        SessionStatus.AUTOMATED,
        SessionStatus.WAITING,
        SessionStatus.IN_SERVICE,
    }


def test_initial_status_depends_on_direction() -> None:
    assert SessionLifecycle.initial_status(SessionDirection.INBOUND) == SessionStatus.AUTOMATED
    assert SessionLifecycle.initial_status(SessionDirection.OUTBOUND) == SessionStatus.WAITING
