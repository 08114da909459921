from queue_router.domain.enums import SessionDirection, SessionStatus, TransitionAction
from queue_router.domain.exceptions import ConflictState, InvalidTransition

TERMINAL_STATUSES: frozenset[SessionStatus] = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED}
)
ACTIVE_STATUSES: frozenset[SessionStatus] = frozenset(
    {SessionStatus.AUTOMATED, SessionStatus.WAITING, SessionStatus.IN_SERVICE}
)


class SessionLifecycle:
    """State machine for a routing session: automated -> waiting -> in_service -> completed."""

    _allowed_transitions: dict[tuple[SessionStatus, TransitionAction], SessionStatus] = {
        (SessionStatus.AUTOMATED, TransitionAction.COMPLETE_AUTOMATION): SessionStatus.WAITING,
        (SessionStatus.WAITING, TransitionAction.ASSIGN): SessionStatus.IN_SERVICE,
        (SessionStatus.IN_SERVICE, TransitionAction.TRANSFER): SessionStatus.IN_SERVICE,
        (SessionStatus.AUTOMATED, TransitionAction.COMPLETE): SessionStatus.COMPLETED,
        (SessionStatus.WAITING, TransitionAction.COMPLETE): SessionStatus.COMPLETED,
        (SessionStatus.IN_SERVICE, TransitionAction.COMPLETE): SessionStatus.COMPLETED,
        (SessionStatus.AUTOMATED, TransitionAction.CANCEL): SessionStatus.CANCELLED,
        (SessionStatus.WAITING, TransitionAction.CANCEL): SessionStatus.CANCELLED,
        (SessionStatus.IN_SERVICE, TransitionAction.CANCEL): SessionStatus.CANCELLED,
        (SessionStatus.AUTOMATED, TransitionAction.EXPIRE): SessionStatus.CANCELLED,
    }

    # Replays of the terminating call return the terminal state unchanged.
    _idempotent_replays: dict[TransitionAction, SessionStatus] = {
        TransitionAction.COMPLETE: SessionStatus.COMPLETED,
        TransitionAction.CANCEL: SessionStatus.CANCELLED,
    }

    @classmethod
    def transition(
        cls,
        current: SessionStatus,
        action: TransitionAction,
        session_id: str | None = None,
    ) -> SessionStatus:
        if current in TERMINAL_STATUSES:
            if cls._idempotent_replays.get(action) == current:
                return current
            raise ConflictState(current=current, action=action, session_id=session_id)

        next_state = cls._allowed_transitions.get((current, action))
        if not next_state:
            raise InvalidTransition(current=current, action=action, session_id=session_id)
        return next_state

    @classmethod
    def sources(cls, action: TransitionAction) -> frozenset[SessionStatus]:
        """States an action may start from; used as the compare-and-set expectation."""
        return frozenset(
            state for (state, candidate), _ in cls._allowed_transitions.items()
            if candidate == action
        )

    @staticmethod
    def initial_status(direction: SessionDirection) -> SessionStatus:
        if direction == SessionDirection.OUTBOUND:
            return SessionStatus.WAITING
        return SessionStatus.AUTOMATED

    @staticmethod
    def is_terminal(status: SessionStatus) -> bool:
        return status in TERMINAL_STATUSES
