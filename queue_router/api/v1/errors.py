from typing import NoReturn

from fastapi import HTTPException, status

from queue_router.domain.exceptions import InvalidTransition, NoOperatorAvailable
from queue_router.services.errors import (
    AlreadyAssigned,
    DepartmentMismatch,
    DependencyTimeout,
    DuplicateActiveSession,
    InvalidOperatorPosition,
    InvalidSessionRequest,
    InvalidTimeRange,
    MissingDepartment,
    OperatorListNotFound,
    OperatorNotEligible,
    OperatorNotFound,
    SessionNotFound,
    SessionRefInUse,
)

NOT_FOUND_ERRORS = (SessionNotFound, OperatorNotFound, OperatorListNotFound)
CONFLICT_ERRORS = (
    SessionRefInUse,
    AlreadyAssigned,
    InvalidTransition,
    OperatorNotEligible,
    MissingDepartment,
    DepartmentMismatch,
)
BAD_REQUEST_ERRORS = (InvalidOperatorPosition, InvalidSessionRequest, InvalidTimeRange)

# Everything a route may translate; anything else propagates as a 500.
SERVICE_ERRORS: tuple[type[Exception], ...] = (
    *NOT_FOUND_ERRORS,
    DuplicateActiveSession,
    *CONFLICT_ERRORS,
    NoOperatorAvailable,
    DependencyTimeout,
    *BAD_REQUEST_ERRORS,
)


def raise_for_service_error(exc: Exception) -> NoReturn:
    if isinstance(exc, NOT_FOUND_ERRORS):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    if isinstance(exc, DuplicateActiveSession):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "existing_session_id": exc.existing_session_id,
            },
        ) from exc
    if isinstance(exc, CONFLICT_ERRORS):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc
    if isinstance(exc, NoOperatorAvailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": str(exc),
                "reason": exc.reason.value,
                "pending_supervisor_id": (
                    str(exc.pending_supervisor_id)
                    if exc.pending_supervisor_id is not None
                    else None
                ),
            },
        ) from exc
    if isinstance(exc, DependencyTimeout):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    if isinstance(exc, BAD_REQUEST_ERRORS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    raise exc
