from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from queue_router.api.deps import get_assignment_service, get_session_service
from queue_router.api.v1.errors import SERVICE_ERRORS, raise_for_service_error
from queue_router.schemas.assignment import AssignmentDecisionResponse, AssignmentResponse
from queue_router.schemas.session import SessionResponse, StartOutboundRequest
from queue_router.services.assignment_service import AssignmentService
from queue_router.services.session_service import SessionService

router = APIRouter()


@router.post(
    "/{operator_id}/claim-next",
    response_model=AssignmentResponse,
    responses={204: {"description": "Nothing is waiting for this operator"}},
)
async def claim_next_session(
    operator_id: UUID,
    service: AssignmentService = Depends(get_assignment_service),
):
    try:
        result = await service.claim_next(operator_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return AssignmentResponse(
        session=SessionResponse.model_validate(result.session),
        decision=AssignmentDecisionResponse.model_validate(result.decision),
    )


@router.post(
    "/{operator_id}/outbound",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_outbound_session(
    operator_id: UUID,
    payload: StartOutboundRequest,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    try:
        customer_session = await service.start_outbound(payload.customer_ref, operator_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return SessionResponse.model_validate(customer_session)
