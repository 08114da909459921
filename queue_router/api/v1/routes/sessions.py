from fastapi import APIRouter, Depends, status

from queue_router.api.deps import (
    get_assignment_service,
    get_queue_service,
    get_session_service,
)
from queue_router.api.v1.errors import SERVICE_ERRORS, raise_for_service_error
from queue_router.schemas.assignment import (
    AssignmentDecisionResponse,
    AssignmentResponse,
    ClaimSessionRequest,
    OperatorChoiceListResponse,
    OperatorChoiceResponse,
    PresentChoicesRequest,
    SelectOperatorRequest,
    TransferResponse,
    TransferSessionRequest,
)
from queue_router.schemas.session import (
    CancelSessionRequest,
    CompleteAutomationRequest,
    CompleteSessionRequest,
    CreateSessionRequest,
    SessionOutcomeResponse,
    SessionResponse,
)
from queue_router.services.assignment_service import (
    AssignmentResult,
    AssignmentService,
    OperatorChoiceList,
)
from queue_router.services.queue_service import QueueService
from queue_router.services.session_service import SessionService

router = APIRouter()


def _to_session_response(customer_session) -> SessionResponse:
    return SessionResponse.model_validate(customer_session)


def _to_assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        session=_to_session_response(result.session),
        decision=AssignmentDecisionResponse.model_validate(result.decision),
    )


def _to_choice_list_response(result: OperatorChoiceList) -> OperatorChoiceListResponse:
    return OperatorChoiceListResponse(
        list_id=result.list_id,
        session_id=result.session_id,
        department=result.department,
        choices=[
            OperatorChoiceResponse(
                position=choice.position,
                operator_id=choice.operator.id,
                display_name=choice.operator.display_name,
                profile=choice.operator.profile,
                is_online=choice.is_online,
            )
            for choice in result.choices
        ],
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CreateSessionRequest,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    try:
        customer_session = await service.create_session(
            customer_ref=payload.customer_ref,
            direction=payload.direction,
            session_id=payload.session_id,
            department=payload.department,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    try:
        customer_session = await service.get_session(session_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.post("/{session_id}/automation/complete", response_model=SessionResponse)
async def complete_automation(
    session_id: str,
    payload: CompleteAutomationRequest,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    try:
        customer_session = await service.record_automated_completion(
            session_id,
            department=payload.department,
            requested_operator_id=payload.requested_operator_id,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.post("/{session_id}/operator-choices", response_model=OperatorChoiceListResponse)
async def present_operator_choices(
    session_id: str,
    payload: PresentChoicesRequest | None = None,
    service: AssignmentService = Depends(get_assignment_service),
) -> OperatorChoiceListResponse:
    department = payload.department if payload is not None else None
    try:
        result = await service.present_operator_choices(session_id, department=department)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_choice_list_response(result)


@router.post("/{session_id}/operator-choices/select", response_model=AssignmentResponse)
async def select_operator(
    session_id: str,
    payload: SelectOperatorRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    try:
        result = await service.resolve_preference_by_position(
            session_id, payload.position, list_id=payload.list_id
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_assignment_response(result)


@router.post("/{session_id}/assign", response_model=AssignmentResponse)
async def assign_session(
    session_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    try:
        result = await service.assign(session_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_assignment_response(result)


@router.post("/{session_id}/claim", response_model=AssignmentResponse)
async def claim_session(
    session_id: str,
    payload: ClaimSessionRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    try:
        result = await service.claim(session_id, payload.operator_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_assignment_response(result)


@router.post("/{session_id}/transfer", response_model=TransferResponse)
async def transfer_session(
    session_id: str,
    payload: TransferSessionRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> TransferResponse:
    try:
        result = await service.transfer(
            session_id,
            payload.target_operator_id,
            from_operator_id=payload.from_operator_id,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return TransferResponse(
        session=_to_session_response(result.session),
        previous_operator_id=result.previous_operator_id,
    )


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str,
    payload: CompleteSessionRequest | None = None,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    payload = payload or CompleteSessionRequest()
    try:
        customer_session = await service.mark_completed(
            session_id,
            resolution_code=payload.resolution_code,
            closed_by=payload.closed_by.to_ref() if payload.closed_by else None,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str,
    payload: CancelSessionRequest | None = None,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    payload = payload or CancelSessionRequest()
    try:
        customer_session = await service.mark_cancelled(
            session_id,
            closed_by=payload.closed_by.to_ref() if payload.closed_by else None,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.post("/{session_id}/force-cancel", response_model=SessionResponse)
async def force_cancel_session(
    session_id: str,
    payload: CancelSessionRequest | None = None,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    payload = payload or CancelSessionRequest()
    try:
        customer_session = await service.force_cancel(
            session_id,
            closed_by=payload.closed_by.to_ref() if payload.closed_by else None,
        )
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return _to_session_response(customer_session)


@router.get("/{session_id}/outcome", response_model=SessionOutcomeResponse)
async def get_session_outcome(
    session_id: str,
    service: QueueService = Depends(get_queue_service),
) -> SessionOutcomeResponse:
    try:
        outcome = await service.get_outcome(session_id)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return SessionOutcomeResponse.model_validate(outcome)
