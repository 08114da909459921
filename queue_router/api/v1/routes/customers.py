from fastapi import APIRouter, Depends

from queue_router.api.deps import get_session_service
from queue_router.schemas.session import ActiveSessionResponse, SessionResponse
from queue_router.services.session_service import SessionService

router = APIRouter()


@router.get("/{customer_ref}/active-session", response_model=ActiveSessionResponse)
async def get_active_session(
    customer_ref: str,
    service: SessionService = Depends(get_session_service),
) -> ActiveSessionResponse:
    customer_session = await service.get_active_session_for_customer(customer_ref)
    return ActiveSessionResponse(
        customer_ref=customer_ref,
        session=(
            SessionResponse.model_validate(customer_session)
            if customer_session is not None
            else None
        ),
    )
