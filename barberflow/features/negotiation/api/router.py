"""
router.py
---------
Purpose:
    API endpoints for appointment negotiation.

Usage:
    1. POST /appointments - Create a request (caller is the requester)
    2. GET /appointments/{id} - Live appointment plus the caller's available actions
    3. POST /appointments/{id}/decision - Approve or reject
    4. POST /appointments/{id}/store - Free barber attaches the chosen store
    5. POST /appointments/{id}/cancel - Cancel an approved appointment
    6. POST /appointments/{id}/complete - Mark an approved appointment as done
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from barberflow.auth.verify import Caller, current_caller
from barberflow.features.negotiation.api.dependencies import (
    ERROR_STATUS_CODES,
    get_negotiation_service,
    to_http_error,
)
from barberflow.features.negotiation.api.schemas import (
    AppointmentResponse,
    AttachStoreRequest,
    CreateAppointmentRequest,
    DecisionRequest,
)
from barberflow.features.negotiation.domain.errors import AppointmentError
from barberflow.features.negotiation.domain.models import AppointmentRequester, Role
from barberflow.features.negotiation.services.negotiation_service import DecisionResult, NegotiationService
from barberflow.infrastructure.observability.logging import get_logger

router = APIRouter(prefix="/appointments", tags=["appointments"])
logger = get_logger(__name__)

REQUESTER_BY_ROLE: dict[Role, AppointmentRequester] = {
    Role.CUSTOMER: AppointmentRequester.CUSTOMER,
    Role.STORE: AppointmentRequester.STORE,
    Role.FREE_BARBER: AppointmentRequester.FREE_BARBER,
}


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: CreateAppointmentRequest,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Create a pending appointment request.

    Raises:
        400: Invalid party combination for the requested flow
    """
    parties = {
        role: party_id
        for role, party_id in (
            (Role.STORE, request.store_id),
            (Role.FREE_BARBER, request.free_barber_id),
            (Role.CUSTOMER, request.customer_id),
        )
        if party_id
    }
    parties[caller.role] = caller.party_id

    try:
        appointment = await service.create(
            REQUESTER_BY_ROLE[caller.role],
            parties,
            store_selection_type=request.store_selection_type,
            note=request.note,
        )
    except ValueError as e:
        logger.warning("Rejected appointment request", role=caller.role.value, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info(
        "Appointment created",
        appointment_id=appointment.id,
        requester=caller.role.value,
        store_selection=appointment.is_store_selection(),
    )
    return AppointmentResponse.from_appointment(appointment)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """Only parties to the appointment may read it."""
    try:
        appointment, view = await service.view(appointment_id, caller.role, caller.party_id)
    except AppointmentError as e:
        raise to_http_error(e) from e
    return AppointmentResponse.from_appointment(appointment, view)


@router.post("/{appointment_id}/decision", response_model=DecisionResult)
async def decide(
    appointment_id: str,
    request: DecisionRequest,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Record the caller's approve/reject.

    The body always has the same shape; failures use the HTTP status of
    their error kind. A repeated decision answers 200 with success=false.
    """
    result = await service.decide(appointment_id, caller.role, caller.party_id, request.approve)
    if result.success:
        return result

    return JSONResponse(
        status_code=ERROR_STATUS_CODES[result.error],
        content=result.model_dump(mode="json"),
    )


@router.post("/{appointment_id}/store", response_model=AppointmentResponse)
async def attach_store(
    appointment_id: str,
    request: AttachStoreRequest,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """Free barber accepts a store selection request by choosing the venue."""
    if caller.role != Role.FREE_BARBER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the free barber picks a store")

    try:
        appointment = await service.attach_store(appointment_id, caller.party_id, request.store_id)
    except AppointmentError as e:
        raise to_http_error(e) from e
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    try:
        appointment = await service.cancel(appointment_id, caller.role, caller.party_id)
    except AppointmentError as e:
        raise to_http_error(e) from e
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: str,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    try:
        appointment = await service.complete(appointment_id, caller.role, caller.party_id)
    except AppointmentError as e:
        raise to_http_error(e) from e
    return AppointmentResponse.from_appointment(appointment)
