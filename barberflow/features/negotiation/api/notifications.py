"""
Notification inbox endpoints.

Reading or deleting a notification never changes a decision; those go
through /appointments/{id}/decision.
"""

from fastapi import APIRouter, Depends, status

from barberflow.auth.verify import Caller, current_caller
from barberflow.features.negotiation.api.dependencies import get_negotiation_service, to_http_error
from barberflow.features.negotiation.api.schemas import NotificationResponse, UnreadCountResponse
from barberflow.features.negotiation.domain.errors import AppointmentError
from barberflow.features.negotiation.services.negotiation_service import NegotiationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """Newest first, each rendered with the caller's current actions."""
    views = await service.notifier.list_for(caller.role, caller.party_id)
    return [NotificationResponse.from_notification(v.notification, v.decision) for v in views]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    return UnreadCountResponse(count=await service.notifier.unread_count(caller.role, caller.party_id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    try:
        notification = await service.notifier.mark_read(notification_id, caller.role, caller.party_id)
    except AppointmentError as e:
        raise to_http_error(e) from e

    view = await service.notifier.view(notification)
    return NotificationResponse.from_notification(view.notification, view.decision)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    caller: Caller = Depends(current_caller),
    service: NegotiationService = Depends(get_negotiation_service),
):
    try:
        await service.notifier.delete(notification_id, caller.role, caller.party_id)
    except AppointmentError as e:
        raise to_http_error(e) from e
