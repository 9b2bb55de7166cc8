from fastapi import HTTPException, Request, status

from barberflow.features.negotiation.domain.errors import AppointmentError, ErrorKind
from barberflow.features.negotiation.runtime import NegotiationRuntime
from barberflow.features.negotiation.services.negotiation_service import NegotiationService

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_PARTICIPANT: status.HTTP_403_FORBIDDEN,
    ErrorKind.EXPIRED: status.HTTP_410_GONE,
    ErrorKind.ALREADY_DECIDED: status.HTTP_200_OK,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_runtime(request: Request) -> NegotiationRuntime:
    runtime = getattr(request.app.state, "negotiation", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Negotiation service not ready",
        )
    return runtime


def get_negotiation_service(request: Request) -> NegotiationService:
    return get_runtime(request).service


def to_http_error(error: AppointmentError) -> HTTPException:
    detail = {"error": error.kind.value, "message": error.message}
    if error.status is not None:
        detail["status"] = int(error.status)
    return HTTPException(status_code=ERROR_STATUS_CODES[error.kind], detail=detail)
