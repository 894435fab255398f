"""Domain exceptions shared by every service.

Each error is an ``HTTPException`` so service functions can raise it directly
(as the wallet operations always have) and FastAPI renders it with the right
status code, while tests and callers can still catch the specific type.
"""

from typing import Optional

from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base class for domain errors with a fixed HTTP status."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or type(self).default_detail,
        )


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class BankAccountRequired(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = (
        "Bank account is required before requesting a withdrawal. "
        "Please add your bank details first."
    )


class InsufficientFunds(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Insufficient saldo"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Expired(NotFound):
    default_detail = "Invite not found or expired"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict with current state"


class ExternalServiceError(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Upstream service error"
