"""
Custom exception classes and error handlers
Provides consistent error responses across the application
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class TicketingException(HTTPException):
    """Base exception class for the ticketing application"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class BadRequestException(TicketingException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class NotFoundException(TicketingException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )


class ConflictException(TicketingException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class ValidationException(TicketingException):
    """422 Unprocessable Entity"""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class ServiceUnavailableException(TicketingException):
    """503 Service Unavailable"""

    def __init__(
        self,
        detail: str = "Service temporarily unavailable",
        error_code: str = "SERVICE_UNAVAILABLE"
    ):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code=error_code
        )

# Payment exceptions
class ConfigurationError(ServiceUnavailableException):
    """Provider credentials missing or malformed"""

    def __init__(self, detail: str = "Payment provider is not configured"):
        super().__init__(
            detail=detail,
            error_code="CONFIGURATION_ERROR"
        )


class SignatureVerificationError(BadRequestException):
    """Untrusted payload, nothing may be mutated"""

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            detail=detail,
            error_code="INVALID_SIGNATURE"
        )


class MalformedPayloadError(BadRequestException):
    """Structurally invalid webhook event"""

    def __init__(self, detail: str = "Invalid webhook payload format"):
        super().__init__(
            detail=detail,
            error_code="MALFORMED_PAYLOAD"
        )


class RecordNotFoundError(NotFoundException):
    """Payment record or order could not be located"""

    def __init__(self, detail: str = "Payment record not found"):
        super().__init__(
            detail=detail,
            error_code="RECORD_NOT_FOUND"
        )


class IllegalTransitionError(ConflictException):
    """Conditional status update matched no row"""

    def __init__(self, order_id: int, target: str):
        super().__init__(
            detail=f"Order {order_id} cannot move to {target} from its current payment status",
            error_code="ILLEGAL_TRANSITION"
        )
        self.order_id = order_id
        self.target = target


class RefundNotEligibleError(ValidationException):
    """Refund rejected by business rules"""

    def __init__(self, detail: str):
        super().__init__(
            detail=detail,
            error_code="REFUND_NOT_ELIGIBLE"
        )


class RefundFailedError(TicketingException):
    """Provider refused or failed the refund call"""

    def __init__(self, detail: str = "Refund processing failed"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="REFUND_FAILED"
        )


class ProviderRequestError(TicketingException):
    """Provider API call failed"""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="PROVIDER_ERROR"
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Render application exceptions as {detail, error_code} payloads"""

    @app.exception_handler(TicketingException)
    async def ticketing_exception_handler(request: Request, exc: TicketingException):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_code": exc.error_code},
            headers=exc.headers,
        )
