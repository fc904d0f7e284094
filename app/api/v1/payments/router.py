"""
Payment API routes
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker
import logging

from app.core.config import settings
from app.core.database import get_session_factory
from app.core.exceptions import (
    NotFoundException,
    ServiceUnavailableException,
    SignatureVerificationError,
    TicketingException,
    ValidationException,
)
from app.core.monitoring import signature_failures
from app.tasks import payment_tasks
from .events import is_supported_event_type
from .providers import PROVIDERS, get_provider
from .schemas import (
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    ProviderOrderResponse,
    ProviderStatus,
    ProviderStatusResponse,
    RefundRequest,
    RefundResponse,
)
from .services import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()

def get_payment_service(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> PaymentService:
    return PaymentService(session_factory)

@router.post(
    "/webhooks/{provider}",
    status_code=status.HTTP_200_OK,
    summary="Payment webhook",
    description="Receive provider webhooks; processing happens in the background"
)
async def payment_webhook(provider: str, request: Request):
    """Verify, parse and enqueue a provider webhook"""
    webhook_provider = get_provider(provider)
    if webhook_provider is None:
        raise NotFoundException(f"Unknown payment provider: {provider}")

    # Signatures cover the exact bytes received
    body = await request.body()
    signature_header = request.headers.get(webhook_provider.signature_header)

    if not webhook_provider.verifier(body, signature_header, webhook_provider.secret):
        logger.warning("Rejected %s webhook with invalid signature", provider)
        signature_failures.labels(provider=provider, channel="webhook").inc()
        raise SignatureVerificationError()

    event = webhook_provider.parser(body)

    if not is_supported_event_type(event.event_type):
        logger.debug("Acknowledging unsupported %s event %s", provider, event.event_type)
        return Response(status_code=status.HTTP_200_OK)

    try:
        payment_tasks.process_webhook_event.delay(provider, body.decode("utf-8"))
    except Exception as e:
        logger.error("Failed to enqueue %s webhook %s: %s", provider, event.log_context(), e)
        raise ServiceUnavailableException("Webhook queue unavailable")

    logger.info("Queued %s webhook %s", provider, event.log_context())
    return Response(status_code=status.HTTP_200_OK)

@router.post(
    "/orders/{order_short_id}/razorpay/order",
    response_model=ProviderOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Razorpay order",
    description="Create or reuse the provider order used by checkout"
)
async def create_razorpay_order(
    order_short_id: str,
    service: PaymentService = Depends(get_payment_service)
):
    result = await service.create_provider_order(order_short_id)
    return ProviderOrderResponse(**result)

@router.post(
    "/orders/{order_short_id}/razorpay/verify",
    response_model=PaymentVerifyResponse,
    summary="Verify payment",
    description="Verify payment after checkout returns to the browser"
)
async def verify_payment(
    order_short_id: str,
    data: PaymentVerifyRequest,
    service: PaymentService = Depends(get_payment_service)
):
    """Verify payment"""
    try:
        verified = await service.verify_payment(
            order_short_id=order_short_id,
            payment_id=data.payment_id,
            provider_order_id=data.provider_order_id,
            signature=data.signature
        )
    except TicketingException as e:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=PaymentVerifyResponse(success=False, message=e.detail).model_dump()
        )
    except Exception:
        logger.exception("Payment verification failed for order %s", order_short_id)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=PaymentVerifyResponse(success=False, message="Payment verification failed").model_dump()
        )

    return PaymentVerifyResponse(
        success=verified,
        message="Payment verified successfully" if verified else "Payment verification failed"
    )

@router.post(
    "/orders/{order_id}/razorpay/refund",
    response_model=RefundResponse,
    summary="Refund payment",
    description="Refund part or all of a captured payment"
)
async def refund_payment(
    order_id: int,
    data: RefundRequest,
    service: PaymentService = Depends(get_payment_service)
):
    try:
        result = await service.process_refund(order_id, data.amount, data.currency)
    except TicketingException:
        raise
    except Exception as e:
        logger.exception("Refund failed for order %s", order_id)
        raise ValidationException(str(e), error_code="REFUND_ERROR") from e

    return RefundResponse(**result)

@router.get(
    "/providers",
    response_model=ProviderStatusResponse,
    summary="Payment providers",
    description="Configured payment providers, without exposing credentials"
)
async def list_providers():
    providers = []
    for name, provider in PROVIDERS.items():
        summary = settings.configuration_summary(name)
        summary.pop("enabled")
        providers.append(ProviderStatus(name=name, enabled=provider.is_configured(), credentials=summary))
    return ProviderStatusResponse(providers=providers)
