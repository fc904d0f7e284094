"""
Payment service layer
Checkout order creation, synchronous verification and refunds
"""

from typing import Any, Callable, Dict, Optional
from sqlalchemy.ext.asyncio import async_sessionmaker
import asyncio
import functools
import logging

from app.models import OrderPaymentStatus, PaymentProvider
from app.core.config import settings
from app.core.exceptions import (
    ConfigurationError,
    ConflictException,
    ProviderRequestError,
    RecordNotFoundError,
    RefundFailedError,
    RefundNotEligibleError,
)
from app.core.monitoring import refunds_processed, signature_failures
from app.api.v1.orders import crud as orders_crud
from app.api.v1.orders.state_machine import order_state_machine
from . import crud
from .razorpay_client import RazorpayClient
from .signature import verify_payment_signature
from .webhooks import transition_and_refresh

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (OrderPaymentStatus.AWAITING_PAYMENT, OrderPaymentStatus.PAYMENT_FAILED)

# Statuses that mean a payment was received, possibly refunded since
SETTLED_STATUSES = (
    OrderPaymentStatus.PAYMENT_RECEIVED,
    OrderPaymentStatus.PARTIALLY_REFUNDED,
    OrderPaymentStatus.REFUNDED,
)

class PaymentService:
    """Payment service for Razorpay checkout"""

    provider = "razorpay"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client_factory: Callable[[], RazorpayClient] = RazorpayClient
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self._client: Optional[RazorpayClient] = None

    @property
    def client(self) -> RazorpayClient:
        # Built on first use so unconfigured keys only fail the calls that need them
        if self._client is None:
            self._client = self.client_factory()
        return self._client

    async def create_provider_order(self, order_short_id: str) -> Dict[str, Any]:
        """
        Create a provider order for checkout, reusing an existing one

        Args:
            order_short_id: Public order identifier

        Returns:
            Checkout details for the browser

        Raises:
            RecordNotFoundError: If order not found
            ConflictException: If order is not awaiting payment
        """
        async with self.session_factory() as db:
            async with db.begin():
                order = await orders_crud.find_order_by_short_id(db, order_short_id)
                if not order:
                    raise RecordNotFoundError("Order not found")

                if order.payment_status not in PAYABLE_STATUSES:
                    raise ConflictException(
                        f"Order {order_short_id} is not awaiting payment",
                        error_code="ORDER_NOT_PAYABLE"
                    )

                record = await crud.get_active_record_for_order(db, order.id)
                if record:
                    logger.info(
                        "Reusing provider order %s for order %s",
                        record.provider_order_id,
                        order_short_id
                    )
                else:
                    provider_order = await self._call(
                        self.client.create_order,
                        amount=order.total_amount,
                        currency=order.currency,
                        receipt=f"order_{order_short_id}",
                        notes={"order_id": str(order.id), "short_id": order_short_id}
                    )
                    record = await crud.create_payment_record(db, order.id, provider_order["id"])
                    order.payment_provider = PaymentProvider.RAZORPAY
                    logger.info(
                        "Created provider order %s for order %s",
                        record.provider_order_id,
                        order_short_id
                    )

                return {
                    "provider_order_id": record.provider_order_id,
                    "order_short_id": order.short_id,
                    "amount": order.total_amount,
                    "currency": order.currency,
                    "key_id": settings.RAZORPAY_KEY_ID,
                }

    async def verify_payment(
        self,
        order_short_id: str,
        payment_id: str,
        provider_order_id: str,
        signature: str
    ) -> bool:
        """
        Verify a checkout signature and confirm the order

        Races with the payment.captured webhook through the same
        conditional transition; whichever lands first wins and the other
        still reports success.

        Returns:
            True if the order is paid

        Raises:
            RecordNotFoundError: If order or payment record not found
            ConfigurationError: If the API key secret is missing
        """
        async with self.session_factory() as db:
            order = await orders_crud.find_order_by_short_id(db, order_short_id)
            if not order:
                raise RecordNotFoundError("Order not found")
            record = await crud.get_active_record_for_order(db, order.id)
            if not record:
                raise RecordNotFoundError("Payment record not found")

        if record.provider_order_id != provider_order_id:
            logger.warning(
                "Provider order mismatch for order %s: expected %s, got %s",
                order_short_id,
                record.provider_order_id,
                provider_order_id
            )
            return False

        if not verify_payment_signature(
            provider_order_id, payment_id, signature, settings.RAZORPAY_KEY_SECRET
        ):
            logger.warning("Invalid payment signature for order %s", order_short_id)
            signature_failures.labels(provider=self.provider, channel="verify").inc()
            return False

        amount = await self._captured_amount(payment_id, order.total_amount)

        async with self.session_factory() as db:
            async with db.begin():
                record = await crud.find_by_provider_order_id(db, provider_order_id)
                if not record:
                    raise RecordNotFoundError("Payment record not found")

                applied = await transition_and_refresh(db, record, OrderPaymentStatus.PAYMENT_RECEIVED)

                if applied or record.amount_received is None:
                    record.provider_payment_id = payment_id
                    record.amount_received = amount
                    record.last_error = None

                if record.provider_payment_id == payment_id:
                    record.provider_signature = signature

                current = (
                    OrderPaymentStatus.PAYMENT_RECEIVED
                    if applied
                    else await orders_crud.get_payment_status(db, record.order_id)
                )

        if not applied:
            logger.info("Order %s already confirmed as %s", order_short_id, current)

        return current in SETTLED_STATUSES

    async def _call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        # The razorpay SDK is blocking; run it in the thread pool
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _captured_amount(self, payment_id: str, fallback: int) -> int:
        try:
            payment = await self._call(self.client.fetch_payment, payment_id)
        except (ConfigurationError, ProviderRequestError) as e:
            logger.warning("Using order total for payment %s: %s", payment_id, e.detail)
            return fallback
        amount = payment.get("amount")
        return fallback if amount is None else int(amount)

    async def get_max_refundable_amount(self, order_id: int) -> int:
        """Remaining refundable balance in minor units"""
        async with self.session_factory() as db:
            order = await orders_crud.get_order_by_id(db, order_id)
            if not order or not order_state_machine.is_refundable(order.payment_status):
                return 0
            record = await crud.get_active_record_for_order(db, order.id)
            if not record or record.amount_received is None:
                return 0
            return max(record.amount_received - await crud.refunded_total(db, record.id), 0)

    async def process_refund(self, order_id: int, amount: int, currency: str) -> Dict[str, Any]:
        """
        Refund part or all of a captured payment

        Args:
            order_id: Order ID
            amount: Refund amount in minor units
            currency: Must match the order currency

        Returns:
            Refund result

        Raises:
            RecordNotFoundError: If order not found
            RefundNotEligibleError: If business rules reject the refund
            RefundFailedError: If the provider refund call fails
        """
        async with self.session_factory() as db:
            order = await orders_crud.get_order_by_id(db, order_id)
            if not order:
                raise RecordNotFoundError("Order not found")

            if not order_state_machine.is_refundable(order.payment_status):
                raise RefundNotEligibleError(
                    f"Order {order_id} cannot be refunded in status {order.payment_status.value}"
                )

            record = await crud.get_active_record_for_order(db, order.id)
            if not record or not record.provider_payment_id or record.amount_received is None:
                raise RefundNotEligibleError(f"Order {order_id} has no captured payment")

            if currency.upper() != order.currency.upper():
                raise RefundNotEligibleError(
                    f"Refund currency {currency} does not match order currency {order.currency}"
                )

            if amount <= 0:
                raise RefundNotEligibleError("Refund amount must be positive")

            remaining = record.amount_received - await crud.refunded_total(db, record.id)
            if amount > remaining:
                raise RefundNotEligibleError(
                    f"Refund amount {amount} exceeds refundable balance {remaining}"
                )

            record_id = record.id
            payment_id = record.provider_payment_id
            received = record.amount_received
            order_currency = order.currency

        try:
            refund = await self._call(
                self.client.create_refund,
                payment_id,
                amount,
                notes={"order_id": str(order_id)}
            )
        except ProviderRequestError as e:
            refunds_processed.labels(provider=self.provider, outcome="failed").inc()
            raise RefundFailedError(f"Refund failed for order {order_id}: {e.detail}") from e

        refund_id = refund["id"]

        async with self.session_factory() as db:
            async with db.begin():
                record = await crud.find_by_provider_payment_id(db, payment_id)
                if not record or record.id != record_id:
                    raise RecordNotFoundError("Payment record not found")

                # The refund.processed webhook may have recorded it already
                if await crud.find_refund(db, refund_id) is None:
                    await crud.record_refund(
                        db,
                        record,
                        provider_refund_id=refund_id,
                        amount=amount,
                        currency=order_currency,
                        status=refund.get("status") or "processed"
                    )

                refunded = await crud.refunded_total(db, record.id)
                target = (
                    OrderPaymentStatus.REFUNDED
                    if refunded >= received
                    else OrderPaymentStatus.PARTIALLY_REFUNDED
                )
                await order_state_machine.transition(db, order_id, target)

        refunds_processed.labels(provider=self.provider, outcome="processed").inc()
        logger.info("Refund %s of %s %s processed for order %s", refund_id, amount, order_currency, order_id)

        return {
            "refund_id": refund_id,
            "payment_id": payment_id,
            "amount": amount,
            "currency": order_currency,
            "status": refund.get("status") or "processed",
        }

def validate_payment_configuration(provider: str = "razorpay") -> bool:
    """
    Check provider credentials at startup

    Raises:
        ConfigurationError: If credentials are missing in strict mode
    """
    if settings.is_provider_configured(provider):
        return True

    missing = [
        name.replace("_configured", "")
        for name, present in settings.configuration_summary(provider).items()
        if name != "enabled" and not present
    ]
    if settings.is_strict:
        raise ConfigurationError(f"{provider} credentials missing: {', '.join(missing)}")

    logger.warning("%s disabled, credentials missing: %s", provider, ", ".join(missing))
    return False
