"""
Payment webhook handlers
"""

from typing import Any, Dict, Mapping, Optional, Type
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import enum
import logging

from app.models import OrderPaymentStatus, RazorpayPayment
from app.core.monitoring import dedup_hits, webhook_events
from app.api.v1.orders import crud as orders_crud
from app.api.v1.orders.state_machine import order_state_machine
from . import crud
from .dedup import DedupLedger
from .events import (
    WebhookEvent,
    PAYMENT_AUTHORIZED,
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    REFUND_PROCESSED,
    ORDER_PAID,
    is_supported_event_type,
)

logger = logging.getLogger(__name__)

ERROR_FIELDS = ("error_code", "error_description", "error_source", "error_step", "error_reason")

class HandlerOutcome(str, enum.Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"

class WebhookHandler:
    """
    Base webhook event handler

    Subclasses name the entity id used for deduplication, how the payment
    record is looked up, and what is applied to it. Lookup, mutation and the
    status transition share one transaction; the dedup marker is written
    only after it commits, and only when apply reports the event handled.
    """

    event_type: str = ""

    def __init__(self, session_factory: async_sessionmaker, ledger: DedupLedger):
        self.session_factory = session_factory
        self.ledger = ledger

    def entity_id(self, event: WebhookEvent) -> Optional[str]:
        raise NotImplementedError

    async def find_record(self, db: AsyncSession, event: WebhookEvent) -> Optional[RazorpayPayment]:
        raise NotImplementedError

    async def apply(self, db: AsyncSession, event: WebhookEvent, record: RazorpayPayment) -> bool:
        """
        Apply the event to the record and order

        Returns:
            False to leave the event unmarked so a redelivery runs it again
        """
        raise NotImplementedError

    async def handle(self, event: WebhookEvent) -> HandlerOutcome:
        entity_id = self.entity_id(event)
        if not entity_id:
            logger.error("Invalid %s event: missing entity id %s", event.event_type, event.log_context())
            return HandlerOutcome.SKIPPED

        if await self.ledger.is_handled(event.event_type, entity_id):
            logger.info("%s event already handled for %s", event.event_type, entity_id)
            dedup_hits.labels(provider=self.ledger.provider, event=event.event_type).inc()
            return HandlerOutcome.DUPLICATE

        try:
            async with self.session_factory() as db:
                async with db.begin():
                    record = await self.find_record(db, event)
                    if record is None:
                        logger.error(
                            "Payment record not found for %s event %s",
                            event.event_type,
                            event.log_context()
                        )
                        return HandlerOutcome.SKIPPED

                    handled = await self.apply(db, event, record)
        except Exception:
            logger.exception("Failed to process %s event %s", event.event_type, event.log_context())
            raise

        if not handled:
            logger.warning("%s event for %s skipped, left open for redelivery", event.event_type, entity_id)
            return HandlerOutcome.SKIPPED

        await self.ledger.mark_handled(event.event_type, entity_id)
        logger.info("%s event processed for %s", event.event_type, entity_id)
        return HandlerOutcome.PROCESSED

async def transition_and_refresh(
    db: AsyncSession,
    record: RazorpayPayment,
    target: OrderPaymentStatus
) -> bool:
    """
    Transition the record's order, re-reading the record when refused

    A refused transition may have waited on the winner's row lock; the
    record loaded before it must not be trusted afterwards.
    """
    applied = await order_state_machine.transition(db, record.order_id, target)
    if not applied:
        await db.refresh(record)
    return applied

class PaymentCapturedHandler(WebhookHandler):
    """payment.captured: money is in, order moves to PAYMENT_RECEIVED"""

    event_type = PAYMENT_CAPTURED

    def entity_id(self, event):
        return event.payment_id

    async def find_record(self, db, event):
        provider_order_id = event.provider_order_id
        if not provider_order_id:
            return None
        return await crud.find_by_provider_order_id(db, provider_order_id)

    async def apply(self, db, event, record):
        applied = await transition_and_refresh(db, record, OrderPaymentStatus.PAYMENT_RECEIVED)

        # A lost race leaves the winner's capture details in place
        if applied or record.amount_received is None:
            record.provider_payment_id = event.payment_id
            record.amount_received = event.payment_entity.get("amount")
            record.last_error = None
        return True

class OrderPaidHandler(PaymentCapturedHandler):
    """order.paid: same outcome as payment.captured, keyed by the provider order"""

    event_type = ORDER_PAID

    def entity_id(self, event):
        return event.provider_order_id

    async def apply(self, db, event, record):
        await transition_and_refresh(db, record, OrderPaymentStatus.PAYMENT_RECEIVED)

        if record.amount_received is None:
            amount_paid = (event.order_entity or {}).get("amount_paid")
            if amount_paid is None and event.payment_entity:
                amount_paid = event.payment_entity.get("amount")
            record.amount_received = amount_paid

        if record.provider_payment_id is None and event.payment_id:
            record.provider_payment_id = event.payment_id
        return True

class PaymentFailedHandler(WebhookHandler):
    """payment.failed: record the provider error, order moves to PAYMENT_FAILED"""

    event_type = PAYMENT_FAILED

    def entity_id(self, event):
        return event.payment_id

    async def find_record(self, db, event):
        provider_order_id = event.provider_order_id
        if not provider_order_id:
            return None
        return await crud.find_by_provider_order_id(db, provider_order_id)

    async def apply(self, db, event, record):
        applied = await transition_and_refresh(db, record, OrderPaymentStatus.PAYMENT_FAILED)

        if not applied:
            current = await orders_crud.get_payment_status(db, record.order_id)
            # A captured payment must not be overwritten by a stale failure
            if current not in (OrderPaymentStatus.PAYMENT_FAILED, OrderPaymentStatus.AWAITING_PAYMENT):
                logger.info(
                    "Ignoring failure of payment %s, order %s is %s",
                    event.payment_id,
                    record.order_id,
                    current
                )
                return True

        record.provider_payment_id = event.payment_id
        record.last_error = extract_error(event.payment_entity)
        return True

class PaymentAuthorizedHandler(WebhookHandler):
    """payment.authorized: a retry after failure, order goes back to AWAITING_PAYMENT"""

    event_type = PAYMENT_AUTHORIZED

    def entity_id(self, event):
        return event.payment_id

    async def find_record(self, db, event):
        provider_order_id = event.provider_order_id
        if not provider_order_id:
            return None
        return await crud.find_by_provider_order_id(db, provider_order_id)

    async def apply(self, db, event, record):
        applied = await transition_and_refresh(db, record, OrderPaymentStatus.AWAITING_PAYMENT)

        if not applied:
            current = await orders_crud.get_payment_status(db, record.order_id)
            if current != OrderPaymentStatus.AWAITING_PAYMENT:
                return True

        record.provider_payment_id = event.payment_id
        record.amount_received = event.payment_entity.get("amount")
        record.last_error = None
        return True

class RefundProcessedHandler(WebhookHandler):
    """refund.processed: add to the refund ledger and move along the refund branch"""

    event_type = REFUND_PROCESSED

    def entity_id(self, event):
        return event.refund_id

    async def find_record(self, db, event):
        payment_id = (event.refund_entity or {}).get("payment_id")
        if not payment_id:
            return None
        return await crud.find_by_provider_payment_id(db, payment_id)

    async def apply(self, db, event, record):
        refund_id = event.refund_id

        if await crud.find_refund(db, refund_id) is not None:
            logger.info("Refund %s already recorded", refund_id)
            return True

        amount = event.refund_entity.get("amount") or 0
        received = record.amount_received
        already_refunded = await crud.refunded_total(db, record.id)

        # Left unmarked; a redelivery after the capture lands can still apply it
        if received is None or already_refunded + amount > received:
            logger.error(
                "Refund %s of %s exceeds captured amount %s (refunded %s) for payment %s",
                refund_id,
                amount,
                received,
                already_refunded,
                record.provider_payment_id
            )
            return False

        currency = event.refund_entity.get("currency")
        if not currency:
            order = await orders_crud.get_order_by_id(db, record.order_id)
            currency = order.currency if order else "INR"

        await crud.record_refund(
            db,
            record,
            provider_refund_id=refund_id,
            amount=amount,
            currency=currency,
            status=event.refund_entity.get("status") or "processed"
        )

        target = (
            OrderPaymentStatus.REFUNDED
            if already_refunded + amount >= received
            else OrderPaymentStatus.PARTIALLY_REFUNDED
        )
        await order_state_machine.transition(db, record.order_id, target)
        return True

def extract_error(payment_entity: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Provider error fields of a failed payment, nulls dropped"""
    payment_entity = payment_entity or {}
    return {
        name: payment_entity[name]
        for name in ERROR_FIELDS
        if payment_entity.get(name) is not None
    }

EVENT_HANDLERS: Dict[str, Type[WebhookHandler]] = {
    PAYMENT_AUTHORIZED: PaymentAuthorizedHandler,
    PAYMENT_CAPTURED: PaymentCapturedHandler,
    PAYMENT_FAILED: PaymentFailedHandler,
    REFUND_PROCESSED: RefundProcessedHandler,
    ORDER_PAID: OrderPaidHandler,
}

def get_event_handler(
    event_type: str,
    handlers: Optional[Mapping[str, Type[WebhookHandler]]] = None
) -> Optional[Type[WebhookHandler]]:
    """
    Get handler for specific event

    Args:
        event_type: Event name, matched exactly
        handlers: Handler table, defaults to EVENT_HANDLERS

    Returns:
        Handler class or None
    """
    table = EVENT_HANDLERS if handlers is None else handlers
    return table.get(event_type)

async def dispatch(
    event: WebhookEvent,
    session_factory: async_sessionmaker,
    ledger: DedupLedger,
    handlers: Optional[Mapping[str, Type[WebhookHandler]]] = None
) -> HandlerOutcome:
    """Route an event to exactly one handler"""
    handler_class = get_event_handler(event.event_type, handlers)

    if handler_class is None:
        if is_supported_event_type(event.event_type):
            logger.error("No handler registered for supported event type %s", event.event_type)
        else:
            logger.debug("Ignoring unsupported webhook event %s", event.event_type)
        return HandlerOutcome.SKIPPED

    try:
        outcome = await handler_class(session_factory, ledger).handle(event)
    except Exception:
        webhook_events.labels(provider=ledger.provider, event=event.event_type, outcome="error").inc()
        raise

    webhook_events.labels(provider=ledger.provider, event=event.event_type, outcome=outcome.value).inc()
    return outcome
