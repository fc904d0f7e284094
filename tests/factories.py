"""Builders for orders, payment records and signed webhook bodies"""

import json
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select

from app.models import Order, OrderPaymentStatus, PaymentProvider, PaymentRefund, RazorpayPayment
from app.api.v1.payments.signature import compute_payment_signature, compute_webhook_signature
from tests.conftest import KEY_SECRET, WEBHOOK_SECRET


async def seed_order(
    session_factory,
    short_id: str = "ORD1001",
    total_amount: int = 5000,
    currency: str = "INR",
    status: OrderPaymentStatus = OrderPaymentStatus.AWAITING_PAYMENT,
    provider_order_id: Optional[str] = "order_TEST1001",
    provider_payment_id: Optional[str] = None,
    amount_received: Optional[int] = None,
) -> Tuple[int, Optional[int]]:
    """Insert an order and, optionally, its payment record"""
    async with session_factory() as db:
        async with db.begin():
            order = Order(
                short_id=short_id,
                currency=currency,
                total_amount=total_amount,
                payment_provider=PaymentProvider.RAZORPAY,
                payment_status=status,
            )
            db.add(order)
            await db.flush()

            record_id = None
            if provider_order_id:
                record = RazorpayPayment(
                    order_id=order.id,
                    provider_order_id=provider_order_id,
                    provider_payment_id=provider_payment_id,
                    amount_received=amount_received,
                )
                db.add(record)
                await db.flush()
                record_id = record.id

            return order.id, record_id


async def order_status(session_factory, order_id: int) -> OrderPaymentStatus:
    async with session_factory() as db:
        result = await db.execute(select(Order.payment_status).where(Order.id == order_id))
        return result.scalar_one()


async def load_record(session_factory, record_id: int) -> RazorpayPayment:
    async with session_factory() as db:
        return await db.get(RazorpayPayment, record_id)


async def load_refunds(session_factory, record_id: int):
    async with session_factory() as db:
        result = await db.execute(
            select(PaymentRefund)
            .where(PaymentRefund.payment_record_id == record_id)
            .order_by(PaymentRefund.id)
        )
        return list(result.scalars().all())


def webhook_body(event: str, **entities: Dict[str, Any]) -> bytes:
    return json.dumps({
        "entity": "event",
        "account_id": "acc_TEST",
        "event": event,
        "contains": list(entities),
        "payload": {name: {"entity": entity} for name, entity in entities.items()},
        "created_at": 1700000000,
    }).encode("utf-8")


def payment_entity(
    payment_id: str,
    provider_order_id: str,
    amount: int = 5000,
    status: str = "captured",
    **extra: Any
) -> Dict[str, Any]:
    entity = {
        "id": payment_id,
        "entity": "payment",
        "amount": amount,
        "currency": "INR",
        "status": status,
        "order_id": provider_order_id,
        "method": "upi",
    }
    entity.update(extra)
    return entity


def captured_body(payment_id: str, provider_order_id: str, amount: int = 5000) -> bytes:
    return webhook_body("payment.captured", payment=payment_entity(payment_id, provider_order_id, amount))


def authorized_body(payment_id: str, provider_order_id: str, amount: int = 5000) -> bytes:
    return webhook_body(
        "payment.authorized",
        payment=payment_entity(payment_id, provider_order_id, amount, status="authorized")
    )


def failed_body(payment_id: str, provider_order_id: str, **errors: Any) -> bytes:
    errors = errors or {
        "error_code": "BAD_REQUEST_ERROR",
        "error_description": "Payment was declined by the bank",
        "error_source": "bank",
        "error_step": "payment_authorization",
        "error_reason": "payment_declined",
    }
    return webhook_body(
        "payment.failed",
        payment=payment_entity(payment_id, provider_order_id, status="failed", **errors)
    )


def refund_body(refund_id: str, payment_id: str, amount: int, currency: str = "INR") -> bytes:
    return webhook_body("refund.processed", refund={
        "id": refund_id,
        "entity": "refund",
        "amount": amount,
        "currency": currency,
        "payment_id": payment_id,
        "status": "processed",
    })


def order_paid_body(provider_order_id: str, amount_paid: int = 5000, payment_id: Optional[str] = None) -> bytes:
    entities: Dict[str, Any] = {
        "order": {
            "id": provider_order_id,
            "entity": "order",
            "amount": amount_paid,
            "amount_paid": amount_paid,
            "amount_due": 0,
            "status": "paid",
        }
    }
    if payment_id:
        entities["payment"] = payment_entity(payment_id, provider_order_id, amount_paid)
    return webhook_body("order.paid", **entities)


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_webhook_signature(body, secret)


def sign_checkout(provider_order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return compute_payment_signature(provider_order_id, payment_id, secret)
