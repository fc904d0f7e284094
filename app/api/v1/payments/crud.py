"""
Payment record CRUD operations
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional

from app.models import RazorpayPayment, PaymentRefund


async def find_by_provider_order_id(
    db: AsyncSession,
    provider_order_id: str
) -> Optional[RazorpayPayment]:
    """Get active payment record by provider order ID"""
    stmt = select(RazorpayPayment).where(and_(
        RazorpayPayment.provider_order_id == provider_order_id,
        RazorpayPayment.is_deleted.is_(False)
    ))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_by_provider_payment_id(
    db: AsyncSession,
    provider_payment_id: str
) -> Optional[RazorpayPayment]:
    """Get active payment record by provider payment ID"""
    stmt = (
        select(RazorpayPayment)
        .where(and_(
            RazorpayPayment.provider_payment_id == provider_payment_id,
            RazorpayPayment.is_deleted.is_(False)
        ))
        .order_by(RazorpayPayment.id.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_record_for_order(
    db: AsyncSession,
    order_id: int
) -> Optional[RazorpayPayment]:
    """Get the latest active payment record of an order"""
    stmt = (
        select(RazorpayPayment)
        .where(and_(
            RazorpayPayment.order_id == order_id,
            RazorpayPayment.is_deleted.is_(False)
        ))
        .order_by(RazorpayPayment.id.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_payment_record(
    db: AsyncSession,
    order_id: int,
    provider_order_id: str
) -> RazorpayPayment:
    """Create payment record for a freshly created provider order"""
    record = RazorpayPayment(
        order_id=order_id,
        provider_order_id=provider_order_id
    )
    db.add(record)
    await db.flush()
    return record


async def refunded_total(db: AsyncSession, payment_record_id: int) -> int:
    """Sum of recorded refunds for a payment record"""
    result = await db.execute(
        select(func.coalesce(func.sum(PaymentRefund.amount), 0))
        .where(PaymentRefund.payment_record_id == payment_record_id)
    )
    return int(result.scalar_one())


async def find_refund(db: AsyncSession, provider_refund_id: str) -> Optional[PaymentRefund]:
    """Get refund ledger entry by provider refund ID"""
    result = await db.execute(
        select(PaymentRefund).where(PaymentRefund.provider_refund_id == provider_refund_id)
    )
    return result.scalar_one_or_none()


async def record_refund(
    db: AsyncSession,
    record: RazorpayPayment,
    provider_refund_id: str,
    amount: int,
    currency: str,
    status: str = "processed"
) -> PaymentRefund:
    """Insert refund ledger entry and point the record at it"""
    refund = PaymentRefund(
        payment_record_id=record.id,
        provider_refund_id=provider_refund_id,
        amount=amount,
        currency=currency,
        status=status
    )
    db.add(refund)
    record.refund_id = provider_refund_id
    await db.flush()
    return refund


async def retire_payment_records(db: AsyncSession, order_id: int) -> int:
    """
    Soft delete every payment record of a deleted order

    Returns:
        Number of records retired
    """
    result = await db.execute(
        select(RazorpayPayment).where(and_(
            RazorpayPayment.order_id == order_id,
            RazorpayPayment.is_deleted.is_(False)
        ))
    )
    records = result.scalars().all()

    for record in records:
        record.soft_delete()

    await db.flush()
    return len(records)
