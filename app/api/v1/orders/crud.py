"""
Order CRUD operations
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from typing import Iterable, Optional

from app.models import Order, OrderPaymentStatus, RazorpayPayment


async def get_order_by_id(db: AsyncSession, order_id: int) -> Optional[Order]:
    """Get order by ID"""
    stmt = select(Order).where(and_(
        Order.id == order_id,
        Order.is_deleted.is_(False)
    ))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_order_by_short_id(db: AsyncSession, short_id: str) -> Optional[Order]:
    """Get order by the public short identifier"""
    stmt = select(Order).where(and_(
        Order.short_id == short_id,
        Order.is_deleted.is_(False)
    ))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_by_provider_order_id(db: AsyncSession, provider_order_id: str) -> Optional[Order]:
    """Get the order owning a provider order"""
    stmt = (
        select(Order)
        .join(RazorpayPayment, RazorpayPayment.order_id == Order.id)
        .where(and_(
            RazorpayPayment.provider_order_id == provider_order_id,
            RazorpayPayment.is_deleted.is_(False),
            Order.is_deleted.is_(False)
        ))
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_payment_status(db: AsyncSession, order_id: int) -> Optional[OrderPaymentStatus]:
    """Read the current payment status straight from the database"""
    result = await db.execute(
        select(Order.payment_status).where(Order.id == order_id)
    )
    return result.scalar_one_or_none()


async def update_status_conditional(
    db: AsyncSession,
    order_id: int,
    target: OrderPaymentStatus,
    allowed_from: Iterable[OrderPaymentStatus]
) -> bool:
    """
    UPDATE orders SET payment_status = target
    WHERE id = order_id AND payment_status IN allowed_from

    Returns:
        True if exactly one row was updated
    """
    stmt = (
        update(Order)
        .where(and_(
            Order.id == order_id,
            Order.payment_status.in_(list(allowed_from))
        ))
        .values(payment_status=target)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1
