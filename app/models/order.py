"""Ticket order model, payment-status view"""

from sqlalchemy import Column, String, BigInteger, Enum, Index
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel, TimestampedModel, IntegerIDModel, SoftDeleteModel

class OrderPaymentStatus(str, enum.Enum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"

class PaymentProvider(str, enum.Enum):
    RAZORPAY = "RAZORPAY"
    STRIPE = "STRIPE"
    OFFLINE = "OFFLINE"

class Order(BaseModel, IntegerIDModel, TimestampedModel, SoftDeleteModel):
    """Ticket order; payment_status is written only by the state machine"""

    __tablename__ = "orders"

    # Order identification
    short_id = Column(String(20), unique=True, nullable=False, index=True)
    event_id = Column(BigInteger, nullable=True)
    email = Column(String(255), nullable=True)

    # Amounts, in minor currency units
    currency = Column(String(3), nullable=False, default="INR")
    total_amount = Column(BigInteger, nullable=False)

    # Payment
    payment_provider = Column(Enum(PaymentProvider), nullable=True)
    payment_status = Column(
        Enum(OrderPaymentStatus),
        default=OrderPaymentStatus.AWAITING_PAYMENT,
        nullable=False
    )

    # Relationships
    payment_records = relationship(
        "RazorpayPayment",
        back_populates="order",
        order_by="RazorpayPayment.id"
    )

    # Indexes
    __table_args__ = (
        Index("idx_orders_payment_status", "payment_status"),
    )

    def __str__(self):
        return f"Order {self.short_id} - {self.total_amount} {self.currency} ({self.payment_status})"
