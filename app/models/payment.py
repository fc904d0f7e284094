"""
Payment record models for provider checkout attempts
One row per provider order, plus the refund ledger
"""

from sqlalchemy import Column, String, BigInteger, Integer, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from .base import BaseModel, TimestampedModel, IntegerIDModel, SoftDeleteModel

class RazorpayPayment(BaseModel, IntegerIDModel, TimestampedModel, SoftDeleteModel):
    """Provider order/payment attempt for an order"""

    __tablename__ = "razorpay_payments"

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)

    # Gateway details
    provider_order_id = Column(String(255), unique=True, nullable=False)
    provider_payment_id = Column(String(255), nullable=True)
    provider_signature = Column(String(500), nullable=True)

    # Minor currency units
    amount_received = Column(BigInteger, nullable=True)

    # Latest refund recorded against this payment
    refund_id = Column(String(255), nullable=True)

    # Overwritten on each failure
    last_error = Column(JSON, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="payment_records")
    refunds = relationship(
        "PaymentRefund",
        back_populates="payment_record",
        order_by="PaymentRefund.id"
    )

    # Indexes
    __table_args__ = (
        Index("idx_razorpay_payments_order", "order_id"),
        Index("idx_razorpay_payments_payment_id", "provider_payment_id"),
    )

    def __str__(self):
        return f"RazorpayPayment {self.provider_order_id} for order {self.order_id}"

class PaymentRefund(BaseModel, IntegerIDModel, TimestampedModel):
    """Refund ledger entry; refunded total is the sum of amounts"""

    __tablename__ = "payment_refunds"

    payment_record_id = Column(Integer, ForeignKey("razorpay_payments.id"), nullable=False)
    provider_refund_id = Column(String(255), unique=True, nullable=False)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(50), nullable=False, default="processed")

    payment_record = relationship("RazorpayPayment", back_populates="refunds")

    __table_args__ = (
        Index("idx_payment_refunds_record", "payment_record_id"),
    )
