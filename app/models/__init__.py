"""Models package initialization"""

from .base import Base
from .order import Order, OrderPaymentStatus, PaymentProvider
from .payment import RazorpayPayment, PaymentRefund

# Export all models
__all__ = [
    "Base",
    "Order",
    "OrderPaymentStatus",
    "PaymentProvider",
    "RazorpayPayment",
    "PaymentRefund",
]
