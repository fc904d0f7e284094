"""
Razorpay payment gateway integration
"""

import razorpay
from typing import Dict, Any, Optional
import logging

from app.core.config import settings
from app.core.exceptions import ConfigurationError, ProviderRequestError

logger = logging.getLogger(__name__)

class RazorpayClient:
    """Razorpay API client wrapper"""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None
    ):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET

        if not self.key_id or not self.key_secret:
            raise ConfigurationError("Razorpay API keys are not configured")

        self.client = razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(
        self,
        amount: int,
        currency: str = "INR",
        receipt: Optional[str] = None,
        notes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create Razorpay order

        Args:
            amount: Amount in smallest currency unit (paise for INR)
            currency: Currency code
            receipt: Receipt number
            notes: Additional notes

        Returns:
            Razorpay order details
        """
        try:
            return self.client.order.create(data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt or "",
                "notes": notes or {}
            })
        except Exception as e:
            logger.error("Razorpay order creation failed: %s", e)
            raise ProviderRequestError(f"Failed to create payment order: {e}") from e

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch payment details"""
        try:
            return self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error("Razorpay payment fetch failed for %s: %s", payment_id, e)
            raise ProviderRequestError(f"Failed to fetch payment: {e}") from e

    def create_refund(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create refund for payment

        Args:
            payment_id: Razorpay payment ID
            amount: Refund amount in minor units
            notes: Additional notes

        Returns:
            Refund details, including its id and status
        """
        try:
            data: Dict[str, Any] = {"amount": amount}
            if notes:
                data["notes"] = notes
            return self.client.payment.refund(payment_id, data)
        except Exception as e:
            logger.error("Razorpay refund failed for %s: %s", payment_id, e)
            raise ProviderRequestError(f"Failed to create refund: {e}") from e
