"""
Payment schemas for request/response validation
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional

class PaymentVerifyRequest(BaseModel):
    """Schema for verifying a checkout payment"""
    payment_id: str = Field(..., min_length=1, description="Payment ID from gateway")
    provider_order_id: str = Field(..., min_length=1, description="Order ID from gateway")
    signature: str = Field(..., min_length=1, description="Payment signature from gateway")

class PaymentVerifyResponse(BaseModel):
    success: bool
    message: str

class ProviderOrderResponse(BaseModel):
    """Checkout details for the browser"""
    provider_order_id: str
    order_short_id: str
    amount: int = Field(..., description="Amount in minor units")
    currency: str
    key_id: Optional[str] = None

class RefundRequest(BaseModel):
    """Schema for refunding an order"""
    amount: int = Field(..., gt=0, description="Refund amount in minor units")
    currency: str = Field(..., min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

class RefundResponse(BaseModel):
    refund_id: str
    payment_id: str
    amount: int
    currency: str
    status: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "refund_id": "rfnd_FP8QHiV938haTz",
                "payment_id": "pay_29QQoUBi66xm2f",
                "amount": 2000,
                "currency": "INR",
                "status": "processed"
            }
        }
    }

class ProviderStatus(BaseModel):
    name: str
    enabled: bool
    credentials: Dict[str, bool]

class ProviderStatusResponse(BaseModel):
    providers: List[ProviderStatus]
