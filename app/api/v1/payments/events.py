"""
Webhook event parsing
Turns raw webhook bytes into a typed event
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import json
import logging

from app.core.exceptions import MalformedPayloadError

logger = logging.getLogger(__name__)

PAYMENT_AUTHORIZED = "payment.authorized"
PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
REFUND_PROCESSED = "refund.processed"
ORDER_PAID = "order.paid"

SUPPORTED_EVENT_TYPES = frozenset({
    PAYMENT_AUTHORIZED,
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    REFUND_PROCESSED,
    ORDER_PAID,
})


def _entity(payload: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    wrapper = payload.get(name)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else None


@dataclass(frozen=True)
class WebhookEvent:
    """Webhook event reconstructed per delivery"""

    event_type: str
    payment_entity: Optional[Dict[str, Any]] = None
    refund_entity: Optional[Dict[str, Any]] = None
    order_entity: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = None
    account_id: Optional[str] = None
    contains: List[str] = field(default_factory=list)

    @classmethod
    def from_webhook_data(cls, data: Dict[str, Any]) -> "WebhookEvent":
        payload = data.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        contains = data.get("contains")
        return cls(
            event_type=data["event"],
            payment_entity=_entity(payload, "payment"),
            refund_entity=_entity(payload, "refund"),
            order_entity=_entity(payload, "order"),
            created_at=data.get("created_at"),
            account_id=data.get("account_id"),
            contains=list(contains) if isinstance(contains, list) else [],
        )

    @property
    def payment_id(self) -> Optional[str]:
        return (self.payment_entity or {}).get("id")

    @property
    def provider_order_id(self) -> Optional[str]:
        payment_order_id = (self.payment_entity or {}).get("order_id")
        return payment_order_id or (self.order_entity or {}).get("id")

    @property
    def refund_id(self) -> Optional[str]:
        return (self.refund_entity or {}).get("id")

    def log_context(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "payment_id": self.payment_id,
            "order_id": self.provider_order_id,
            "refund_id": self.refund_id,
        }


def parse(raw_payload: Union[bytes, str]) -> WebhookEvent:
    """
    Parse a webhook body

    Raises:
        MalformedPayloadError: If the body is not a JSON object with an event name
    """
    try:
        data = json.loads(raw_payload)
    except (ValueError, TypeError) as e:
        logger.error("Webhook payload parsing failed: %s (length=%d)", e, len(raw_payload or b""))
        raise MalformedPayloadError("Webhook payload is not valid JSON") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError("Webhook payload must be a JSON object")

    event_type = data.get("event")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedPayloadError("Webhook payload is missing the event type")

    return WebhookEvent.from_webhook_data(data)


def is_supported_event_type(event_type: str) -> bool:
    """Check if the event type is one the system processes"""
    return event_type in SUPPORTED_EVENT_TYPES
