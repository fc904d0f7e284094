"""
Webhook provider registry
Each payment provider contributes its header, secret, verifier, parser and handlers
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Type, Union

from app.core.config import settings
from . import events, signature
from .events import WebhookEvent
from .webhooks import EVENT_HANDLERS, WebhookHandler

@dataclass(frozen=True)
class WebhookProvider:
    name: str
    signature_header: str
    secret_getter: Callable[[], Optional[str]]
    verifier: Callable[[bytes, Optional[str], Optional[str]], bool]
    parser: Callable[[Union[bytes, str]], WebhookEvent]
    handlers: Mapping[str, Type[WebhookHandler]] = field(default_factory=dict)

    @property
    def secret(self) -> Optional[str]:
        return self.secret_getter()

    def is_configured(self) -> bool:
        return settings.is_provider_configured(self.name)

PROVIDERS: Dict[str, WebhookProvider] = {
    "razorpay": WebhookProvider(
        name="razorpay",
        signature_header=settings.RAZORPAY_SIGNATURE_HEADER,
        secret_getter=lambda: settings.RAZORPAY_WEBHOOK_SECRET,
        verifier=signature.verify,
        parser=events.parse,
        handlers=EVENT_HANDLERS,
    ),
}

def get_provider(name: str) -> Optional[WebhookProvider]:
    return PROVIDERS.get(name)
