"""
Webhook dedup ledger
Idempotency markers keyed by (event type, provider entity id)
"""

from datetime import timedelta
from typing import Optional
import logging

from app.core.cache import RedisCache
from app.core.config import settings

logger = logging.getLogger(__name__)


class DedupLedger:
    """
    Time-bounded record of handled webhook events

    Markers live in the shared Redis store so every worker process sees
    them. The TTL bounds storage only; providers do not redeliver after it.
    """

    def __init__(
        self,
        store: RedisCache,
        provider: str = "razorpay",
        ttl: Optional[timedelta] = None
    ):
        self.store = store
        self.provider = provider
        self.ttl = ttl or timedelta(hours=settings.WEBHOOK_DEDUP_TTL_HOURS)

    def key(self, event_type: str, entity_id: str) -> str:
        return f"payments:webhook:{self.provider}:{event_type}:{entity_id}"

    async def is_handled(self, event_type: str, entity_id: str) -> bool:
        return await self.store.exists(self.key(event_type, entity_id))

    async def mark_handled(self, event_type: str, entity_id: str) -> None:
        key = self.key(event_type, entity_id)
        if not await self.store.set(key, True, expire=self.ttl):
            # Redelivery will reprocess; the conditional transition keeps that safe
            logger.warning("Could not mark webhook event as handled: %s", key)
