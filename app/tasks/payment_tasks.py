"""Payment webhook background tasks"""

from celery import Task
from celery.utils.log import get_task_logger
from typing import Any, Dict
import asyncio

from app.core.cache import RedisCache
from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import create_worker_engine, create_worker_session_factory
from app.core.exceptions import MalformedPayloadError
from app.api.v1.payments.dedup import DedupLedger
from app.api.v1.payments.events import WebhookEvent
from app.api.v1.payments.providers import WebhookProvider, get_provider
from app.api.v1.payments.webhooks import HandlerOutcome, dispatch

logger = get_task_logger(__name__)

class PaymentWebhookTask(Task):
    """Base webhook task, retried with backoff until the handler succeeds"""
    autoretry_for = (Exception,)
    dont_autoretry_for = (MalformedPayloadError,)
    retry_kwargs = {"max_retries": settings.WEBHOOK_MAX_RETRIES}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    acks_late = True

async def handle_webhook_event(webhook_provider: WebhookProvider, event: WebhookEvent) -> HandlerOutcome:
    """Dispatch one event with worker-local database and Redis connections"""
    engine = create_worker_engine()
    store = RedisCache()
    try:
        return await dispatch(
            event,
            create_worker_session_factory(engine),
            DedupLedger(store, provider=webhook_provider.name),
            handlers=webhook_provider.handlers
        )
    finally:
        await store.disconnect()
        await engine.dispose()

@celery_app.task(base=PaymentWebhookTask, name="app.tasks.payment_tasks.process_webhook_event")
def process_webhook_event(provider: str, raw_payload: str) -> Dict[str, Any]:
    """Process a verified webhook body"""
    webhook_provider = get_provider(provider)
    if webhook_provider is None:
        logger.error(f"Unknown payment provider {provider}, dropping webhook")
        return {"success": False, "error": f"Unknown provider {provider}"}

    event = webhook_provider.parser(raw_payload)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        outcome = loop.run_until_complete(handle_webhook_event(webhook_provider, event))
    finally:
        loop.close()
        asyncio.set_event_loop(None)

    logger.info(f"Webhook {event.event_type} from {provider}: {outcome.value}")
    return {"success": True, "event": event.event_type, "outcome": outcome.value}
