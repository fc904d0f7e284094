# Ticketing Payments Monitoring Configuration
# Prometheus metrics and logging setup

import logging
import time
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from app.core.config import settings

# HTTP metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])

# Payment reconciliation metrics
webhook_events = Counter(
    'payment_webhook_events_total',
    'Webhook events by outcome',
    ['provider', 'event', 'outcome']
)
signature_failures = Counter(
    'payment_signature_failures_total',
    'Rejected payment signatures',
    ['provider', 'channel']
)
dedup_hits = Counter(
    'payment_webhook_dedup_hits_total',
    'Webhook deliveries skipped as already handled',
    ['provider', 'event']
)
state_transitions = Counter(
    'order_payment_transitions_total',
    'Conditional payment status updates',
    ['target', 'outcome']
)
refunds_processed = Counter(
    'payment_refunds_total',
    'Refund requests by outcome',
    ['provider', 'outcome']
)

def setup_logging():
    """Configure structured logging for the application"""

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        handlers=[console_handler]
    )

    # Silence noisy loggers in production
    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

def setup_monitoring_middleware(app: FastAPI):
    """Add monitoring middleware to track metrics"""

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time

        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()

        request_duration.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(process_time)

        response.headers["X-Process-Time"] = str(process_time)

        return response

def setup_metrics_endpoint(app: FastAPI):
    """Expose Prometheus metrics"""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint"""
        if not settings.PROMETHEUS_ENABLED:
            return {"error": "Metrics disabled"}

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
