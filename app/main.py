"""Main FastAPI application with all middleware"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from app.core.cache import cache
from app.core.config import settings
from app.core.database import close_db, init_db, is_sqlite
from app.core.exceptions import register_exception_handlers
from app.core.monitoring import setup_logging, setup_metrics_endpoint, setup_monitoring_middleware
from app.api.v1 import api_router
from app.api.v1.payments.services import validate_payment_configuration

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging()
    logger.info("Starting up %s...", settings.APP_NAME)

    # Raises in strict mode, otherwise the provider is reported as disabled
    validate_payment_configuration()

    # Local SQLite databases are created on first start
    if is_sqlite:
        await init_db()

    await cache.connect()

    yield

    # Shutdown
    logger.info("Shutting down %s...", settings.APP_NAME)
    await cache.disconnect()
    await close_db()

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Payment confirmation and webhook reconciliation for ticket orders",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

if settings.PROMETHEUS_ENABLED:
    setup_monitoring_middleware(app)
    setup_metrics_endpoint(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Health check
@app.get("/health")
async def health_check():
    try:
        redis_ok = await cache.ping()
    except Exception as e:
        logger.warning("Health check: Redis unavailable: %s", e)
        redis_ok = False

    return {
        "status": "healthy" if redis_ok else "degraded",
        "version": settings.APP_VERSION,
        "redis": redis_ok,
        "payments": {"razorpay": settings.is_provider_configured("razorpay")}
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
