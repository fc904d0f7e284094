"""API v1 routes aggregation"""

from fastapi import APIRouter

from .payments.router import router as payments_router

# Create v1 router
api_router = APIRouter()

# Include all routers
api_router.include_router(payments_router, prefix="/payments", tags=["Payments"])

# Export router
router = api_router
