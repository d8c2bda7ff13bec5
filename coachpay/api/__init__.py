"""API router aggregation."""

from fastapi import APIRouter

from coachpay.api.admin import admin_router
from coachpay.api.health import router as health_router
from coachpay.api.intake import router as intake_router
from coachpay.api.payments import router as payments_router

# Main API router (for /api/* endpoints)
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(intake_router)
api_router.include_router(payments_router)
api_router.include_router(admin_router)

__all__ = ["api_router"]
