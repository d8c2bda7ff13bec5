"""Admin API router aggregation."""

from fastapi import APIRouter

from coachpay.api.admin.assignments import router as assignments_router
from coachpay.api.admin.coaches import router as coaches_router
from coachpay.api.admin.payouts import router as payouts_router
from coachpay.api.admin.revenue_config import router as revenue_config_router

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(assignments_router)
admin_router.include_router(coaches_router)
admin_router.include_router(revenue_config_router)
admin_router.include_router(payouts_router)

__all__ = ["admin_router"]
