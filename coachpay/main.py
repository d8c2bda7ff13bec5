"""
coachpay - coach assignment and revenue settlement service.

Parents arrive as leads, are attributed and matched to a coach, and on
payment become enrollments whose fee is split between the platform and
coaches. Coaches are paid monthly, net of TDS and clawbacks.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coachpay import __version__
from coachpay.api import api_router
from coachpay.api.errors import register_error_handlers
from coachpay.config import settings
from coachpay.scheduler.jobs import scheduler, setup_scheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the monthly payout job in-process when the scheduler is enabled."""
    logger.info(f"Starting {settings.app_name} {__version__}")

    if settings.scheduler_enabled:
        setup_scheduler()
        scheduler.start()
    else:
        logger.info("Payout scheduler disabled; runs must be triggered via /api/admin/payouts/run")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Payout scheduler stopped")


app = FastAPI(
    title="coachpay",
    description="Coach assignment, revenue split and payout settlement",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

register_error_handlers(app)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coachpay.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
