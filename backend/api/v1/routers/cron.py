"""
Cron Router — periodic job triggers.

Called by the platform scheduler with ``Authorization: Bearer <CRON_SECRET>``.
The Celery beat schedule runs the same jobs for deployments with workers.
"""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_address_verifier, get_app_clock, get_db, get_notifier, require_cron_secret
from core.clock import Clock
from core.config import get_settings
from fulfillment.order_job import create_upcoming_orders
from integrations.address_verification import AddressVerifier
from notifications.email import Notifier
from occasions.refresh import refresh_variable_holiday_dates

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/v1/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


def _failure(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message, "message": str(exc)})


@router.api_route("/create-orders", methods=["GET", "POST"])
async def create_orders(
    db: AsyncSession = Depends(get_db),
    verifier: AddressVerifier = Depends(get_address_verifier),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_app_clock),
):
    """Materialize orders for occasions due in LEAD_TIME_DAYS."""
    try:
        result = await create_upcoming_orders(
            db,
            verifier=verifier,
            notifier=notifier,
            clock=clock,
            proceed_on_verification_error=get_settings().verification_proceed_on_error,
        )
    except SQLAlchemyError as exc:
        logger.error("cron.create_orders_failed", error=str(exc))
        return _failure("Failed to create orders", exc)
    return {"success": True, **result.to_dict()}


@router.api_route("/update-holiday-dates", methods=["GET", "POST"])
async def update_holiday_dates(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_app_clock),
):
    """Recompute stored movable-holiday dates for the current year."""
    try:
        summary = await refresh_variable_holiday_dates(db, clock.today().year)
    except SQLAlchemyError as exc:
        logger.error("cron.update_holiday_dates_failed", error=str(exc))
        return _failure("Failed to update holiday dates", exc)
    return {"success": True, **summary}
