"""
Holiday Worker — yearly refresh of movable-holiday occasion dates.

Schedule: crontab(hour=0, minute=30, day_of_month=1, month_of_year=1)
Queue: fulfillment
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.holidays.refresh_holiday_dates",
    bind=True,
    max_retries=2,
    default_retry_delay=600,
    acks_late=True,
)
def refresh_holiday_dates(self, year: int | None = None):
    """Move Easter, Mother's Day, Father's Day and Thanksgiving occasions to this year's dates."""
    run_id = self.request.id or "manual"

    async def _refresh():
        from core.clock import get_clock
        from core.config import get_settings
        from occasions.refresh import refresh_variable_holiday_dates

        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                summary = await refresh_variable_holiday_dates(db, year or get_clock().today().year)
        finally:
            await engine.dispose()
        return {"status": "success", "run_id": run_id, **summary}

    try:
        return asyncio.run(_refresh())
    except Exception as exc:
        logger.error("holiday_worker.failed", run_id=run_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
