"""
Order Worker — daily order materialization.

Schedule: crontab(hour=6, minute=0)
Queue: fulfillment
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.orders.create_upcoming_orders",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
    acks_late=True,
)
def create_upcoming_orders(self, target_today: str | None = None):
    """
    Daily job: create orders for occasions LEAD_TIME_DAYS out.

    ``target_today`` (ISO date) replays the job as if run on that day.
    Re-running is safe; existing orders are skipped as duplicates.
    """
    run_id = self.request.id or "manual"
    logger.info("order_worker.started", run_id=run_id, target_today=target_today)

    async def _run():
        from datetime import date

        from core.clock import FixedClock, get_clock
        from core.config import get_settings
        from fulfillment.order_job import create_upcoming_orders as run_order_job
        from integrations.address_verification import build_address_verifier
        from notifications.email import EmailNotifier

        settings = get_settings()
        clock = (
            FixedClock(date.fromisoformat(target_today), settings.app_timezone) if target_today else get_clock()
        )
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                result = await run_order_job(
                    db,
                    verifier=build_address_verifier(settings),
                    notifier=EmailNotifier.from_settings(settings),
                    clock=clock,
                    proceed_on_verification_error=settings.verification_proceed_on_error,
                )
        finally:
            await engine.dispose()

        summary = {"status": "success", "run_id": run_id, **result.to_dict()}
        logger.info(
            "order_worker.completed",
            run_id=run_id,
            created=summary["created"],
            skipped=summary["skipped"],
        )
        return summary

    try:
        return asyncio.run(_run())
    except Exception as exc:
        logger.error("order_worker.failed", run_id=run_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
