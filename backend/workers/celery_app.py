"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "avoidtherain",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Beat fires on local calendar days, matching the scheduling clock
    timezone=settings.app_timezone,
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.orders.*": {"queue": "fulfillment"},
        "workers.holidays.*": {"queue": "fulfillment"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    beat_schedule={
        # ── Fulfillment ─────────────────────────────────────────────
        "create-upcoming-orders-daily": {
            "task": "workers.orders.create_upcoming_orders",
            "schedule": crontab(hour=6, minute=0),
            "options": {"queue": "fulfillment"},
        },
        # ── Calendar ────────────────────────────────────────────────
        "refresh-holiday-dates-yearly": {
            "task": "workers.holidays.refresh_holiday_dates",
            "schedule": crontab(hour=0, minute=30, day_of_month=1, month_of_year=1),
            "options": {"queue": "fulfillment"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"])
