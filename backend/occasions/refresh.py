"""Yearly refresh of stored movable-holiday dates (Easter, Mother's Day, ...)."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Occasion
from occasions.holidays import VARIABLE_HOLIDAYS, holiday_date

logger = structlog.get_logger()


async def refresh_variable_holiday_dates(db: AsyncSession, year: int) -> dict:
    """
    Move every stored movable-holiday occasion to its date in ``year``.

    The order job matches on month/day, so a stale Easter from last year
    would fire on the wrong day without this.
    """
    result = await db.execute(
        select(Occasion).where(
            Occasion.occasion_type.in_(VARIABLE_HOLIDAYS),
            Occasion.is_just_because.is_(False),
        )
    )
    occasions = result.scalars().all()

    updated = 0
    for occasion in occasions:
        new_date = holiday_date(occasion.occasion_type, year)
        if occasion.occasion_date != new_date:
            occasion.occasion_date = new_date
            updated += 1

    await db.commit()
    logger.info("holidays.refreshed", year=year, checked=len(occasions), updated=updated)
    return {"year": year, "checked": len(occasions), "updated": updated}
