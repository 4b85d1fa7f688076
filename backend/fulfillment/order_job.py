"""
Order Materialization Job — turns due occasions into orders.

Runs once a day. The target date is exactly LEAD_TIME_DAYS from today;
every occasion that lands on that month/day (custom and holiday occasions
by ``occasion_date``, Just Because by ``computed_send_date``) gets at most
one order per fulfillment year.

Per occasion, in order:
  1. duplicate order for (occasion, year)      → skip
  2. subscription not in an active state       → skip
  3. annual plan quota reached                 → skip
  4. no default return address                 → notify, skip
  5. verify the recipient address:
       UNDELIVERABLE → status invalid, urgent notice, skip
       CORRECTABLE   → overwrite address, status corrected, notify
       VALID         → status verified
       ERROR         → status error, proceed (policy flag)
  6. create the order snapshot (status pending)
  7. Just Because → stamp last_sent_year
  8. best-effort "order created" email

Business skips are collected, never raised. Storage errors propagate so the
caller sees a failed run; orders committed before the failure stay.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy import and_, extract, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, get_clock
from db.models import Occasion, Order, Recipient, Team, User, UserAddress
from integrations.address_verification import (
    Address,
    AddressVerifier,
    Verdict,
    address_status_for,
)
from notifications.email import Notifier
from occasions.delivery_window import LEAD_TIME_DAYS
from occasions.plans import card_limit, has_active_subscription

logger = structlog.get_logger()


class SkipReason:
    DUPLICATE = "duplicate_order"
    INACTIVE_SUBSCRIPTION = "inactive_subscription"
    QUOTA_EXCEEDED = "quota_exceeded"
    MISSING_RETURN_ADDRESS = "missing_return_address"
    INVALID_ADDRESS = "invalid_address"
    VERIFICATION_UNAVAILABLE = "verification_unavailable"
    FAILED = "failed"


@dataclass
class SkippedOccasion:
    occasion_id: int
    recipient: str | None
    reason: str
    detail: str | None = None

    def to_dict(self) -> dict:
        return {
            "occasion_id": self.occasion_id,
            "recipient": self.recipient,
            "reason": self.reason,
            "detail": self.detail,
        }


@dataclass
class OrderJobResult:
    target_date: str
    created_orders: list[dict] = field(default_factory=list)
    skipped: list[SkippedOccasion] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created_orders)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> dict:
        return {
            "target_date": self.target_date,
            "created": self.created_count,
            "skipped": self.skipped_count,
            "details": {
                "created_orders": self.created_orders,
                "skipped_reasons": [s.to_dict() for s in self.skipped],
            },
        }


async def _due_occasion_ids(db: AsyncSession, target, year: int) -> list[int]:
    """Occasions whose month/day falls on ``target``, oldest first."""
    regular = and_(
        Occasion.is_just_because.is_(False),
        extract("month", Occasion.occasion_date) == target.month,
        extract("day", Occasion.occasion_date) == target.day,
    )
    just_because = and_(
        Occasion.is_just_because.is_(True),
        extract("month", Occasion.computed_send_date) == target.month,
        extract("day", Occasion.computed_send_date) == target.day,
        or_(Occasion.last_sent_year.is_(None), Occasion.last_sent_year < year),
    )
    result = await db.execute(select(Occasion.id).where(or_(regular, just_because)).order_by(Occasion.id))
    return list(result.scalars().all())


async def _load_context(db: AsyncSession, occasion_id: int):
    result = await db.execute(
        select(Occasion, Recipient, User, Team)
        .join(Recipient, Occasion.recipient_id == Recipient.id)
        .join(User, Recipient.user_id == User.id)
        .outerjoin(Team, User.team_id == Team.id)
        .where(Occasion.id == occasion_id)
        .execution_options(populate_existing=True)
    )
    return result.one_or_none()


async def _order_exists(db: AsyncSession, occasion_id: int, year: int) -> bool:
    result = await db.execute(
        select(Order.id).where(Order.occasion_id == occasion_id, Order.fulfillment_year == year).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def count_subscription_orders(db: AsyncSession, user_id: int, year: int) -> int:
    """Non-cancelled subscription orders a user created in ``year``."""
    result = await db.execute(
        select(func.count(Order.id)).where(
            Order.user_id == user_id,
            Order.card_type == "subscription",
            Order.status != "cancelled",
            Order.created_at >= datetime(year, 1, 1),
            Order.created_at < datetime(year + 1, 1, 1),
        )
    )
    return result.scalar_one()


async def get_default_return_address(db: AsyncSession, user_id: int) -> UserAddress | None:
    result = await db.execute(
        select(UserAddress)
        .where(UserAddress.user_id == user_id, UserAddress.is_default.is_(True))
        .order_by(UserAddress.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _notify(label: str, coro) -> None:
    """Await a notification; a failing sink is logged and forgotten."""
    try:
        await coro
    except Exception as exc:
        logger.warning("order_job.notification_failed", notification=label, error=str(exc))


def _build_order(occasion, recipient, user, return_address, target, year, now) -> Order:
    return Order(
        recipient_id=recipient.id,
        occasion_id=occasion.id,
        user_id=user.id,
        team_id=user.team_id,
        card_type="subscription",
        fulfillment_year=year,
        occasion_date=target,
        status="pending",
        recipient_first_name=recipient.first_name,
        recipient_last_name=recipient.last_name,
        recipient_street=recipient.street,
        recipient_apartment=recipient.apartment,
        recipient_city=recipient.city,
        recipient_state=recipient.state,
        recipient_zip=recipient.zip,
        return_name=user.display_name,
        return_street=return_address.street,
        return_apartment=return_address.apartment,
        return_city=return_address.city,
        return_state=return_address.state,
        return_zip=return_address.zip,
        occasion_type=occasion.occasion_type,
        occasion_notes=occasion.notes,
        card_variation=occasion.card_variation,
        created_at=now,
        updated_at=now,
    )


async def create_upcoming_orders(
    db: AsyncSession,
    *,
    verifier: AddressVerifier,
    notifier: Notifier,
    clock: Clock | None = None,
    proceed_on_verification_error: bool = True,
) -> OrderJobResult:
    """Materialize orders for every occasion due LEAD_TIME_DAYS from today."""
    clock = clock or get_clock()
    today = clock.today()
    target = today + timedelta(days=LEAD_TIME_DAYS)
    year = target.year
    result = OrderJobResult(target_date=target.isoformat())

    occasion_ids = await _due_occasion_ids(db, target, year)
    logger.info("order_job.started", target_date=target.isoformat(), candidates=len(occasion_ids))
    names: dict[int, str] = {}

    for occasion_id in occasion_ids:
        try:
            await _process_occasion(
                db,
                occasion_id,
                target=target,
                year=year,
                verifier=verifier,
                notifier=notifier,
                clock=clock,
                proceed_on_verification_error=proceed_on_verification_error,
                result=result,
                names=names,
            )
        except SQLAlchemyError:
            logger.error("order_job.storage_failed", occasion_id=occasion_id, exc_info=True)
            raise
        except Exception as exc:
            await db.rollback()
            logger.error("order_job.occasion_failed", occasion_id=occasion_id, error=str(exc), exc_info=True)
            result.skipped.append(SkippedOccasion(occasion_id, names.get(occasion_id), SkipReason.FAILED, str(exc)))

    logger.info(
        "order_job.completed",
        target_date=target.isoformat(),
        created=result.created_count,
        skipped=result.skipped_count,
    )
    return result


async def _process_occasion(
    db: AsyncSession,
    occasion_id: int,
    *,
    target,
    year: int,
    verifier: AddressVerifier,
    notifier: Notifier,
    clock: Clock,
    proceed_on_verification_error: bool,
    result: OrderJobResult,
    names: dict[int, str],
) -> None:
    row = await _load_context(db, occasion_id)
    if row is None:
        return
    occasion, recipient, user, team = row
    name = names[occasion_id] = recipient.full_name

    def skip(reason: str, detail: str | None = None) -> None:
        logger.info("order_job.skipped", occasion_id=occasion_id, reason=reason, detail=detail)
        result.skipped.append(SkippedOccasion(occasion_id, name, reason, detail))

    # 1. one order per occasion per year
    if await _order_exists(db, occasion_id, year):
        skip(SkipReason.DUPLICATE)
        return

    # 2. billing state
    if not has_active_subscription(team):
        skip(SkipReason.INACTIVE_SUBSCRIPTION, team.subscription_status if team else "no team")
        return

    # 3. annual quota
    limit = card_limit(team.plan_name)
    used = await count_subscription_orders(db, user.id, clock.today().year)
    if used >= limit:
        skip(SkipReason.QUOTA_EXCEEDED, f"{used}/{limit} cards used on {team.plan_name or 'default'} plan")
        return

    # 4. return address
    return_address = await get_default_return_address(db, user.id)
    if return_address is None:
        await _notify(
            "missing_return_address",
            notifier.missing_return_address(user.email, user.display_name, name, occasion.occasion_type, target),
        )
        skip(SkipReason.MISSING_RETURN_ADDRESS)
        return

    # 5. recipient address
    original = Address.from_record(recipient)
    verification = await verifier.verify(original)
    status, notes = address_status_for(verification)
    recipient.address_status = status
    recipient.address_notes = notes
    recipient.address_verified_at = clock.now_naive()

    if verification.verdict == Verdict.UNDELIVERABLE:
        await db.commit()
        await _notify(
            "urgent_address_issue",
            notifier.urgent_address_issue(
                user.email,
                user.display_name,
                name,
                occasion.occasion_type,
                target,
                (target - clock.today()).days,
                original,
            ),
        )
        skip(SkipReason.INVALID_ADDRESS, verification.message)
        return

    if verification.verdict == Verdict.CORRECTABLE and verification.suggested_address:
        suggested = verification.suggested_address
        recipient.street = suggested.street
        recipient.apartment = suggested.apartment
        recipient.city = suggested.city
        recipient.state = suggested.state
        recipient.zip = suggested.zip
        logger.info("order_job.address_corrected", recipient_id=recipient.id)
        # Persist before notifying; an order insert conflict rolls back only the order
        await db.commit()
        await _notify(
            "address_corrected",
            notifier.address_corrected(user.email, user.display_name, name, original, suggested),
        )
    elif verification.verdict == Verdict.ERROR:
        logger.warning(
            "order_job.verification_unavailable",
            recipient_id=recipient.id,
            proceed=proceed_on_verification_error,
            message=verification.message,
        )
        if not proceed_on_verification_error:
            await db.commit()
            skip(SkipReason.VERIFICATION_UNAVAILABLE, verification.message)
            return

    # 6. snapshot
    order = _build_order(occasion, recipient, user, return_address, target, year, clock.now_naive())
    db.add(order)

    # 7. Just Because fires once a year
    if occasion.is_just_because:
        occasion.last_sent_year = year

    try:
        await db.flush()
    except IntegrityError:
        # Another run inserted the same (occasion, year) first
        await db.rollback()
        skip(SkipReason.DUPLICATE, "insert conflict")
        return
    order_id = order.id
    await db.commit()

    logger.info("order_job.order_created", order_id=order_id, occasion_id=occasion_id, recipient=name)
    result.created_orders.append({"id": order_id, "occasion_id": occasion_id, "recipient": name})

    # 8. best effort
    await _notify("order_created", notifier.order_created(user.email, user.display_name, order))
