"""
Recipient lifecycle — the write path that feeds the scheduler.

Saving a recipient stores their occasions in schedulable form:
  - holiday occasions store the upcoming instance of the holiday
  - custom occasions (Birthday, Anniversary, ...) store the user's date
  - the Just Because occasion stores a computed surprise send date

Editing replaces the regular occasions wholesale, keeps an existing Just
Because occasion and re-validates its date against the new calendar.
When any occasion is inside the delivery lead time the address is verified
immediately instead of waiting for the order job.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import date

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, get_clock
from db.models import Occasion, Recipient
from integrations.address_verification import (
    Address,
    AddressVerifier,
    VerificationResult,
    Verdict,
    address_status_for,
)
from notifications.email import Notifier
from occasions.delivery_window import (
    LEAD_TIME_DAYS,
    days_until_occasion,
    resolve_fulfillment_year,
)
from occasions.holidays import is_holiday, next_occurrence
from occasions.just_because import (
    JUST_BECAUSE_TYPE,
    calculate_just_because_date,
    card_variation,
    get_just_because_occasion,
    reschedule_if_needed,
)

logger = structlog.get_logger()

ADDRESS_FIELDS = ("street", "apartment", "city", "state", "zip", "country")
RELATIONSHIPS = ("Friend", "Family", "Romantic", "Professional")


@dataclass
class OccasionInput:
    occasion_type: str
    occasion_date: date | None = None
    notes: str | None = None

    @property
    def is_just_because(self) -> bool:
        return self.occasion_type == JUST_BECAUSE_TYPE


@dataclass
class RecipientInput:
    first_name: str
    last_name: str
    relationship: str
    street: str
    city: str
    state: str
    zip: str
    apartment: str | None = None
    country: str = "United States"
    notes: str | None = None
    occasions: list[OccasionInput] = field(default_factory=list)


@dataclass
class DeliveryWarning:
    occasion_type: str
    days_until: int
    fulfillment_year: int

    def as_dict(self) -> dict:
        return {
            "occasion_type": self.occasion_type,
            "days_until": self.days_until,
            "fulfillment_year": self.fulfillment_year,
            "message": (
                f"{self.occasion_type} is only {self.days_until} days away; "
                f"the first card will go out for {self.fulfillment_year}."
            ),
        }


@dataclass
class RecipientSaveResult:
    recipient: Recipient
    warnings: list[DeliveryWarning] = field(default_factory=list)
    verification: VerificationResult | None = None


def _validate(data: RecipientInput) -> None:
    if data.relationship not in RELATIONSHIPS:
        raise ValueError(f"relationship must be one of {', '.join(RELATIONSHIPS)}")
    if sum(1 for o in data.occasions if o.is_just_because) > 1:
        raise ValueError("A recipient can have only one Just Because occasion")
    for occasion in data.occasions:
        if occasion.is_just_because or is_holiday(occasion.occasion_type):
            continue
        if occasion.occasion_date is None:
            raise ValueError(f"{occasion.occasion_type} needs a date")


def delivery_warnings(occasions: list[OccasionInput], clock: Clock | None = None) -> list[DeliveryWarning]:
    """Occasions too close to make this year's mailing."""
    warnings = []
    for occasion in occasions:
        if occasion.is_just_because:
            continue
        custom = None if is_holiday(occasion.occasion_type) else occasion.occasion_date
        status = resolve_fulfillment_year(occasion.occasion_type, custom, clock)
        if status.is_too_soon:
            warnings.append(DeliveryWarning(occasion.occasion_type, status.days_until, status.fulfillment_year))
    return warnings


def _regular_occasion(recipient_id: int, data: OccasionInput, clock: Clock) -> Occasion:
    if is_holiday(data.occasion_type):
        occasion_date = next_occurrence(data.occasion_type, clock)
    else:
        occasion_date = data.occasion_date
    return Occasion(
        recipient_id=recipient_id,
        occasion_type=data.occasion_type,
        occasion_date=occasion_date,
        notes=data.notes,
        is_just_because=False,
    )


async def _add_just_because(
    db: AsyncSession,
    recipient: Recipient,
    data: OccasionInput,
    clock: Clock,
    rng: random.Random | None,
) -> Occasion:
    send_date = await calculate_just_because_date(db, recipient.id, clock, rng)
    occasion = Occasion(
        recipient_id=recipient.id,
        occasion_type=JUST_BECAUSE_TYPE,
        occasion_date=send_date,
        computed_send_date=send_date,
        card_variation=card_variation(recipient.relationship_type),
        notes=data.notes,
        is_just_because=True,
    )
    db.add(occasion)
    await db.flush()
    logger.info("just_because.scheduled", recipient_id=recipient.id, send_date=send_date.isoformat())
    return occasion


async def get_occasions(db: AsyncSession, recipient_id: int) -> list[Occasion]:
    result = await db.execute(
        select(Occasion).where(Occasion.recipient_id == recipient_id).order_by(Occasion.occasion_date, Occasion.id)
    )
    return list(result.scalars().all())


async def verify_address_if_urgent(
    db: AsyncSession,
    recipient: Recipient,
    verifier: AddressVerifier,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
    user=None,
) -> VerificationResult | None:
    """
    Verify the recipient's address now when an occasion is within the lead
    time, so a bad address surfaces before the card is due.
    """
    clock = clock or get_clock()
    occasions = await get_occasions(db, recipient.id)
    upcoming = [(days_until_occasion(o, clock), o) for o in occasions]
    urgent = [(days, o) for days, o in upcoming if 0 <= days <= LEAD_TIME_DAYS]
    if not urgent:
        return None

    days, occasion = min(urgent, key=lambda pair: pair[0])
    original = Address.from_record(recipient)
    result = await verifier.verify(original)
    status, notes = address_status_for(result)
    recipient.address_status = status
    recipient.address_notes = notes
    recipient.address_verified_at = clock.now_naive()
    if result.verdict == Verdict.CORRECTABLE and result.suggested_address:
        for name, value in result.suggested_address.as_dict().items():
            setattr(recipient, name, value)
    await db.commit()

    logger.info("address.verified", recipient_id=recipient.id, verdict=result.verdict.value, days_until=days)
    if result.verdict == Verdict.UNDELIVERABLE and notifier is not None and user is not None:
        try:
            await notifier.urgent_address_issue(
                user.email,
                user.display_name,
                recipient.full_name,
                occasion.occasion_type,
                occasion.computed_send_date if occasion.is_just_because else occasion.occasion_date,
                days,
                original,
            )
        except Exception as exc:
            logger.warning("address.urgent_notification_failed", recipient_id=recipient.id, error=str(exc))
    return result


async def create_recipient(
    db: AsyncSession,
    user,
    data: RecipientInput,
    *,
    clock: Clock | None = None,
    rng: random.Random | None = None,
    verifier: AddressVerifier | None = None,
    notifier: Notifier | None = None,
) -> RecipientSaveResult:
    clock = clock or get_clock()
    _validate(data)

    recipient = Recipient(
        user_id=user.id,
        first_name=data.first_name,
        last_name=data.last_name,
        relationship_type=data.relationship,
        street=data.street,
        apartment=data.apartment,
        city=data.city,
        state=data.state,
        zip=data.zip,
        country=data.country,
        notes=data.notes,
        address_status="pending",
    )
    db.add(recipient)
    await db.flush()

    for occasion in data.occasions:
        if not occasion.is_just_because:
            db.add(_regular_occasion(recipient.id, occasion, clock))
    await db.flush()

    just_because = next((o for o in data.occasions if o.is_just_because), None)
    if just_because is not None:
        await _add_just_because(db, recipient, just_because, clock, rng)

    await db.commit()
    logger.info("recipient.created", recipient_id=recipient.id, user_id=user.id, occasions=len(data.occasions))

    result = RecipientSaveResult(recipient=recipient, warnings=delivery_warnings(data.occasions, clock))
    if verifier is not None:
        result.verification = await verify_address_if_urgent(db, recipient, verifier, clock, notifier, user)
    return result


async def update_recipient(
    db: AsyncSession,
    user,
    recipient: Recipient,
    data: RecipientInput,
    *,
    clock: Clock | None = None,
    rng: random.Random | None = None,
    verifier: AddressVerifier | None = None,
    notifier: Notifier | None = None,
) -> RecipientSaveResult:
    clock = clock or get_clock()
    _validate(data)

    address_changed = any(getattr(recipient, name) != getattr(data, name) for name in ADDRESS_FIELDS)
    recipient.first_name = data.first_name
    recipient.last_name = data.last_name
    recipient.relationship_type = data.relationship
    recipient.notes = data.notes
    for name in ADDRESS_FIELDS:
        setattr(recipient, name, getattr(data, name))
    if address_changed:
        recipient.address_status = "pending"
        recipient.address_notes = None
        recipient.address_verified_at = None

    await db.execute(
        delete(Occasion).where(Occasion.recipient_id == recipient.id, Occasion.is_just_because.is_(False))
    )
    for occasion in data.occasions:
        if not occasion.is_just_because:
            db.add(_regular_occasion(recipient.id, occasion, clock))
    await db.flush()

    existing = await get_just_because_occasion(db, recipient.id)
    requested = next((o for o in data.occasions if o.is_just_because), None)
    if requested is not None and existing is None:
        await _add_just_because(db, recipient, requested, clock, rng)
    elif requested is None and existing is not None:
        await db.delete(existing)
        await db.flush()
    elif existing is not None:
        existing.notes = requested.notes
        existing.card_variation = card_variation(recipient.relationship_type)
        await reschedule_if_needed(db, recipient.id, clock, rng)

    await db.commit()
    logger.info("recipient.updated", recipient_id=recipient.id, address_changed=address_changed)

    result = RecipientSaveResult(recipient=recipient, warnings=delivery_warnings(data.occasions, clock))
    if verifier is not None:
        result.verification = await verify_address_if_urgent(db, recipient, verifier, clock, notifier, user)
    return result


async def delete_recipient(db: AsyncSession, recipient: Recipient) -> None:
    """Remove a recipient with all occasions; existing orders keep their snapshot."""
    recipient_id = recipient.id
    await db.delete(recipient)
    await db.commit()
    logger.info("recipient.deleted", recipient_id=recipient_id)
