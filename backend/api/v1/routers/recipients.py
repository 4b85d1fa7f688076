"""
Recipients Router — people a user sends cards to, with their occasions.

Saving returns delivery warnings for occasions already inside the
fulfillment lead time, plus the address verdict when an occasion is close
enough that the address was checked immediately.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_address_verifier, get_app_clock, get_current_user, get_db, get_notifier
from core.clock import Clock
from db.models import Occasion, Recipient, Team, User
from integrations.address_verification import AddressVerifier
from notifications.email import Notifier
from occasions.just_because import just_because_label
from occasions.plans import calculate_card_allocation, card_cost
from occasions.recipients import (
    OccasionInput,
    RecipientInput,
    RecipientSaveResult,
    create_recipient,
    delete_recipient,
    get_occasions,
    update_recipient,
)


router = APIRouter(prefix="/api/v1/recipients", tags=["recipients"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class OccasionIn(BaseModel):
    occasion_type: str = Field(..., min_length=1, max_length=50)
    occasion_date: date | None = None
    notes: str | None = None


class RecipientIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    relationship: str
    street: str = Field(..., min_length=1)
    apartment: str | None = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=50)
    zip: str = Field(..., min_length=5, max_length=20)
    country: str = "United States"
    notes: str | None = None
    occasions: list[OccasionIn] = []

    def to_input(self) -> RecipientInput:
        data = self.model_dump(exclude={"occasions"})
        return RecipientInput(**data, occasions=[OccasionInput(**o.model_dump()) for o in self.occasions])


class OccasionResponse(BaseModel):
    id: int
    occasion_type: str
    occasion_date: date | None
    is_just_because: bool
    card_variation: str | None
    label: str | None
    notes: str | None


class RecipientResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    relationship: str
    street: str
    apartment: str | None
    city: str
    state: str
    zip: str
    country: str
    address_status: str
    address_notes: str | None
    address_verified_at: datetime | None
    notes: str | None
    occasions: list[OccasionResponse]


class RecipientSaveResponse(BaseModel):
    recipient: RecipientResponse
    warnings: list[dict]
    verification: dict | None


class CardAllocationResponse(BaseModel):
    scheduled_cards: int
    subscription_cards: int
    extra_cards: int
    total_available: int
    shortfall: int
    is_over_limit: bool
    shortfall_cost: int


# ─── Helpers ────────────────────────────────────────────────────────────────


def _occasion_response(occasion: Occasion, relationship: str) -> OccasionResponse:
    # The surprise date stays hidden from the dashboard
    return OccasionResponse(
        id=occasion.id,
        occasion_type=occasion.occasion_type,
        occasion_date=None if occasion.is_just_because else occasion.occasion_date,
        is_just_because=occasion.is_just_because,
        card_variation=occasion.card_variation,
        label=just_because_label(relationship) if occasion.is_just_because else None,
        notes=occasion.notes,
    )


def _recipient_response(recipient: Recipient, occasions: list[Occasion]) -> RecipientResponse:
    return RecipientResponse(
        id=recipient.id,
        first_name=recipient.first_name,
        last_name=recipient.last_name,
        relationship=recipient.relationship_type,
        street=recipient.street,
        apartment=recipient.apartment,
        city=recipient.city,
        state=recipient.state,
        zip=recipient.zip,
        country=recipient.country,
        address_status=recipient.address_status,
        address_notes=recipient.address_notes,
        address_verified_at=recipient.address_verified_at,
        notes=recipient.notes,
        occasions=[_occasion_response(o, recipient.relationship_type) for o in occasions],
    )


async def _save_response(db: AsyncSession, saved: RecipientSaveResult) -> RecipientSaveResponse:
    occasions = await get_occasions(db, saved.recipient.id)
    return RecipientSaveResponse(
        recipient=_recipient_response(saved.recipient, occasions),
        warnings=[w.as_dict() for w in saved.warnings],
        verification=saved.verification.as_dict() if saved.verification else None,
    )


async def _get_user_recipient(db: AsyncSession, recipient_id: int, user: User) -> Recipient:
    result = await db.execute(
        select(Recipient).where(Recipient.id == recipient_id, Recipient.user_id == user.id)
    )
    recipient = result.scalar_one_or_none()
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")
    return recipient


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[RecipientResponse])
async def list_recipients(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Recipient).where(Recipient.user_id == user.id).order_by(Recipient.last_name, Recipient.first_name)
    )
    recipients = result.scalars().all()
    return [_recipient_response(r, await get_occasions(db, r.id)) for r in recipients]


@router.get("/card-allocation", response_model=CardAllocationResponse)
async def get_card_allocation(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Scheduled occasions versus what the plan and purchased credits cover."""
    result = await db.execute(
        select(func.count(Occasion.id)).join(Recipient, Occasion.recipient_id == Recipient.id).where(
            Recipient.user_id == user.id
        )
    )
    occasion_count = result.scalar_one()
    team = await db.get(Team, user.team_id) if user.team_id else None
    allocation = calculate_card_allocation(occasion_count, team)
    return CardAllocationResponse(**allocation._asdict(), shortfall_cost=card_cost(allocation.shortfall))


@router.post("/", response_model=RecipientSaveResponse, status_code=201)
async def add_recipient(
    body: RecipientIn,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
    verifier: AddressVerifier = Depends(get_address_verifier),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        saved = await create_recipient(
            db, user, body.to_input(), clock=clock, verifier=verifier, notifier=notifier
        )
    except ValueError as exc:
        await db.rollback()
        raise HTTPException(status_code=422, detail=str(exc))
    return await _save_response(db, saved)


@router.put("/{recipient_id}", response_model=RecipientSaveResponse)
async def edit_recipient(
    recipient_id: int,
    body: RecipientIn,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
    verifier: AddressVerifier = Depends(get_address_verifier),
    notifier: Notifier = Depends(get_notifier),
):
    recipient = await _get_user_recipient(db, recipient_id, user)
    try:
        saved = await update_recipient(
            db, user, recipient, body.to_input(), clock=clock, verifier=verifier, notifier=notifier
        )
    except ValueError as exc:
        await db.rollback()
        raise HTTPException(status_code=422, detail=str(exc))
    return await _save_response(db, saved)


@router.delete("/{recipient_id}", status_code=204)
async def remove_recipient(
    recipient_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipient = await _get_user_recipient(db, recipient_id, user)
    await delete_recipient(db, recipient)
    return Response(status_code=204)
