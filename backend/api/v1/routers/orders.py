"""
Orders Router — fulfillment queue for printing and mailing cards.

  1. Order job creates the order          → status='pending'
  2. Card printed and addressed           → status='printed'
  3. Card handed to USPS                  → status='mailed'
  Pending or printed orders can be cancelled.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_app_clock, get_current_user, get_db
from core.clock import Clock
from db.models import Order, User
from fulfillment.orders import InvalidOrderTransition, mark_all_printed, transition_order

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class OrderResponse(BaseModel):
    id: int
    recipient_id: int | None
    occasion_id: int | None
    card_type: str
    status: str
    fulfillment_year: int
    occasion_type: str
    occasion_date: date
    card_variation: str | None
    recipient_first_name: str
    recipient_last_name: str
    recipient_street: str
    recipient_apartment: str | None
    recipient_city: str
    recipient_state: str
    recipient_zip: str
    return_name: str
    return_street: str
    return_apartment: str | None
    return_city: str
    return_state: str
    return_zip: str
    print_date: datetime | None
    mail_date: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BulkPrintResponse(BaseModel):
    updated: int
    order_ids: list[int]


# ─── Helpers ────────────────────────────────────────────────────────────────


async def _get_user_order(db: AsyncSession, order_id: int, user: User) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id, Order.user_id == user.id))
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def _transition(db: AsyncSession, order: Order, new_status: str, clock: Clock) -> Order:
    try:
        transition_order(order, new_status, clock.now_naive())
    except InvalidOrderTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    await db.commit()
    await db.refresh(order)
    return order


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[OrderResponse])
async def list_orders(
    status: str | None = None,
    year: int | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's orders, soonest occasion first."""
    query = select(Order).where(Order.user_id == user.id)
    if status:
        query = query.where(Order.status == status)
    if year:
        query = query.where(Order.fulfillment_year == year)
    query = query.order_by(Order.occasion_date, Order.id).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/mark-all-printed", response_model=BulkPrintResponse)
async def mark_all_pending_printed(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
):
    order_ids = await mark_all_printed(db, clock.now_naive(), user_id=user.id)
    return BulkPrintResponse(updated=len(order_ids), order_ids=order_ids)


@router.post("/{order_id}/mark-printed", response_model=OrderResponse)
async def mark_printed(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
):
    order = await _get_user_order(db, order_id, user)
    return await _transition(db, order, "printed", clock)


@router.post("/{order_id}/mark-mailed", response_model=OrderResponse)
async def mark_mailed(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
):
    order = await _get_user_order(db, order_id, user)
    return await _transition(db, order, "mailed", clock)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    clock: Clock = Depends(get_app_clock),
):
    order = await _get_user_order(db, order_id, user)
    return await _transition(db, order, "cancelled", clock)
