"""
Order fulfillment workflow.

  pending ──print──▶ printed ──mail──▶ mailed
     │                  │
     └──────cancel──────┘──▶ cancelled

Orders are snapshots; only status and the print/mail timestamps move.
"""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Order

logger = structlog.get_logger()

ALLOWED_TRANSITIONS = {
    "pending": {"printed", "cancelled"},
    "printed": {"mailed", "cancelled"},
    "mailed": set(),
    "cancelled": set(),
}


class InvalidOrderTransition(ValueError):
    """Raised when an order cannot move to the requested status."""

    def __init__(self, order_id: int, current: str, requested: str):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(f"Order {order_id} cannot move from '{current}' to '{requested}'")


def transition_order(order: Order, new_status: str, now: datetime) -> Order:
    if new_status not in ALLOWED_TRANSITIONS.get(order.status, set()):
        raise InvalidOrderTransition(order.id, order.status, new_status)

    if new_status == "printed":
        order.print_date = now
    elif new_status == "mailed":
        order.mail_date = now

    logger.info("order.status_changed", order_id=order.id, old=order.status, new=new_status)
    order.status = new_status
    order.updated_at = now
    return order


async def mark_all_printed(db: AsyncSession, now: datetime, user_id: int | None = None) -> list[int]:
    """Move every pending order to printed; returns the ids touched."""
    query = select(Order).where(Order.status == "pending")
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    result = await db.execute(query.order_by(Order.occasion_date, Order.id))
    orders = result.scalars().all()
    for order in orders:
        transition_order(order, "printed", now)
    await db.commit()
    return [order.id for order in orders]
