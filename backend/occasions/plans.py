"""
Subscription plans — annual card quotas and billing states.

The scheduling core only reads plan data; billing itself lives with the
payments platform.
"""

from typing import NamedTuple

PLAN_CARD_LIMITS = {
    "Essentials": 5,
    "Stress Free": 12,
    "Concierge": 25,
}
DEFAULT_PLAN = "Essentials"

ACTIVE_SUBSCRIPTION_STATUSES = ("active",)

CARD_PRICE_DOLLARS = 9


class CardAllocation(NamedTuple):
    scheduled_cards: int
    subscription_cards: int
    extra_cards: int
    total_available: int
    shortfall: int
    is_over_limit: bool


def card_limit(plan_name: str | None) -> int:
    """Annual subscription card quota; unknown or missing plans get the entry tier."""
    return PLAN_CARD_LIMITS.get(plan_name or DEFAULT_PLAN, PLAN_CARD_LIMITS[DEFAULT_PLAN])


def has_active_subscription(team) -> bool:
    return team is not None and team.subscription_status in ACTIVE_SUBSCRIPTION_STATUSES


def calculate_card_allocation(occasion_count: int, team) -> CardAllocation:
    """How many scheduled cards the team's plan and purchased credits cover."""
    if team is None:
        return CardAllocation(
            scheduled_cards=occasion_count,
            subscription_cards=0,
            extra_cards=0,
            total_available=0,
            shortfall=occasion_count,
            is_over_limit=occasion_count > 0,
        )

    subscription_cards = card_limit(team.plan_name) if has_active_subscription(team) else 0
    extra_cards = team.card_credits or 0
    total_available = subscription_cards + extra_cards
    return CardAllocation(
        scheduled_cards=occasion_count,
        subscription_cards=subscription_cards,
        extra_cards=extra_cards,
        total_available=total_available,
        shortfall=max(0, occasion_count - total_available),
        is_over_limit=occasion_count > total_available,
    )


def card_cost(card_count: int) -> int:
    return card_count * CARD_PRICE_DOLLARS
