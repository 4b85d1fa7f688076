"""Tests for plan quotas and card allocation."""

from types import SimpleNamespace

from occasions.plans import (
    calculate_card_allocation,
    card_cost,
    card_limit,
    has_active_subscription,
)


def _team(plan="Essentials", status="active", credits=0):
    return SimpleNamespace(plan_name=plan, subscription_status=status, card_credits=credits)


class TestCardLimit:
    def test_plan_limits(self):
        assert card_limit("Essentials") == 5
        assert card_limit("Stress Free") == 12
        assert card_limit("Concierge") == 25

    def test_unknown_or_missing_plan_gets_entry_tier(self):
        assert card_limit("Legacy Gold") == 5
        assert card_limit(None) == 5


class TestSubscriptionState:
    def test_only_active_counts(self):
        assert has_active_subscription(_team(status="active"))
        assert not has_active_subscription(_team(status="past_due"))
        assert not has_active_subscription(_team(status="canceled"))
        assert not has_active_subscription(None)


class TestCardAllocation:
    def test_within_plan(self):
        allocation = calculate_card_allocation(4, _team())
        assert allocation.total_available == 5
        assert allocation.shortfall == 0
        assert not allocation.is_over_limit

    def test_credits_extend_plan(self):
        allocation = calculate_card_allocation(14, _team("Stress Free", credits=3))
        assert allocation.subscription_cards == 12
        assert allocation.extra_cards == 3
        assert allocation.total_available == 15
        assert not allocation.is_over_limit

    def test_inactive_team_only_has_credits(self):
        allocation = calculate_card_allocation(3, _team("Concierge", status="unpaid", credits=1))
        assert allocation.subscription_cards == 0
        assert allocation.shortfall == 2
        assert allocation.is_over_limit
        assert card_cost(allocation.shortfall) == 18

    def test_no_team(self):
        allocation = calculate_card_allocation(2, None)
        assert allocation.total_available == 0
        assert allocation.shortfall == 2
