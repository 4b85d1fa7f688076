"""Tests for the order fulfillment endpoints and status transitions."""

from datetime import datetime

import pytest

from fulfillment.orders import InvalidOrderTransition, transition_order


@pytest.mark.asyncio
class TestOrdersAPI:
    async def test_list_only_own_orders(self, client, current_user, make_account, make_order):
        await make_order(current_user)
        other = await make_account()
        await make_order(other)

        resp = await client.get("/api/v1/orders/")

        assert resp.status_code == 200
        orders = resp.json()
        assert len(orders) == 1
        assert orders[0]["return_name"] == "Pat Sender"

    async def test_filter_by_status(self, client, current_user, make_order):
        await make_order(current_user, status="pending")
        await make_order(current_user, status="mailed")

        resp = await client.get("/api/v1/orders/", params={"status": "mailed"})

        assert [o["status"] for o in resp.json()] == ["mailed"]

    async def test_print_then_mail(self, client, current_user, make_order):
        order = await make_order(current_user)

        printed = await client.post(f"/api/v1/orders/{order.id}/mark-printed")
        assert printed.status_code == 200
        assert printed.json()["status"] == "printed"
        assert printed.json()["print_date"].startswith("2026-03-01")

        mailed = await client.post(f"/api/v1/orders/{order.id}/mark-mailed")
        assert mailed.status_code == 200
        assert mailed.json()["status"] == "mailed"
        assert mailed.json()["mail_date"] is not None

    async def test_cannot_cancel_mailed_order(self, client, current_user, make_order):
        order = await make_order(current_user, status="mailed")

        resp = await client.post(f"/api/v1/orders/{order.id}/cancel")

        assert resp.status_code == 409

    async def test_other_users_order_is_not_found(self, client, make_account, make_order):
        other = await make_account()
        order = await make_order(other)

        resp = await client.post(f"/api/v1/orders/{order.id}/mark-printed")

        assert resp.status_code == 404

    async def test_mark_all_printed(self, client, current_user, make_order):
        first = await make_order(current_user)
        second = await make_order(current_user)
        await make_order(current_user, status="cancelled")

        resp = await client.post("/api/v1/orders/mark-all-printed")

        assert resp.status_code == 200
        assert resp.json() == {"updated": 2, "order_ids": [first.id, second.id]}


class TestTransitions:
    def _order(self, status):
        from db.models import Order

        return Order(id=1, status=status)

    def test_mailing_unprinted_order_is_rejected(self):
        with pytest.raises(InvalidOrderTransition):
            transition_order(self._order("pending"), "mailed", datetime(2026, 3, 1))

    def test_cancel_from_printed(self):
        order = transition_order(self._order("printed"), "cancelled", datetime(2026, 3, 1))
        assert order.status == "cancelled"

    def test_terminal_states(self):
        for status in ("mailed", "cancelled"):
            with pytest.raises(InvalidOrderTransition):
                transition_order(self._order(status), "printed", datetime(2026, 3, 1))
