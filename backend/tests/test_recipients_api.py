"""Tests for the recipients and address validation endpoints."""

from datetime import date

import pytest

PAYLOAD = {
    "first_name": "Jamie",
    "last_name": "Rivera",
    "relationship": "Family",
    "street": "123 MAIN ST",
    "city": "SPRINGFIELD",
    "state": "IL",
    "zip": "62701",
    "occasions": [
        {"occasion_type": "Birthday", "occasion_date": "1990-08-02"},
        {"occasion_type": "Just Because"},
    ],
}


@pytest.mark.asyncio
class TestRecipientsAPI:
    async def test_create_hides_surprise_date(self, client):
        resp = await client.post("/api/v1/recipients/", json=PAYLOAD)

        assert resp.status_code == 201
        body = resp.json()
        occasions = {o["occasion_type"]: o for o in body["recipient"]["occasions"]}
        assert occasions["Birthday"]["occasion_date"] == "1990-08-02"
        assert occasions["Just Because"]["occasion_date"] is None
        assert occasions["Just Because"]["card_variation"] == "thinking_of_you"
        assert occasions["Just Because"]["label"] == "Thinking of You"
        assert body["warnings"] == []
        assert body["verification"] is None

    async def test_create_reports_delivery_warning(self, client):
        payload = {**PAYLOAD, "occasions": [{"occasion_type": "Birthday", "occasion_date": "1990-03-08"}]}

        resp = await client.post("/api/v1/recipients/", json=payload)

        assert resp.status_code == 201
        warnings = resp.json()["warnings"]
        assert warnings[0]["days_until"] == 7
        assert warnings[0]["fulfillment_year"] == 2027
        # Seven days out triggers immediate verification
        assert resp.json()["verification"]["verdict"] == "VALID"

    async def test_missing_custom_date_is_422(self, client):
        payload = {**PAYLOAD, "occasions": [{"occasion_type": "Anniversary"}]}

        resp = await client.post("/api/v1/recipients/", json=payload)

        assert resp.status_code == 422

    async def test_list_update_delete(self, client):
        created = (await client.post("/api/v1/recipients/", json=PAYLOAD)).json()["recipient"]

        listed = await client.get("/api/v1/recipients/")
        assert [r["id"] for r in listed.json()] == [created["id"]]

        update = {**PAYLOAD, "city": "CHAMPAIGN", "occasions": [{"occasion_type": "Christmas"}]}
        updated = await client.put(f"/api/v1/recipients/{created['id']}", json=update)
        assert updated.status_code == 200
        recipient = updated.json()["recipient"]
        assert recipient["city"] == "CHAMPAIGN"
        assert recipient["address_status"] == "pending"
        assert [o["occasion_type"] for o in recipient["occasions"]] == ["Christmas"]
        assert recipient["occasions"][0]["occasion_date"] == "2026-12-25"

        deleted = await client.delete(f"/api/v1/recipients/{created['id']}")
        assert deleted.status_code == 204
        assert (await client.get("/api/v1/recipients/")).json() == []

    async def test_other_users_recipient_is_not_found(self, client, make_account, make_recipient):
        other = await make_account()
        recipient = await make_recipient(other)

        resp = await client.put(f"/api/v1/recipients/{recipient.id}", json=PAYLOAD)

        assert resp.status_code == 404

    async def test_card_allocation(self, client, current_user, make_recipient):
        occasions = [{"occasion_type": "Birthday", "occasion_date": date(1990, m, 1)} for m in range(4, 11)]
        await make_recipient(current_user, occasions=occasions)

        resp = await client.get("/api/v1/recipients/card-allocation")

        assert resp.status_code == 200
        body = resp.json()
        assert body["scheduled_cards"] == 7
        assert body["subscription_cards"] == 5
        assert body["shortfall"] == 2
        assert body["is_over_limit"] is True
        assert body["shortfall_cost"] == 18


@pytest.mark.asyncio
class TestAddressValidationAPI:
    async def test_returns_correction(self, client):
        resp = await client.post(
            "/api/v1/addresses/validate",
            json={"street": "42 elm st", "city": "Portland", "state": "OR", "zip": "97201"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["verdict"] == "CORRECTABLE"
        assert body["suggested_address"]["street"] == "42 ELM ST"

    async def test_undeliverable(self, client):
        resp = await client.post(
            "/api/v1/addresses/validate",
            json={"street": "1 NOWHERE RD", "city": "NOWHERE", "state": "NV", "zip": "99999"},
        )

        assert resp.json()["verdict"] == "UNDELIVERABLE"
        assert resp.json()["is_valid"] is False


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
