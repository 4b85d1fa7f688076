"""
Test Configuration — Fixtures for async DB, test client, clock and collaborators.

Each test gets a fresh in-memory SQLite database built from the ORM
metadata, a frozen clock, the offline address verifier and a notifier
that records instead of sending email.
"""

from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_address_verifier, get_app_clock, get_current_user, get_db, get_notifier
from api.main import app
from core.clock import FixedClock
from db.session import Base
from integrations.address_verification import StubAddressVerifier
from notifications.email import Notifier

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Order job target is TODAY + 15 days = 2026-03-16
TODAY = date(2026, 3, 1)


class RecordingNotifier(Notifier):
    """Notifier that keeps every call for assertions."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def order_created(self, user_email, user_name, order):
        self.calls.append(("order_created", {"to": user_email, "order_id": order.id}))
        return True

    async def missing_return_address(self, user_email, user_name, recipient_name, occasion_type, occasion_date):
        self.calls.append(("missing_return_address", {"to": user_email, "recipient": recipient_name}))
        return True

    async def urgent_address_issue(
        self, user_email, user_name, recipient_name, occasion_type, occasion_date, days_until, address
    ):
        self.calls.append(
            ("urgent_address_issue", {"to": user_email, "recipient": recipient_name, "days_until": days_until})
        )
        return True

    async def address_corrected(self, user_email, user_name, recipient_name, original_address, corrected_address):
        self.calls.append(("address_corrected", {"to": user_email, "corrected": corrected_address}))
        return True


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    async with AsyncSession(test_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def verifier():
    return StubAddressVerifier()


@pytest.fixture
def make_account(test_db):
    """Factory: team + user (+ default return address)."""
    from db.models import Team, User, UserAddress

    counter = {"n": 0}

    async def _make(
        plan_name: str = "Essentials",
        subscription_status: str = "active",
        with_return_address: bool = True,
        with_team: bool = True,
    ):
        counter["n"] += 1
        team = None
        if with_team:
            team = Team(name=f"Team {counter['n']}", plan_name=plan_name, subscription_status=subscription_status)
            test_db.add(team)
            await test_db.flush()

        user = User(
            team_id=team.id if team else None,
            email=f"user{counter['n']}@example.com",
            first_name="Pat",
            last_name="Sender",
        )
        test_db.add(user)
        await test_db.flush()

        if with_return_address:
            test_db.add(
                UserAddress(
                    user_id=user.id,
                    is_default=True,
                    street="1 SENDER WAY",
                    city="BURLINGTON",
                    state="VT",
                    zip="05401",
                )
            )
        await test_db.commit()
        return user

    return _make


@pytest.fixture
def make_recipient(test_db):
    """Factory: recipient with occasions given as Occasion keyword dicts."""
    from db.models import Occasion, Recipient

    async def _make(user, occasions=(), **fields):
        values = {
            "first_name": "Jamie",
            "last_name": "Rivera",
            "relationship_type": "Friend",
            "street": "123 MAIN ST",
            "city": "SPRINGFIELD",
            "state": "IL",
            "zip": "62701",
        }
        values.update(fields)
        recipient = Recipient(user_id=user.id, **values)
        test_db.add(recipient)
        await test_db.flush()
        for occasion in occasions:
            test_db.add(Occasion(recipient_id=recipient.id, **occasion))
        await test_db.commit()
        return recipient

    return _make


@pytest.fixture
def make_order(test_db):
    """Factory: a minimal order snapshot for quota and workflow tests."""
    from db.models import Order

    async def _make(user, status="pending", card_type="subscription", created_at=None, **fields):
        values = {
            "user_id": user.id,
            "team_id": user.team_id,
            "card_type": card_type,
            "status": status,
            "fulfillment_year": 2026,
            "occasion_date": date(2026, 2, 14),
            "recipient_first_name": "Old",
            "recipient_last_name": "Friend",
            "recipient_street": "9 ELM ST",
            "recipient_city": "SALEM",
            "recipient_state": "OR",
            "recipient_zip": "97301",
            "return_name": "Pat Sender",
            "return_street": "1 SENDER WAY",
            "return_city": "BURLINGTON",
            "return_state": "VT",
            "return_zip": "05401",
            "occasion_type": "Valentine's Day",
            "created_at": created_at or datetime(2026, 2, 1, 9, 0),
        }
        values.update(fields)
        order = Order(**values)
        test_db.add(order)
        await test_db.commit()
        return order

    return _make


@pytest.fixture
async def current_user(make_account):
    return await make_account()


@pytest.fixture
async def client(test_db, current_user, clock, verifier, notifier):
    """Async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_app_clock] = lambda: clock
    app.dependency_overrides[get_address_verifier] = lambda: verifier
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
