from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from api.deps import get_db
from api.main import app
from core import config as config_module
from core.security import decode_access_token, verify_cron_secret

TEST_SECRET = "unit-test-jwt-secret"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


# ── Startup guardrails ─────────────────────────────────────────────────


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("JWT_SECRET", "real-secret")
    monkeypatch.setenv("CRON_SECRET", "real-cron-secret")

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_non_local_default_jwt_secret_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    monkeypatch.setenv("CRON_SECRET", "real-cron-secret")

    with pytest.raises(ValueError, match="default JWT secret"):
        config_module.get_settings()


def test_non_local_missing_cron_secret_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", "real-secret")
    monkeypatch.setenv("CRON_SECRET", "")

    with pytest.raises(ValueError, match="CRON_SECRET"):
        config_module.get_settings()


def test_local_allows_dev_defaults(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    monkeypatch.setenv("CRON_SECRET", "")

    settings = config_module.get_settings()
    assert settings.app_env == "local"
    assert settings.verification_proceed_on_error is True


# ── Cron secret ────────────────────────────────────────────────────────


def test_cron_secret_requires_exact_bearer(monkeypatch):
    monkeypatch.setattr("core.security.get_settings", lambda: SimpleNamespace(cron_secret="abc123"))

    assert verify_cron_secret("Bearer abc123")
    assert not verify_cron_secret("abc123")
    assert not verify_cron_secret("Bearer abc1234")
    assert not verify_cron_secret(None)


# ── Access tokens ──────────────────────────────────────────────────────


def _token(claims: dict, secret: str = TEST_SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_decode_access_token(monkeypatch):
    monkeypatch.setattr(
        "core.security.get_settings",
        lambda: SimpleNamespace(jwt_secret=TEST_SECRET, jwt_algorithm="HS256"),
    )

    assert decode_access_token(_token({"sub": "user-1", "email": "a@example.com"}))["email"] == "a@example.com"
    assert decode_access_token(_token({"sub": "user-1"}, secret="someone-else")) is None
    assert decode_access_token("not-a-jwt") is None


@pytest.mark.asyncio
async def test_bearer_token_resolves_account(monkeypatch, test_db, make_account):
    monkeypatch.setattr(
        "core.security.get_settings",
        lambda: SimpleNamespace(jwt_secret=TEST_SECRET, jwt_algorithm="HS256"),
    )
    user = await make_account()

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            ok = await ac.get(
                "/api/v1/orders/", headers={"Authorization": f"Bearer {_token({'email': user.email})}"}
            )
            unknown = await ac.get(
                "/api/v1/orders/", headers={"Authorization": f"Bearer {_token({'email': 'ghost@example.com'})}"}
            )
            invalid = await ac.get("/api/v1/orders/", headers={"Authorization": "Bearer garbage"})
    finally:
        app.dependency_overrides.clear()

    assert ok.status_code == 200
    assert ok.json() == []
    assert unknown.status_code == 403
    assert invalid.status_code == 401
