"""
Address Verification Gateway

Normalizes postal-validation lookups into one of four verdicts:
  - VALID:         deliverable as entered
  - CORRECTABLE:   deliverable once standardized (suggested_address set)
  - UNDELIVERABLE: no deliverable match
  - ERROR:         the service could not be reached or refused us

verify() never raises. Callers decide what an ERROR verdict means; the
order job proceeds without verification so an outage never blocks cards.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger()


class Verdict(str, Enum):
    VALID = "VALID"
    CORRECTABLE = "CORRECTABLE"
    UNDELIVERABLE = "UNDELIVERABLE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    state: str
    zip: str
    apartment: str | None = None

    @classmethod
    def from_record(cls, record) -> Address:
        """Address of any row carrying street/apartment/city/state/zip columns."""
        return cls(
            street=record.street,
            apartment=record.apartment,
            city=record.city,
            state=record.state,
            zip=record.zip,
        )

    def as_dict(self) -> dict:
        return {
            "street": self.street,
            "apartment": self.apartment,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
        }

    def format(self) -> str:
        lines = [self.street, self.apartment, f"{self.city}, {self.state} {self.zip}"]
        return "\n".join(line for line in lines if line)


@dataclass(frozen=True)
class VerificationResult:
    verdict: Verdict
    original_address: Address
    suggested_address: Address | None = None
    message: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.verdict in (Verdict.VALID, Verdict.ERROR)

    def as_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "is_valid": self.is_valid,
            "original_address": self.original_address.as_dict(),
            "suggested_address": self.suggested_address.as_dict() if self.suggested_address else None,
            "message": self.message,
        }


def address_status_for(result: VerificationResult) -> tuple[str, str | None]:
    """Map a verdict to the recipient's (address_status, address_notes)."""
    if result.verdict == Verdict.VALID:
        return "verified", None
    if result.verdict == Verdict.CORRECTABLE:
        return "corrected", "Address was standardized by USPS"
    if result.verdict == Verdict.UNDELIVERABLE:
        return "invalid", result.message or "Address could not be verified by USPS"
    return "error", result.message or "Unable to verify address - will retry before shipping"


# ── Token cache ──────────────────────────────────────────────────────────


class TokenCache:
    """
    Bearer token with expiry, owned by one verifier instance.

    A token is treated as expired ``refresh_margin`` seconds early so a
    request never goes out with a token that lapses in flight.
    """

    def __init__(self, refresh_margin: float = 60.0, now: Callable[[], float] = time.monotonic):
        self.refresh_margin = refresh_margin
        self._now = now
        self._token: str | None = None
        self._expires_at = 0.0

    def get(self) -> str | None:
        if self._token and self._now() < self._expires_at - self.refresh_margin:
            return self._token
        return None

    def store(self, token: str, expires_in: float) -> None:
        self._token = token
        self._expires_at = self._now() + expires_in

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0


# ── Verifiers ────────────────────────────────────────────────────────────


class AddressVerifier(ABC):
    """Base class for postal address verifiers."""

    @abstractmethod
    async def verify(self, address: Address) -> VerificationResult:
        """Return a verdict for ``address``. Must not raise."""
        ...


class StubAddressVerifier(AddressVerifier):
    """
    Offline verifier for local development and tests.

    ZIP 99999 is undeliverable; street, city or state not already in USPS
    uppercase form is correctable to the uppercase form; anything else is valid.
    """

    UNDELIVERABLE_ZIP = "99999"

    async def verify(self, address: Address) -> VerificationResult:
        if address.zip.strip() == self.UNDELIVERABLE_ZIP:
            return VerificationResult(
                verdict=Verdict.UNDELIVERABLE,
                original_address=address,
                message="Address cannot be verified as deliverable.",
            )

        standardized = replace(
            address,
            street=address.street.strip().upper(),
            city=address.city.strip().upper(),
            state=address.state.strip().upper(),
            apartment=address.apartment.strip().upper() if address.apartment else address.apartment,
        )
        if standardized != address:
            return VerificationResult(
                verdict=Verdict.CORRECTABLE,
                original_address=address,
                suggested_address=standardized,
                message="We found a standardized version of your address. Please review.",
            )
        return VerificationResult(verdict=Verdict.VALID, original_address=address)


class USPSAddressVerifier(AddressVerifier):
    """USPS Addresses v3 lookup behind an OAuth client-credentials token."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        base_url: str = "https://apis.usps.com",
        token_cache: TokenCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.base_url = base_url.rstrip("/")
        self.token_cache = token_cache or TokenCache()
        self.http_client = http_client
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _fetch_token(self) -> str:
        response = await self._request(
            "POST",
            f"{self.base_url}/oauth2/v3/token",
            json={
                "client_id": self.consumer_key,
                "client_secret": self.consumer_secret,
                "grant_type": "client_credentials",
            },
        )
        response.raise_for_status()
        payload = response.json()
        token = payload["access_token"]
        self.token_cache.store(token, float(payload.get("expires_in") or 3600))
        return token

    async def _access_token(self) -> str:
        return self.token_cache.get() or await self._fetch_token()

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _lookup(self, address: Address, token: str) -> httpx.Response:
        params = {
            "streetAddress": address.street,
            "city": address.city,
            "state": address.state,
            "ZIPCode": address.zip[:5],
        }
        if address.apartment:
            params["secondaryAddress"] = address.apartment
        return await self._request(
            "GET",
            f"{self.base_url}/addresses/v3/address",
            params=params,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )

    async def verify(self, address: Address) -> VerificationResult:
        if not self.is_configured:
            logger.warning("address.verifier_not_configured", provider="usps")
            return VerificationResult(
                verdict=Verdict.VALID,
                original_address=address,
                message="Address validation unavailable",
            )

        try:
            token = await self._access_token()
            response = await self._lookup(address, token)
            if response.status_code == 401:
                self.token_cache.clear()
                return _error(address, "USPS rejected the access token")
            if response.status_code in (400, 404):
                return VerificationResult(
                    verdict=Verdict.UNDELIVERABLE,
                    original_address=address,
                    message="Address not found. Please verify and try again.",
                )
            response.raise_for_status()
            return _interpret_usps_payload(address, response.json())
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning("address.verification_failed", provider="usps", error=str(exc))
            return _error(address)


def _error(address: Address, detail: str | None = None) -> VerificationResult:
    message = "Address validation service unavailable. Proceeding without validation."
    if detail:
        message = f"{message} ({detail})"
    return VerificationResult(verdict=Verdict.ERROR, original_address=address, message=message)


def _interpret_usps_payload(address: Address, payload: dict) -> VerificationResult:
    """Turn a USPS v3 address response into a verdict."""
    dpv = (payload.get("additionalInfo") or {}).get("DPVConfirmation")
    if dpv == "N":
        return VerificationResult(
            verdict=Verdict.UNDELIVERABLE,
            original_address=address,
            message="Address cannot be verified as deliverable.",
        )

    found = payload["address"]
    standardized = Address(
        street=found.get("streetAddress") or address.street,
        apartment=found.get("secondaryAddress") or address.apartment,
        city=found.get("city") or address.city,
        state=found.get("state") or address.state,
        zip=found.get("ZIPCode") or address.zip[:5],
    )

    unchanged = (
        standardized.street == address.street
        and standardized.city == address.city
        and standardized.state == address.state
        and standardized.zip == address.zip[:5]
        and (standardized.apartment or None) == (address.apartment or None)
    )
    if unchanged:
        return VerificationResult(verdict=Verdict.VALID, original_address=address)

    return VerificationResult(
        verdict=Verdict.CORRECTABLE,
        original_address=address,
        suggested_address=standardized,
        message="We found a standardized version of your address. Please review.",
    )


def build_address_verifier(settings) -> AddressVerifier:
    """Verifier selected by the ``address_verifier`` setting."""
    if settings.address_verifier == "stub":
        return StubAddressVerifier()
    return USPSAddressVerifier(
        consumer_key=settings.usps_consumer_key,
        consumer_secret=settings.usps_consumer_secret,
        base_url=settings.usps_base_url,
        token_cache=TokenCache(refresh_margin=settings.usps_token_refresh_margin_seconds),
        timeout=settings.usps_timeout_seconds,
    )
