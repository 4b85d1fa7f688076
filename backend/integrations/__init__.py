"""
Integration adapters package.

External collaborators behind uniform interfaces:
  - Postal address verification (USPS Addresses v3, offline stub)

Usage:
    from integrations import Address, build_address_verifier

    verifier = build_address_verifier(get_settings())
    result = await verifier.verify(Address(street="...", city="...", state="VT", zip="05401"))
"""

from integrations.address_verification import (
    Address,
    AddressVerifier,
    StubAddressVerifier,
    TokenCache,
    USPSAddressVerifier,
    VerificationResult,
    Verdict,
    address_status_for,
    build_address_verifier,
)

__all__ = [
    "Address",
    "AddressVerifier",
    "StubAddressVerifier",
    "TokenCache",
    "USPSAddressVerifier",
    "VerificationResult",
    "Verdict",
    "address_status_for",
    "build_address_verifier",
]
