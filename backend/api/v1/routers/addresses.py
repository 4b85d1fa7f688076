"""Address validation proxy for the recipient form."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_address_verifier, get_current_user
from db.models import User
from integrations.address_verification import Address, AddressVerifier

router = APIRouter(prefix="/api/v1/addresses", tags=["addresses"])


class AddressIn(BaseModel):
    street: str = Field(..., min_length=1)
    apartment: str | None = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=50)
    zip: str = Field(..., min_length=5, max_length=20)


@router.post("/validate")
async def validate_address(
    body: AddressIn,
    verifier: AddressVerifier = Depends(get_address_verifier),
    user: User = Depends(get_current_user),
):
    """Return the verifier's verdict; never fails on an upstream outage."""
    result = await verifier.verify(Address(**body.model_dump()))
    return result.as_dict()
