"""Tagged party references resolved through an explicit lookup table."""

import uuid
from dataclasses import dataclass
from typing import Optional, Union

from services.marketplace_service.models import Buyer, PartyKind, Seller
from sqlalchemy.ext.asyncio import AsyncSession

_PARTY_MODELS: dict[PartyKind, type[Union[Buyer, Seller]]] = {
    PartyKind.BUYER: Buyer,
    PartyKind.SELLER: Seller,
}


@dataclass(frozen=True)
class PartyRef:
    kind: PartyKind
    id: uuid.UUID

    @classmethod
    def buyer(cls, party_id: uuid.UUID) -> "PartyRef":
        return cls(PartyKind.BUYER, party_id)

    @classmethod
    def seller(cls, party_id: uuid.UUID) -> "PartyRef":
        return cls(PartyKind.SELLER, party_id)


async def resolve_party(
    db: AsyncSession, ref: PartyRef
) -> Optional[Union[Buyer, Seller]]:
    """Load the account a reference points at, or None if it no longer exists."""
    model = _PARTY_MODELS[ref.kind]
    return await db.get(model, ref.id)
