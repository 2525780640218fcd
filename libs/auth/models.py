import enum
import uuid

from pydantic import BaseModel, ConfigDict

from libs.common.errors import UnauthorizedError


class Role(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Principal(BaseModel):
    """
    The authenticated caller, resolved from an Identity provider token.

    Tokens carry ``{"id": ..., "role": ...}`` claims; anything else is ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def party_id(self) -> uuid.UUID:
        """The buyer or seller account id; raises UnauthorizedError if malformed."""
        try:
            return uuid.UUID(self.id)
        except ValueError:
            raise UnauthorizedError("Invalid access token.")
