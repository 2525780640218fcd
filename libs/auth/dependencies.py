from datetime import timedelta
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import Principal, Role
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import ForbiddenError, UnauthorizedError

bearer = HTTPBearer(auto_error=False)


def resolve_principal(token: str) -> Principal:
    """
    Decode an Identity provider token into a Principal.

    Raises UnauthorizedError for expired, tampered or malformed tokens.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedError("Session expired! Please log in again.")
    except JWTError:
        raise UnauthorizedError("Invalid access token.")

    try:
        return Principal.model_validate(payload)
    except ValidationError:
        raise UnauthorizedError("Invalid access token.")


def issue_token(principal_id: str, role: Role, expires_in: timedelta = timedelta(days=7)) -> str:
    """Sign a token the way the Identity provider does (used by seeds and tests)."""
    settings = get_settings()
    claims = {
        "id": principal_id,
        "role": role.value,
        "exp": utc_now() + expires_in,
    }
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


async def get_current_principal(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
) -> Principal:
    """
    Resolve the caller from the auth cookie, falling back to a bearer header.
    """
    settings = get_settings()
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise UnauthorizedError()

    principal = resolve_principal(token)
    # Exposed for the rate limiter key function
    request.state.principal = principal
    return principal


def require_roles(*roles: Role) -> Callable:
    """
    Build a dependency that only admits principals holding one of ``roles``.
    """
    allowed = set(roles)

    async def dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if principal.role not in allowed:
            raise ForbiddenError()
        return principal

    return dependency


require_buyer = require_roles(Role.BUYER)
require_seller = require_roles(Role.SELLER)
require_admin = require_roles(Role.ADMIN)
require_seller_or_admin = require_roles(Role.SELLER, Role.ADMIN)
require_any_role = require_roles(Role.BUYER, Role.SELLER, Role.ADMIN)
