"""Unit tests for principal resolution from Identity provider tokens."""

import uuid
from datetime import timedelta

import pytest
from jose import jwt
from libs.auth.dependencies import issue_token, resolve_principal
from libs.auth.models import Principal, Role
from libs.common.config import get_settings
from libs.common.errors import UnauthorizedError

settings = get_settings()


@pytest.mark.unit
def test_token_resolves_to_principal():
    principal = resolve_principal(issue_token("abc", Role.SELLER))

    assert principal.id == "abc"
    assert principal.role == Role.SELLER
    assert principal.is_admin is False


@pytest.mark.unit
def test_expired_token_rejected():
    token = issue_token("abc", Role.BUYER, expires_in=timedelta(seconds=-1))

    with pytest.raises(UnauthorizedError, match="expired"):
        resolve_principal(token)


@pytest.mark.unit
def test_token_signed_with_other_secret_rejected():
    token = jwt.encode({"id": "abc", "role": "admin"}, "not-the-secret", algorithm="HS256")

    with pytest.raises(UnauthorizedError):
        resolve_principal(token)


@pytest.mark.unit
def test_token_with_unknown_role_rejected():
    token = jwt.encode(
        {"id": "abc", "role": "superuser"},
        settings.AUTH_JWT_SECRET,
        algorithm=settings.AUTH_JWT_ALGORITHM,
    )

    with pytest.raises(UnauthorizedError):
        resolve_principal(token)


@pytest.mark.unit
def test_party_id_is_the_account_uuid():
    account_id = uuid.uuid4()
    principal = resolve_principal(issue_token(str(account_id), Role.BUYER))

    assert principal.party_id == account_id


@pytest.mark.unit
def test_party_id_rejects_non_uuid_subject():
    principal = Principal(id="abc", role=Role.SELLER)

    with pytest.raises(UnauthorizedError):
        principal.party_id
