from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from crm_auth.errors import ExpiredToken, InvalidToken, MalformedToken
from crm_auth.models.user import Role, User
from crm_auth.services.tokens import TokenService

from conftest import TEST_SECRET_KEY

OTHER_SECRET = "fedcba9876543210fedcba9876543210fedcba9876543210fedcba9876543210"


def _user(role="ADMIN"):
    return User(id="user-1", email="a@b.com", role=role)


def test_issue_and_verify_round_trip():
    service = TokenService(TEST_SECRET_KEY)

    claims = service.verify(service.issue(_user()))
    assert claims.user_id == "user-1"
    assert claims.role is Role.ADMIN
    assert claims.is_admin
    assert claims.expires_at - claims.issued_at == timedelta(days=7)


def test_tokens_are_unique_per_issue():
    service = TokenService(TEST_SECRET_KEY)
    assert service.issue(_user()) != service.issue(_user())


def test_expired_token_is_rejected():
    service = TokenService(TEST_SECRET_KEY, expire_days=-1)
    with pytest.raises(ExpiredToken):
        service.verify(service.issue(_user()))


def test_token_signed_with_another_secret_is_invalid():
    token = TokenService(OTHER_SECRET).issue(_user())
    with pytest.raises(InvalidToken):
        TokenService(TEST_SECRET_KEY).verify(token)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_unparseable_token_is_malformed(token):
    with pytest.raises(MalformedToken):
        TokenService(TEST_SECRET_KEY).verify(token)


def test_missing_role_claim_is_malformed():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "user-1", "type": "access", "iat": now, "exp": now + timedelta(hours=1)},
        TEST_SECRET_KEY,
        algorithm="HS256",
    )
    with pytest.raises(MalformedToken):
        TokenService(TEST_SECRET_KEY).verify(token)


def test_wrong_token_type_is_invalid():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "user-1", "role": "USER", "type": "refresh", "iat": now, "exp": now + timedelta(hours=1)},
        TEST_SECRET_KEY,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        TokenService(TEST_SECRET_KEY).verify(token)
