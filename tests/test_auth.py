from datetime import timedelta

import pytest
from jose import jwt

from placeshare.config import settings
from placeshare.errors import AuthenticationError
from placeshare.security.auth import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_token_carries_user_id():
    token = create_access_token("64b7f0c2a1b2c3d4e5f60718", "ada@example.com")
    assert decode_access_token(token) == "64b7f0c2a1b2c3d4e5f60718"


def test_expired_token_is_rejected():
    token = create_access_token("64b7f0c2a1b2c3d4e5f60718", "ada@example.com", timedelta(minutes=-1))
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_token_signed_with_other_secret_is_rejected():
    token = jwt.encode({"sub": "64b7f0c2a1b2c3d4e5f60718"}, "someone-elses-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "ada@example.com"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_password_hashing():
    hashed = hash_password("secret-pw")
    assert hashed != "secret-pw"
    assert verify_password("secret-pw", hashed)
    assert not verify_password("other-pw", hashed)
    assert not verify_password("secret-pw", "")


@pytest.mark.asyncio
async def test_wrong_scheme_is_rejected(test_client):
    token = create_access_token("64b7f0c2a1b2c3d4e5f60718", "ada@example.com")
    response = await test_client.delete(
        "/api/places/64b7f0c2a1b2c3d4e5f60718", headers={"Authorization": f"Basic {token}"}
    )
    assert response.status_code == 401
