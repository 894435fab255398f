"""Unit tests for Supabase JWT validation."""

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt
from libs.auth.dependencies import get_current_user, require_admin
from tests.conftest import make_admin_user, make_user


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_valid_token_yields_user():
    token = jwt.encode(
        {
            "sub": "user-123",
            "email": "Busker@Example.com",
            "role": "authenticated",
            "aud": "authenticated",
            "user_metadata": {"name": "Busker"},
        },
        "test-jwt-secret",
        algorithm="HS256",
    )

    user = await get_current_user(_bearer(token))

    assert user.user_id == "user-123"
    assert user.normalized_email == "busker@example.com"
    assert user.display_name == "Busker"
    assert user.is_admin is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_signed_with_other_secret_is_rejected():
    token = jwt.encode({"sub": "user-123"}, "wrong-secret", algorithm="HS256")

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_bearer(token))
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "a@example.com"}, "test-jwt-secret", algorithm="HS256")

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_bearer(token))
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.unit
async def test_require_admin():
    admin = make_admin_user()
    assert await require_admin(admin) is admin

    with pytest.raises(HTTPException) as exc_info:
        await require_admin(make_user())
    assert exc_info.value.status_code == 403
