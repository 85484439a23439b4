from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from foodshare_client.application.exceptions import Unauthorized
from foodshare_client.infrastructure.auth.token import principal_from_token


def _make_token(claims: dict) -> str:
    return jwt.encode(claims, "any-secret", algorithm="HS256")


def test_principal_from_valid_token():
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = _make_token({"sub": "user-42", "exp": exp})

    principal = principal_from_token(token)

    assert principal.user_id == "user-42"
    assert principal.token == token
    assert principal.expires_at == exp.replace(microsecond=0)
    assert principal.auth_header == {"Authorization": f"Bearer {token}"}
    assert token not in repr(principal)


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token(token):
    with pytest.raises(Unauthorized):
        principal_from_token(token)


def test_expired_token():
    token = _make_token({"sub": "user-42", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)})

    with pytest.raises(Unauthorized, match="expired"):
        principal_from_token(token)


def test_token_without_subject():
    with pytest.raises(Unauthorized):
        principal_from_token(_make_token({"role": "user"}))


def test_garbage_token():
    with pytest.raises(Unauthorized):
        principal_from_token("not-a-jwt")
