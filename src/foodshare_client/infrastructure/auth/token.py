from __future__ import annotations

from datetime import datetime, timezone

import jwt

from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import Unauthorized


def principal_from_token(token: str | None) -> Principal:
    """Read the user id and expiry from a bearer token.

    The signature is checked by the backend on every call; locally only the
    claims are read so an expired or malformed token fails before any request.
    """
    if not token:
        raise Unauthorized("Sign in required")
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True, "require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthorized("Session expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthorized(f"Invalid token: {exc}") from exc

    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Token has no subject")

    expires_at = None
    if "exp" in payload:
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    return Principal(user_id=str(subject), token=token, expires_at=expires_at)
