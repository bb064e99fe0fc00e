"""
Caller authentication helpers.

Users sign in with the upstream identity provider; this service never sees
passwords. The identity (user id + claims) is exchanged once at
POST /auth/session for a short-lived JWT access token.

Accepted on every protected endpoint:
  - Authorization: Bearer <jwt>   (preferred)
  - X-User-Id: <id>               (legacy; set by the trusted gateway, not secure)
"""
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import HTTPException, Header

from config import settings

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token expired.")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token.")


def issue_access_token(*, user_id: str, role: str) -> str:
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": user_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


async def get_authenticated_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """
    Best-effort authentication:
      - Prefer Authorization Bearer JWT
      - Fall back to legacy X-User-Id header (NOT secure)
    """
    token = _parse_bearer_token(authorization)
    if token:
        payload = decode_access_token(token)
        return payload.get("sub")
    return x_user_id


async def require_authenticated_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    user_id = await get_authenticated_user(authorization=authorization, x_user_id=x_user_id)
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide Authorization: Bearer <token> (preferred) or X-User-Id (legacy).",
        )
    if len(user_id) > 64 or any(ch.isspace() for ch in user_id):
        logger.warning(f"Rejected malformed user id header: {user_id[:16]!r}")
        raise HTTPException(status_code=401, detail="Invalid user identity.")
    return user_id
