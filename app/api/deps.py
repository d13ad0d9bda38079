from __future__ import annotations

from fastapi import Header

from app.errors import AuthError
from app.services import supabase as db


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(authorization: str | None = Header(default=None)) -> str:
    """Resolve the caller's Supabase user id from the bearer token."""
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("Unauthorized")
    return await db.get_user_id(token)
