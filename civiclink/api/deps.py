"""
civiclink/api/deps.py

Purpose: Shared request dependencies

- Resolves the caller's identity from a Firebase ID token
- Guards admin and gateway endpoints with a shared key
"""

import secrets
from typing import Optional

from fastapi import Header, Request

from civiclink.core.config import settings
from civiclink.core.exceptions import AuthenticationError, NotFoundError
from civiclink.services.identity_provider import get_identity_provider
from civiclink.utils.validation_utils import to_object_id


async def get_current_firebase_id(authorization: Optional[str] = Header(None)) -> str:
    """
    Returns the identity-provider user ID of the caller.

    Raises:
        AuthenticationError: If the bearer token is missing or invalid
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    return await get_identity_provider().verify_id_token(token)


async def require_admin(x_admin_key: Optional[str] = Header(None)):
    """
    Checks the X-Admin-Key header. Without a configured key the admin
    API is only open in development.
    """
    if not settings.ADMIN_API_KEY:
        if settings.is_development:
            return
        raise AuthenticationError("Admin API is not configured")

    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise AuthenticationError("Invalid admin key")


def client_ip(request: Request) -> Optional[str]:
    """Caller IP, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def parse_user_id(user_id: str):
    try:
        return to_object_id(user_id)
    except ValueError as e:
        raise NotFoundError() from e
