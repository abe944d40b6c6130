"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the identity behind a write request.

Two auth mechanisms:
1. Bearer JWT token (admin panel)
2. API key in x-api-key header (scripts, scrapers), compared in constant time

Both check against the settings of the app serving the request
(request.app.state.settings), not the module-level singleton.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from vitrine.auth.jwt import TokenError, verify_token
from vitrine.config import Settings


class CurrentIdentity:
    """The authenticated caller of a write request."""

    def __init__(self, subject: str, identity_type: str = "user"):
        self.subject = subject
        self.identity_type = identity_type  # "user" or "api_key"


async def get_current_user_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    config: Settings = request.app.state.settings

    if x_api_key:
        return _authenticate_api_key(x_api_key, config)

    if authorization and authorization.startswith("Bearer "):
        return _authenticate_jwt(authorization[7:], config)

    return None


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def _authenticate_jwt(token: str, config: Settings) -> CurrentIdentity:
    try:
        payload = verify_token(
            token, secret=config.jwt_secret, algorithm=config.jwt_algorithm
        )
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentIdentity(subject=payload["sub"], identity_type="user")


def _authenticate_api_key(key: str, config: Settings) -> CurrentIdentity:
    expected = config.admin_api_key
    if not expected or not hmac.compare_digest(key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return CurrentIdentity(subject="admin", identity_type="api_key")
