"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. The admin
panel gets a short-lived access token; the server only checks signature
and expiry, there is no user table behind it.

Both functions default to the process-wide settings. Code running inside
an app passes that app's secret and algorithm explicitly, so an app built
with its own Settings only trusts tokens signed with its own key.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from vitrine.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    subject: str,
    expires_minutes: Optional[int] = None,
    *,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": "access",
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    return jwt.encode(
        payload,
        secret or settings.jwt_secret,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_token(
    token: str,
    *,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> dict:
    """Verify and decode an access token. Raises TokenError on failure."""
    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[algorithm or settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if payload.get("type") != "access":
        raise TokenError("Not an access token")
    return payload
