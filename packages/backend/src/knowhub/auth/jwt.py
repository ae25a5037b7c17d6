"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
The API issues access tokens elsewhere; this process only needs to
verify them. The token carries the user id (`sub`) and the user's
current team (`team_id`), which is the session state the realtime
join handshake is checked against.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from knowhub.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    team_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    if team_id:
        payload["team_id"] = team_id
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if payload.get("type") != "access":
        raise TokenError("Not an access token")
    return payload
