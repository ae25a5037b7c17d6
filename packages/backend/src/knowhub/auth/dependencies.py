"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request. The WebSocket
endpoint reuses identity_from_token() for its ?token= parameter.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Header

from knowhub.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """The authenticated user and the team their session belongs to."""

    def __init__(self, user_id: str, team_id: Optional[str] = None):
        self.user_id = user_id
        self.team_id = team_id

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id!r}, team_id={self.team_id!r})"


def identity_from_token(token: str) -> CurrentIdentity:
    """Decode a JWT into an identity. Raises TokenError."""
    payload = verify_token(token)
    if not payload.get("sub"):
        raise TokenError("Token has no subject")
    return CurrentIdentity(user_id=payload["sub"], team_id=payload.get("team_id"))


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth)."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
        try:
            return identity_from_token(token)
        except TokenError as e:
            raise HTTPException(
                status_code=401,
                detail=str(e),
                headers={"WWW-Authenticate": "Bearer"},
            )
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
