"""
Caller identity extraction for the protocol surfaces (HTTP gateway and MCP server).
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from banb.errors import AuthenticationError


def verify_token(token: str, secret: str) -> Optional[dict]:
    """
    Verify JWT token
    """
    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
        return payload
    except jwt.InvalidTokenError:
        return None


def create_token(subject: str, secret: str, expires_minutes: int = 5) -> str:
    """Short-lived HS256 token whose `sub` is the caller's profile id."""
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_caller_id(
    claimed_id: Any,
    *,
    authorization: Optional[str] = None,
    jwt_secret: Optional[str] = None,
) -> str:
    """
    Return the caller's profile id or raise AuthenticationError.

    Without a JWT secret the claimed profile id is used as-is (it is still
    validated against the profile store by the caller). With a secret, a valid
    bearer token is mandatory and its `sub` claim is the identity.
    """
    claimed = claimed_id.strip() if isinstance(claimed_id, str) else None

    if jwt_secret:
        token = bearer_token(authorization)
        if not token:
            raise AuthenticationError("Authentication required")
        payload = verify_token(token, jwt_secret)
        subject = (payload or {}).get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Invalid authentication token")
        if claimed and claimed != subject:
            raise AuthenticationError("Token does not match profile")
        return subject

    if not claimed:
        raise AuthenticationError("Authentication required")
    return claimed
