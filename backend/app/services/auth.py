"""
Authentication helpers: password hashing, access tokens, refresh tokens.

Access tokens are HS256 JWTs signed with settings.JWT_SECRET:
    {"iss": "tubely-access", "sub": "<user uuid>", "iat": ..., "exp": ...}

Refresh tokens are opaque random strings stored in the refresh_tokens
table, so they can be revoked server-side.

The FastAPI dependencies at the bottom turn the Authorization header
into a user id (or a refresh token string) and raise 401 otherwise.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt
from fastapi import Header, HTTPException, status

from app.config import settings

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "tubely-access"


class AuthError(Exception):
    """Raised when a credential is missing, malformed, or invalid."""


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Raises:
        ValueError: If the password is too long for bcrypt (72 bytes).
    """
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def check_password_hash(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def make_jwt(user_id: UUID, secret: str, expires_in: timedelta) -> str:
    """Create a signed access token for a user."""
    now = datetime.now(timezone.utc)
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def validate_jwt(token: str, secret: str) -> UUID:
    """Verify an access token and return the user id it was issued for.

    Raises:
        AuthError: Bad signature, expired, wrong issuer, or a subject
            that isn't a UUID.
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "iss", "sub"]},
        )
    except jwt.InvalidTokenError as e:
        raise AuthError(f"invalid token: {e}") from e

    try:
        return UUID(claims["sub"])
    except (ValueError, TypeError) as e:
        raise AuthError("invalid user id in token") from e


def get_bearer_token(authorization: str | None) -> str:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    if not authorization:
        raise AuthError("authorization header missing")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token:
        raise AuthError("malformed authorization header")
    return token


def make_refresh_token() -> str:
    """256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


# --- FastAPI dependencies ---

async def get_current_user_id(authorization: str = Header(None)) -> UUID:
    """Resolve the caller from their access token.

    Usage:
        @router.post("/things")
        async def create(user_id: UUID = Depends(get_current_user_id)):
            ...
    """
    try:
        token = get_bearer_token(authorization)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't find JWT",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    try:
        return validate_jwt(token, settings.JWT_SECRET)
    except AuthError as e:
        logger.info(f"Rejected access token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't validate JWT",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_refresh_token(authorization: str = Header(None)) -> str:
    """Read a refresh token from the Authorization header."""
    try:
        return get_bearer_token(authorization)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't find token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
