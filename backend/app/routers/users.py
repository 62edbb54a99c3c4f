"""
User account and token endpoints.

1. POST /api/users   — Sign up
2. POST /api/login   — Exchange email + password for an access token and
                       a refresh token
3. POST /api/refresh — Exchange a refresh token for a new access token
4. POST /api/revoke  — Invalidate a refresh token (log out)

Access tokens are short-lived JWTs checked without touching the database.
Refresh tokens live in the database so they can be revoked.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models import RefreshToken, User
from app.schemas.users import (
    LoginResponse,
    TokenResponse,
    UserCredentials,
    UserResponse,
)
from app.services.auth import (
    check_password_hash,
    get_refresh_token,
    hash_password,
    make_jwt,
    make_refresh_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: UserCredentials,
    db: AsyncSession = Depends(get_db),
):
    """Create an account. Emails are unique (case-insensitive)."""
    try:
        password_hash = hash_password(request.password)
    except ValueError:
        raise HTTPException(status_code=400, detail="Password is too long")

    user = User(email=request.email, password_hash=password_hash)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Email is already registered")
    await db.refresh(user)

    logger.info(f"Created user {user.id}")
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: UserCredentials,
    db: AsyncSession = Depends(get_db),
):
    """Log in and receive an access token plus a refresh token."""
    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()

    # Same message for unknown email and wrong password
    if not user or not check_password_hash(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect email or password")

    access_token = make_jwt(
        user.id,
        settings.JWT_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    refresh_token = RefreshToken(
        token=make_refresh_token(),
        user_id=user.id,
        expires_at=datetime.now(timezone.utc)
        + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    db.add(refresh_token)
    await db.commit()

    return LoginResponse(
        id=user.id,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
        token=access_token,
        refresh_token=refresh_token.token,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    token: str = Depends(get_refresh_token),
    db: AsyncSession = Depends(get_db),
):
    """Issue a new access token for a valid, unrevoked refresh token."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == token))
    refresh_token = result.scalar_one_or_none()

    if not refresh_token or refresh_token.revoked_at is not None:
        raise HTTPException(status_code=401, detail="Couldn't validate token")

    if _as_utc(refresh_token.expires_at) <= datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Couldn't validate token")

    access_token = make_jwt(
        refresh_token.user_id,
        settings.JWT_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return TokenResponse(token=access_token)


@router.post("/revoke", status_code=status.HTTP_204_NO_CONTENT)
async def revoke(
    token: str = Depends(get_refresh_token),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a refresh token. Revoking twice is harmless."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == token))
    refresh_token = result.scalar_one_or_none()
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Couldn't validate token")

    if refresh_token.revoked_at is None:
        refresh_token.revoked_at = datetime.now(timezone.utc)
        await db.commit()

    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
