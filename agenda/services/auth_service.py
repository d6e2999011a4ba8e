import logging
from datetime import UTC, datetime, timedelta
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.config import settings
from agenda.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from agenda.core.timeutils import utc_naive_now
from agenda.models.refresh_token import RefreshToken
from agenda.models.user import User, UserCreate, UserPublic, UserUpdate

logger = logging.getLogger(__name__)


class AuthTokens(NamedTuple):
    user: User
    access_token: str
    refresh_token: str
    expires_in: int  # seconds


def user_to_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, full_name=user.full_name, phone=user.phone)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def _issue(session: AsyncSession, user: User) -> AuthTokens:
    """New access/refresh pair; the refresh jti is persisted for rotation."""
    access = create_access_token(user.id)
    refresh = create_refresh_token(user.id)
    _, jti = decode_refresh_token(refresh)
    expires_at = (datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days)).replace(tzinfo=None)
    session.add(RefreshToken(user_id=user.id, jti=jti, expires_at=expires_at))
    await session.flush()
    return AuthTokens(user, access, refresh, settings.access_token_expire_minutes * 60)


async def signup_user(session: AsyncSession, data: UserCreate) -> AuthTokens | None:
    """Returns None when the e-mail is already registered."""
    if await get_user_by_email(session, data.email):
        return None
    user = User(
        email=data.email.lower(),
        full_name=data.full_name,
        phone=data.phone,
        hashed_password=hash_password(data.password),
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    logger.info("User %s signed up", user.id)
    return await _issue(session, user)


async def login_user(session: AsyncSession, email: str, password: str) -> AuthTokens | None:
    user = await get_user_by_email(session, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return await _issue(session, user)


async def _live_token(session: AsyncSession, jti: str) -> RefreshToken | None:
    result = await session.execute(
        select(RefreshToken).where(
            RefreshToken.jti == jti,
            RefreshToken.revoked == False,  # noqa: E712
            RefreshToken.expires_at > utc_naive_now(),
        )
    )
    return result.scalar_one_or_none()


async def refresh_session(session: AsyncSession, refresh_token: str) -> AuthTokens | None:
    """Rotate: the presented refresh token is revoked and a new pair issued."""
    user_id, jti = decode_refresh_token(refresh_token)
    if not user_id or not jti:
        return None
    token_row = await _live_token(session, jti)
    if not token_row:
        return None
    user = await session.get(User, int(user_id))
    if not user:
        return None
    token_row.revoked = True
    session.add(token_row)
    return await _issue(session, user)


async def revoke_refresh_token(session: AsyncSession, refresh_token: str) -> None:
    _, jti = decode_refresh_token(refresh_token)
    if not jti:
        return
    token_row = await _live_token(session, jti)
    if token_row:
        token_row.revoked = True
        session.add(token_row)


async def update_profile(session: AsyncSession, user: User, data: UserUpdate) -> User:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(user, key, value)
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user
