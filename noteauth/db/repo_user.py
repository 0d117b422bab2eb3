"""User-store operations for local and OAuth-linked accounts."""

from typing import Any

import uuid_utils
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from noteauth.auth.identity import default_username
from noteauth.core.logging import get_logger
from noteauth.crypto.password import hash_password, verify_and_update
from noteauth.db.models_user import UserEntity

logger = get_logger(__name__)


async def get_user_by_id(session: AsyncSession, user_id: str) -> UserEntity | None:
    """Look up a user by primary key."""
    stmt = select(UserEntity).where(UserEntity.id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_username(session: AsyncSession, username: str) -> UserEntity | None:
    """Look up a local password account by username."""
    stmt = select(UserEntity).where(
        UserEntity.username == username,
        UserEntity.provider.is_(None),
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_user_by_provider(
    session: AsyncSession, provider: str, provider_id: str
) -> UserEntity | None:
    """Look up an OAuth-linked account by ``(provider, provider_id)``."""
    stmt = select(UserEntity).where(
        UserEntity.provider == provider,
        UserEntity.provider_id == provider_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_local_user(
    session: AsyncSession,
    username: str,
    password: str,
    email: str | None = None,
) -> UserEntity:
    """Create a password account."""
    user = UserEntity(
        id=str(uuid_utils.uuid7()),
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    session.add(user)
    await session.flush()
    return user


async def verify_password_login(
    session: AsyncSession, username: str, password: str
) -> UserEntity | None:
    """Authenticate a local account, upgrading its hash if parameters changed."""
    user = await get_user_by_username(session, username)
    if user is None or not user.password_hash:
        return None
    matched, upgraded = verify_and_update(password, user.password_hash)
    if not matched:
        return None
    if upgraded is not None:
        user.password_hash = upgraded
        await session.flush()
        logger.info("password_hash_upgraded", user_id=user.id)
    return user


async def find_or_create_from_oauth(
    session: AsyncSession,
    provider: str,
    provider_id: str,
    profile: dict[str, Any],
) -> UserEntity:
    """Return the account linked to ``(provider, provider_id)``, creating it if needed."""
    existing = await get_user_by_provider(session, provider, provider_id)
    if existing is not None:
        return existing

    email = profile.get("email")
    name = profile.get("name")
    user = UserEntity(
        id=str(uuid_utils.uuid7()),
        provider=provider,
        provider_id=provider_id,
        username=default_username(provider, provider_id, profile),
        email=email if isinstance(email, str) else None,
        name=name if isinstance(name, str) else None,
    )
    session.add(user)
    await session.flush()
    logger.info("oauth_account_created", provider=provider, user_id=user.id)
    return user
