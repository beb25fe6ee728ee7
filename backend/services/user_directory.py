from typing import Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from db.models.user import User as UserModel
from db.session import get_or_use_session
from schemas.user_schema import UserCreate, RecoveryIdentity
from core.security import get_password_hash, verify_password
from utils.db import safe_commit
import logging

logger = logging.getLogger(__name__)


def _to_identity(user: UserModel) -> RecoveryIdentity:
    display_name = (user.full_name or "").strip() or user.username
    return RecoveryIdentity(
        user_id=user.id,
        username=user.username,
        display_name=display_name,
        delivery_address=user.email or None,
    )


async def _find_user_row(identifier: str, db: AsyncSession) -> Optional[UserModel]:
    value = (identifier or "").strip().lower()
    if not value:
        return None
    # Username takes precedence over email
    result = await db.execute(
        select(UserModel).where(func.lower(UserModel.username) == value, UserModel.is_active.is_(True))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    user = result.scalars().first()
    if user is not None:
        return user
    result = await db.execute(
        select(UserModel).where(func.lower(UserModel.email) == value, UserModel.is_active.is_(True))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def find_by_identifier(identifier: str, db: AsyncSession = None) -> Optional[RecoveryIdentity]:
    """Resolve a username or email to the identity used by password recovery."""
    async with get_or_use_session(db) as _db:
        user = await _find_user_row(identifier, _db)
        return _to_identity(user) if user is not None else None


async def lock_user(user_id: int, db: AsyncSession) -> None:
    """Take a row lock on the user so concurrent recovery writes for it serialize.

    A no-op on dialects without SELECT ... FOR UPDATE (SQLite).
    """
    await db.execute(select(UserModel.id).where(UserModel.id == user_id).with_for_update())


async def set_password_hash(user_id: int, password_hash: str, db: AsyncSession) -> bool:
    """Write a new credential hash. Does not commit; returns False if the user is gone."""
    result = await db.execute(
        update(UserModel)
        .where(UserModel.id == user_id)
        .values(hashed_password=password_hash)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def authenticate_user(identifier: str, password: str, db: AsyncSession = None) -> Optional[RecoveryIdentity]:
    """Login check: the identity if the password matches, otherwise None."""
    async with get_or_use_session(db) as _db:
        user = await _find_user_row(identifier, _db)
        if user is None:
            return None
        if not await run_in_threadpool(verify_password, password, user.hashed_password):
            return None
        return _to_identity(user)


async def create_user(user_in: UserCreate, db: AsyncSession = None) -> RecoveryIdentity:
    """Create a directory entry with a hashed password."""
    async with get_or_use_session(db) as _db:
        existing = await _db.execute(
            select(UserModel).where(func.lower(UserModel.username) == user_in.username.lower())
        )
        if existing.scalars().first() is not None:
            raise ValueError(f"Username already registered: {user_in.username}")
        if user_in.email:
            existing = await _db.execute(
                select(UserModel).where(func.lower(UserModel.email) == user_in.email.lower())
            )
            if existing.scalars().first() is not None:
                raise ValueError(f"Email already registered: {user_in.email}")

        hashed = await run_in_threadpool(get_password_hash, user_in.password)
        user = UserModel(
            username=user_in.username,
            email=user_in.email.lower() if user_in.email else None,
            full_name=user_in.full_name,
            hashed_password=hashed,
            role=user_in.role,
            is_active=True,
        )
        _db.add(user)
        await safe_commit(_db, "Failed to create user")
        await _db.refresh(user)
        logger.info(f"Created user {user.id} ({user.username})")
        return _to_identity(user)
