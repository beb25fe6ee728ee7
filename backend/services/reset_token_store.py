from datetime import datetime, timedelta
from typing import List
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession
from db.models.password_reset_token import PasswordResetToken


async def create(user_id: int, selector: str, token_hash: str, now: datetime,
                 ttl_minutes: int, db: AsyncSession) -> PasswordResetToken:
    token = PasswordResetToken(
        user_id=user_id,
        selector=selector,
        token_hash=token_hash,
        expires_at=now + timedelta(minutes=ttl_minutes),
        created_at=now,
    )
    db.add(token)
    await db.flush()
    return token


async def list_unconsumed(selector: str, db: AsyncSession) -> List[PasswordResetToken]:
    """Unconsumed tokens sharing a selector, newest first."""
    result = await db.execute(
        select(PasswordResetToken)
        .where(PasswordResetToken.selector == selector, PasswordResetToken.consumed_at.is_(None))
        .order_by(desc(PasswordResetToken.created_at), desc(PasswordResetToken.id))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def mark_consumed(token_id: int, now: datetime, db: AsyncSession) -> bool:
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == token_id, PasswordResetToken.consumed_at.is_(None))
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
