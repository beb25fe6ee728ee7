from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession
from db.models.password_reset_otp import PasswordResetOTP

# Row access for password_reset_otps. Nothing here commits; the caller owns the transaction.


def latest_unconsumed_query(user_id: int, purpose: str, active_at: Optional[datetime] = None,
                            for_update: bool = False):
    query = select(PasswordResetOTP).where(
        PasswordResetOTP.user_id == user_id,
        PasswordResetOTP.purpose == purpose,
        PasswordResetOTP.consumed_at.is_(None),
    )
    if active_at is not None:
        query = query.where(PasswordResetOTP.expires_at > active_at)
    query = query.order_by(desc(PasswordResetOTP.created_at), desc(PasswordResetOTP.id)).limit(1)
    if for_update:
        query = query.with_for_update()
    return query.execution_options(populate_existing=True)


async def get_latest_unconsumed(user_id: int, purpose: str, db: AsyncSession,
                                active_at: Optional[datetime] = None,
                                for_update: bool = False) -> Optional[PasswordResetOTP]:
    """Most recent unconsumed row for (user, purpose).

    With ``active_at`` the row must also be unexpired at that instant.
    ``for_update`` makes it a locking read, which on InnoDB sees rows committed
    after the transaction's snapshot was taken.
    """
    result = await db.execute(latest_unconsumed_query(user_id, purpose, active_at, for_update))
    return result.scalars().first()


async def get(otp_id: int, db: AsyncSession) -> Optional[PasswordResetOTP]:
    result = await db.execute(
        select(PasswordResetOTP)
        .where(PasswordResetOTP.id == otp_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def create(user_id: int, identifier: str, purpose: str, code_hash: str, now: datetime,
                 ttl_minutes: int, db: AsyncSession, delivery_channel: str = "email") -> PasswordResetOTP:
    otp = PasswordResetOTP(
        user_id=user_id,
        identifier=identifier,
        purpose=purpose,
        code_hash=code_hash,
        delivery_channel=delivery_channel,
        expires_at=now + timedelta(minutes=ttl_minutes),
        attempts=0,
        created_at=now,
    )
    db.add(otp)
    await db.flush()
    return otp


async def reserve_attempt(otp_id: int, max_attempts: int, db: AsyncSession) -> bool:
    """Atomically spend one attempt from the row's budget.

    The increment and the budget check are a single conditional UPDATE, so two
    concurrent verifications cannot both read ``attempts = k`` and lose a write.
    Returns False when the budget is gone or the row was consumed meanwhile.
    """
    result = await db.execute(
        update(PasswordResetOTP)
        .where(
            PasswordResetOTP.id == otp_id,
            PasswordResetOTP.consumed_at.is_(None),
            PasswordResetOTP.attempts < max_attempts,
        )
        .values(attempts=PasswordResetOTP.attempts + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def mark_consumed(otp_id: int, now: datetime, db: AsyncSession) -> bool:
    """Set consumed_at once; False if another request already consumed the row."""
    result = await db.execute(
        update(PasswordResetOTP)
        .where(PasswordResetOTP.id == otp_id, PasswordResetOTP.consumed_at.is_(None))
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
