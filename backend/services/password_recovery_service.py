"""
Password recovery workflow.

    request  -> find_by_identifier -> issue_otp -> deliver_otp
    verify   -> verify_otp -> (match) mint reset token
    reset    -> reset_password -> resolve_reset_token -> password write + consume -> audit

All state lives in the database. Codes and token secrets are stored only as
bcrypt hashes; the plaintext reset token is returned exactly once, from a
successful verify_otp.
"""
from dataclasses import dataclass
from typing import Optional
from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from core.config import settings
from core.exceptions import RecoveryFailure, FAILURE_MESSAGES
from core.security import (
    hash_secret,
    verify_secret,
    get_password_hash,
    generate_numeric_code,
    generate_reset_token,
    split_reset_token,
)
from db.models.password_reset_otp import PASSWORD_RESET_PURPOSE
from db.models.password_reset_token import PasswordResetToken
from db.session import get_or_use_session
from schemas.user_schema import RecoveryIdentity
from schemas.password_recovery_schema import OtpVerificationResult, PasswordResetResult
from services import otp_store, reset_token_store
from services.user_directory import find_by_identifier, lock_user, set_password_hash
from services.delivery_service import deliver_otp
from services.audit_service import record_activity
from utils.db import safe_commit
from utils.logging_config import bind_log_user
from utils.timing import timeit, utcnow
import logging

logger = logging.getLogger(__name__)

GENERIC_REQUEST_MESSAGE = "An OTP will be sent if the account exists."
RESET_SUCCESS_MESSAGE = "Password updated successfully."


@dataclass
class TokenResolution:
    record: PasswordResetToken
    expired: bool


def _verification_failure(reason: RecoveryFailure) -> OtpVerificationResult:
    return OtpVerificationResult(success=False, reason=reason, message=FAILURE_MESSAGES[reason])


def _reset_failure(reason: RecoveryFailure, message: str = None) -> PasswordResetResult:
    return PasswordResetResult(success=False, reason=reason, message=message or FAILURE_MESSAGES[reason])


@timeit("issue_otp")
async def issue_otp(identity: RecoveryIdentity, db: AsyncSession = None, identifier: Optional[str] = None,
                    background_tasks: Optional[BackgroundTasks] = None) -> None:
    """Create and send a new code unless one was issued within the resend cooldown."""
    bind_log_user(identity.user_id)
    # Hash outside the row lock; the cost is also paid on the cooldown path
    code = generate_numeric_code()
    code_hash = await run_in_threadpool(hash_secret, code)

    async with get_or_use_session(db) as _db:
        now = utcnow()
        await lock_user(identity.user_id, _db)
        # Locking read: a plain SELECT would reuse the snapshot taken by the identifier lookup
        recent = await otp_store.get_latest_unconsumed(identity.user_id, PASSWORD_RESET_PURPOSE, _db,
                                                       active_at=now, for_update=True)
        if recent is not None and recent.created_at is not None:
            age_seconds = (now - recent.created_at).total_seconds()
            if age_seconds < settings.OTP_RESEND_COOLDOWN_SECONDS:
                await _db.rollback()
                logger.info(f"OTP resend cooldown active for user {identity.user_id} ({age_seconds:.0f}s since last code)")
                return

        await otp_store.create(
            user_id=identity.user_id,
            identifier=identifier or identity.delivery_address or identity.username,
            purpose=PASSWORD_RESET_PURPOSE,
            code_hash=code_hash,
            now=now,
            ttl_minutes=settings.OTP_TTL_MINUTES,
            db=_db,
        )
        await safe_commit(_db, "Failed to issue password reset code")
        logger.info(f"Issued password reset OTP for user {identity.user_id}")

    if not identity.delivery_address:
        logger.warning(f"User {identity.user_id} has no email on file; OTP code generated but not delivered.")
        return

    if background_tasks is not None:
        background_tasks.add_task(deliver_otp, identity.delivery_address, code,
                                  settings.OTP_TTL_MINUTES, identity.display_name)
    else:
        await deliver_otp(identity.delivery_address, code, settings.OTP_TTL_MINUTES, identity.display_name)


@timeit("verify_otp")
async def verify_otp(identity: RecoveryIdentity, submitted_code: str, db: AsyncSession = None) -> OtpVerificationResult:
    """Check a submitted code against the newest unconsumed code for the user.

    Order of checks: missing, expired, attempt budget, then the hash compare.
    Every guess (the correct one included) spends one attempt. On success the
    code is consumed and a reset token is minted in the same commit.
    """
    bind_log_user(identity.user_id)
    submitted_code = (submitted_code or "").strip()

    async with get_or_use_session(db) as _db:
        now = utcnow()
        otp = await otp_store.get_latest_unconsumed(identity.user_id, PASSWORD_RESET_PURPOSE, _db)
        if otp is None:
            return _verification_failure(RecoveryFailure.NOT_FOUND)
        if otp.expires_at <= now:
            return _verification_failure(RecoveryFailure.EXPIRED)
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            return _verification_failure(RecoveryFailure.ATTEMPTS_EXHAUSTED)

        otp_id, code_hash = otp.id, otp.code_hash
        if not await otp_store.reserve_attempt(otp_id, settings.OTP_MAX_ATTEMPTS, _db):
            # Lost the budget or the row to a concurrent request
            await _db.rollback()
            current = await otp_store.get(otp_id, _db)
            if current is None or current.consumed_at is not None:
                return _verification_failure(RecoveryFailure.NOT_FOUND)
            return _verification_failure(RecoveryFailure.ATTEMPTS_EXHAUSTED)

        if not await run_in_threadpool(verify_secret, submitted_code, code_hash):
            await safe_commit(_db, "Failed to record verification attempt")
            logger.info(f"Invalid OTP submitted for user {identity.user_id}")
            return _verification_failure(RecoveryFailure.MISMATCH)

        if not await otp_store.mark_consumed(otp_id, now, _db):
            await _db.rollback()
            return _verification_failure(RecoveryFailure.NOT_FOUND)

        token, selector, secret = generate_reset_token()
        token_hash = await run_in_threadpool(hash_secret, secret)
        await reset_token_store.create(
            user_id=identity.user_id,
            selector=selector,
            token_hash=token_hash,
            now=now,
            ttl_minutes=settings.RESET_TOKEN_TTL_MINUTES,
            db=_db,
        )
        await safe_commit(_db, "Failed to issue reset token")
        logger.info(f"OTP verified for user {identity.user_id}; reset token issued")
        return OtpVerificationResult(success=True, token=token)


async def resolve_reset_token(submitted_token: str, db: AsyncSession = None) -> Optional[TokenResolution]:
    """Find the unconsumed token row matching a plaintext token.

    Only rows sharing the token's public selector are hash-compared, newest
    first. Returns None when nothing matches; an expired match is still
    returned, flagged ``expired=True``.
    """
    parts = split_reset_token(submitted_token)
    if parts is None:
        return None
    selector, secret = parts

    async with get_or_use_session(db) as _db:
        now = utcnow()
        for record in await reset_token_store.list_unconsumed(selector, _db):
            if await run_in_threadpool(verify_secret, secret, record.token_hash):
                return TokenResolution(record=record, expired=record.expires_at <= now)
    return None


async def consume_reset_token(token_id: int, db: AsyncSession) -> bool:
    """Mark a token spent. Not committed here: the caller commits it together
    with the password write it authorizes."""
    return await reset_token_store.mark_consumed(token_id, utcnow(), db)


@timeit("reset_password")
async def reset_password(submitted_token: str, new_password: str, db: AsyncSession = None) -> PasswordResetResult:
    if not new_password or len(new_password.strip()) < settings.MIN_PASSWORD_LENGTH:
        return _reset_failure(
            RecoveryFailure.WEAK_PASSWORD,
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long.",
        )

    async with get_or_use_session(db) as _db:
        resolution = await resolve_reset_token(submitted_token, _db)
        if resolution is None:
            return _reset_failure(RecoveryFailure.TOKEN_INVALID)
        if resolution.expired:
            return _reset_failure(RecoveryFailure.TOKEN_EXPIRED)

        record = resolution.record
        user_id, token_id = record.user_id, record.id
        bind_log_user(user_id)

        password_hash = await run_in_threadpool(get_password_hash, new_password)
        if not await set_password_hash(user_id, password_hash, _db):
            await _db.rollback()
            return _reset_failure(RecoveryFailure.TOKEN_INVALID)
        if not await consume_reset_token(token_id, _db):
            await _db.rollback()
            return _reset_failure(RecoveryFailure.TOKEN_INVALID)
        await safe_commit(_db, "Failed to update password")
        logger.info(f"Password reset completed for user {user_id}")

        await record_activity(user_id, "UPDATE", "Password reset via OTP", _db)
        return PasswordResetResult(success=True, user_id=user_id, message=RESET_SUCCESS_MESSAGE)


@timeit("request_password_otp")
async def request_password_otp(identifier: str, db: AsyncSession = None,
                               background_tasks: Optional[BackgroundTasks] = None) -> dict:
    """Boundary workflow for a recovery request.

    The reply never depends on whether the account exists or a cooldown applied.
    """
    identifier = (identifier or "").strip()
    async with get_or_use_session(db) as _db:
        identity = await find_by_identifier(identifier, _db)
        if identity is None:
            logger.info(f"Password OTP requested for non-existent identifier: {identifier}")
            # Spend the same hashing cost as a real issuance
            await run_in_threadpool(hash_secret, generate_numeric_code())
        else:
            await issue_otp(identity, _db, identifier=identifier, background_tasks=background_tasks)
    return {"success": True, "message": GENERIC_REQUEST_MESSAGE}


async def verify_password_otp(identifier: str, code: str, db: AsyncSession = None) -> OtpVerificationResult:
    """Boundary workflow for verification.

    An unknown identifier gets the same reply as a real account with no pending code.
    """
    async with get_or_use_session(db) as _db:
        identity = await find_by_identifier(identifier, _db)
        if identity is None:
            logger.info(f"OTP verification attempted for non-existent identifier: {(identifier or '').strip()}")
            return _verification_failure(RecoveryFailure.NOT_FOUND)
        return await verify_otp(identity, code, _db)
