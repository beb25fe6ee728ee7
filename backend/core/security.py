import secrets
from typing import Optional, Tuple
from passlib.context import CryptContext
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Salted one-way hashing for passwords, OTP codes and reset token secrets
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

OTP_CODE_LENGTH = 6
RESET_TOKEN_SELECTOR_BYTES = 8
RESET_TOKEN_SECRET_BYTES = 32


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    return verify_secret(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return hash_secret(password)


def hash_secret(secret: str) -> str:
    """Hash a human-entered secret (OTP code, token secret) for storage."""
    return pwd_context.hash(secret)


def verify_secret(secret: str, secret_hash: Optional[str]) -> bool:
    """Re-hash and compare. Malformed or empty stored hashes never match."""
    if not secret or not secret_hash:
        return False
    try:
        return pwd_context.verify(secret, secret_hash)
    except (ValueError, TypeError) as e:
        logger.warning(f"Stored secret hash could not be verified: {e}")
        return False


def generate_numeric_code(length: int = OTP_CODE_LENGTH) -> str:
    """Uniformly random zero-padded numeric code, e.g. 000000-999999."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def generate_reset_token() -> Tuple[str, str, str]:
    """Return (plaintext token, selector, secret).

    The selector is a public lookup key stored in clear; only the secret is
    hashed. The plaintext handed to the user is ``<selector>.<secret>``.
    """
    selector = secrets.token_hex(RESET_TOKEN_SELECTOR_BYTES)
    secret = secrets.token_urlsafe(RESET_TOKEN_SECRET_BYTES)
    return f"{selector}.{secret}", selector, secret


def split_reset_token(token: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split a submitted token into (selector, secret), or None if malformed."""
    if not token:
        return None
    selector, sep, secret = token.strip().partition(".")
    if not sep or not selector or not secret:
        return None
    if len(selector) != RESET_TOKEN_SELECTOR_BYTES * 2:
        return None
    return selector, secret
