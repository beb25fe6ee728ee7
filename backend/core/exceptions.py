from enum import Enum


class RecoveryFailure(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    MISMATCH = "mismatch"
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"
    WEAK_PASSWORD = "weak_password"
    DELIVERY_FAILED = "delivery_failed"
    PERSISTENCE_FAILED = "persistence_failed"


FAILURE_MESSAGES = {
    RecoveryFailure.NOT_FOUND: "No active OTP found. Please request a new code.",
    RecoveryFailure.EXPIRED: "The code has expired. Please request a new one.",
    RecoveryFailure.ATTEMPTS_EXHAUSTED: "Maximum attempts exceeded. Please request a new code.",
    RecoveryFailure.MISMATCH: "Invalid code. Please try again.",
    RecoveryFailure.TOKEN_INVALID: "Invalid or already used token.",
    RecoveryFailure.TOKEN_EXPIRED: "Token has expired. Please request a new OTP.",
    RecoveryFailure.WEAK_PASSWORD: "Password must be at least 6 characters long.",
    RecoveryFailure.DELIVERY_FAILED: "Failed to deliver the code.",
    RecoveryFailure.PERSISTENCE_FAILED: "Internal server error",
}


class RecoveryError(Exception):
    """Base class for errors raised out of the recovery workflow."""

    reason: RecoveryFailure = RecoveryFailure.PERSISTENCE_FAILED

    def __init__(self, message: str = None):
        self.message = message or FAILURE_MESSAGES[self.reason]
        super().__init__(self.message)


class PersistenceError(RecoveryError):
    """A mutation could not be committed; the request must fail as a whole."""

    reason = RecoveryFailure.PERSISTENCE_FAILED
