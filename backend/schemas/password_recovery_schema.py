from pydantic import BaseModel, field_validator
from typing import Optional
from core.config import settings
from core.exceptions import RecoveryFailure


class OtpRequest(BaseModel):
    identifier: str

    @field_validator("identifier")
    @classmethod
    def _identifier_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("Identifier (username or email) is required")
        return value


class OtpVerifyRequest(BaseModel):
    identifier: str
    code: str

    @field_validator("identifier")
    @classmethod
    def _identifier_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("Identifier is required")
        return value

    @field_validator("code")
    @classmethod
    def _code_length(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("OTP code is required")
        if len(value) < 4 or len(value) > 10:
            raise ValueError("OTP code length is invalid")
        return value


class PasswordResetRequest(BaseModel):
    token: str
    password: str

    @field_validator("token")
    @classmethod
    def _token_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("Reset token is required")
        return value

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if len((value or "").strip()) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return value


class MessageResponse(BaseModel):
    success: bool
    message: str


class ResetTokenData(BaseModel):
    reset_token: str


class OtpVerifyResponse(BaseModel):
    success: bool
    data: ResetTokenData


class OtpVerificationResult(BaseModel):
    success: bool
    token: Optional[str] = None
    reason: Optional[RecoveryFailure] = None
    message: str = ""


class PasswordResetResult(BaseModel):
    success: bool
    user_id: Optional[int] = None
    reason: Optional[RecoveryFailure] = None
    message: str = ""
