from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional

class UserBase(BaseModel):
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None

    @field_validator("username")
    @classmethod
    def _normalize_username(cls, value: str) -> str:
        value = (value or "").strip()
        if len(value) < 3 or len(value) > 50:
            raise ValueError("Username must be 3-50 characters")
        return value

class UserCreate(UserBase):
    password: str
    role: str = "employee"

class RecoveryIdentity(BaseModel):
    """What the recovery workflow needs to know about an account, and nothing more."""
    user_id: int
    username: str
    display_name: str
    delivery_address: Optional[str] = None
