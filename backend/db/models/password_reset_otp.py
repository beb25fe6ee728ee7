from sqlalchemy import Column, Integer, String, DateTime, Index, ForeignKey
from sqlalchemy.sql import func
from db.session import Base

PASSWORD_RESET_PURPOSE = "password_reset"


class PasswordResetOTP(Base):
    __tablename__ = "password_reset_otps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # What the requester typed (username or email); kept for audit only
    identifier = Column(String(255), nullable=False)
    purpose = Column(String(50), nullable=False, default=PASSWORD_RESET_PURPOSE)
    code_hash = Column(String(255), nullable=False)
    delivery_channel = Column(String(50), nullable=False, default="email")
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index("ix_password_reset_otps_user_purpose_created", "user_id", "purpose", "created_at"),
    )
