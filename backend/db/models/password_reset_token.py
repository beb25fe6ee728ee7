from sqlalchemy import Column, Integer, String, DateTime, Index, ForeignKey
from sqlalchemy.sql import func
from db.session import Base


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # Public lookup key; the secret half of the token is only stored hashed
    selector = Column(String(32), nullable=False)
    token_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_password_reset_tokens_selector_consumed", "selector", "consumed_at"),
    )
