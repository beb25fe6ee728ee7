from db.session import Base, engine
from db.models.user import User
from db.models.password_reset_otp import PasswordResetOTP
from db.models.password_reset_token import PasswordResetToken
from db.models.activity_log import ActivityLog
import logging
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

async def initialize_database(target_engine: AsyncEngine = None):
    """Create the users, recovery and audit tables if they do not exist yet."""
    target_engine = target_engine or engine
    try:
        async with target_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
