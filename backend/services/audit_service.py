from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from db.models.activity_log import ActivityLog
from db.session import get_or_use_session
import logging

logger = logging.getLogger(__name__)


async def record_activity(user_id: Optional[int], action: str, description: str,
                          db: AsyncSession = None, module: str = "auth") -> bool:
    """Append an audit entry in its own commit. Best effort: failures are logged, not raised."""
    async with get_or_use_session(db) as _db:
        try:
            _db.add(ActivityLog(
                user_id=user_id,
                action=action,
                module=module,
                description=description,
                created_by=user_id,
            ))
            await _db.commit()
            return True
        except Exception as e:
            await _db.rollback()
            logger.error(f"Failed to log {module} activity '{action}' for user {user_id}: {e}")
            return False
