from sqlalchemy.exc import IntegrityError, DBAPIError
from core.exceptions import PersistenceError
import logging

logger = logging.getLogger(__name__)


async def safe_commit(session, error_message: str = "Internal server error"):
    """Commit or roll back and raise PersistenceError; nothing partial survives."""
    try:
        await session.commit()
    except (IntegrityError, DBAPIError) as e:
        await session.rollback()
        logger.error(f"Database commit failed: {e}")
        raise PersistenceError(error_message) from e
    except Exception as e:
        await session.rollback()
        logger.error(f"Unexpected error during commit: {e}")
        raise PersistenceError(error_message) from e
