import logging

from educonnect.core.utils import utc_now
from educonnect.db.database import SessionLocal
from educonnect.models.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)


def cleanup_token_blacklist() -> int:
    """Drop revoked tokens that have expired anyway."""
    db = SessionLocal()
    try:
        deleted = db.query(TokenBlacklist).filter(TokenBlacklist.expires_at < utc_now()).delete()
        db.commit()
        if deleted:
            logger.info(f"Cleaned up {deleted} expired token blacklist entries")
        return deleted
    except Exception as e:
        db.rollback()
        logger.warning(f"Token blacklist cleanup failed: {e}")
        return 0
    finally:
        db.close()
