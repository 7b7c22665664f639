import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.database import SessionLocal
from app.services.invitation_service import purge_expired_invitations

logger = logging.getLogger(__name__)


async def purge_expired_invitations_job():
    """Daily: drop invitations whose redemption window has closed."""
    logger.info("Running expired invitation cleanup...")

    db: Session = SessionLocal()
    try:
        deleted = purge_expired_invitations(db)
        if deleted:
            logger.info(f"Cleaned up {deleted} expired invitation(s)")
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Expired invitation cleanup failed: {e}")
    finally:
        db.close()
