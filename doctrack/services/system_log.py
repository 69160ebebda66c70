import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from doctrack.models.notification import LogStatus, SystemLog
from doctrack.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user_id,
    action: str,
    details: str,
    status: LogStatus = LogStatus.SUCCESS,
    ip_address: str | None = None,
) -> None:
    """Record a coarse operational log line.

    Runs after the workflow transaction has committed; a failure here is
    logged and never reaches the caller.
    """
    if not user_id:
        return
    try:
        db.add(
            SystemLog(
                user_id=coerce_uuid(user_id),
                action=action,
                status=status,
                details=details,
                ip_address=ip_address,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to write system log %r: %s", action, e)
