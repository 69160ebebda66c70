import logging
from datetime import datetime, timedelta, timezone

from doctrack.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="doctrack.tasks.archive.archive_inactive_documents", ignore_result=True
)
def archive_inactive_documents(days: int | None = None) -> int:
    """Periodic task moving settled, untouched documents to the archive.

    A document qualifies once it is Approved or Rejected and has not been
    updated for ``days`` (``ARCHIVE_AFTER_DAYS`` by default).
    """
    from doctrack.config import settings
    from doctrack.db import SessionLocal
    from doctrack.services.document_workflow import document_workflow

    window = days if days is not None else settings.archive_after_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=window)
    db = SessionLocal()
    try:
        count = document_workflow.archive_inactive(db, cutoff)
        logger.info("Archive sweep moved %d documents (cutoff %s)", count, cutoff)
        return count
    except Exception as e:
        logger.exception("Failed to archive inactive documents: %s", e)
        return 0
    finally:
        db.close()
