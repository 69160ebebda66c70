import logging

from doctrack.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="doctrack.tasks.storage.delete_attachment", ignore_result=True)
def delete_attachment(url: str) -> None:
    """Remove a replaced or orphaned attachment. No retries."""
    from doctrack.services.storage import storage

    if not storage.delete_object(url):
        logger.warning("Attachment %s was not removed from storage", url)
