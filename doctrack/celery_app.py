from celery import Celery
from celery.schedules import crontab

from doctrack.config import settings

celery_app = Celery(
    "doctrack",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "doctrack.tasks.archive",
        "doctrack.tasks.notifications",
        "doctrack.tasks.storage",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    beat_schedule={
        "archive-inactive-documents": {
            "task": "doctrack.tasks.archive.archive_inactive_documents",
            "schedule": crontab(hour=2, minute=0),
        },
    },
)
