import logging

from doctrack.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="doctrack.tasks.notifications.create_notifications", ignore_result=True
)
def create_notifications(
    user_ids: list[str],
    title: str,
    description: str,
    notification_type: str,
    link: str | None = None,
    metadata: dict | None = None,
) -> None:
    """Persist one in-app notification per recipient."""
    from doctrack.db import SessionLocal

    db = SessionLocal()
    try:
        _create(db, user_ids, title, description, notification_type, link, metadata)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to create %s notifications: %s", notification_type, e)
    finally:
        db.close()


def _create(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    user_ids: list[str],
    title: str,
    description: str,
    notification_type: str,
    link: str | None,
    metadata: dict | None,
) -> int:
    from doctrack.models.notification import Notification, NotificationType
    from doctrack.models.user import User
    from doctrack.services.common import coerce_uuid

    kind = NotificationType(notification_type)
    count = 0
    for uid in dict.fromkeys(user_ids):
        user = db.get(User, coerce_uuid(uid))
        if not user:
            logger.warning("Skipping notification for unknown user %s", uid)
            continue
        db.add(
            Notification(
                user_id=user.id,
                title=title,
                description=description,
                type=kind,
                link=link,
                metadata_=metadata or None,
            )
        )
        count += 1

    db.commit()
    logger.info("Created %d %s notifications", count, notification_type)
    return count
