from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy.orm import Session

from doctrack.errors import NotFound, ValidationError
from doctrack.models.notification import Notification, NotificationType
from doctrack.services.common import apply_ordering, apply_pagination, coerce_uuid
from doctrack.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    title: str
    description: str
    type: NotificationType
    link: str | None = None
    metadata: dict = field(default_factory=dict)


def notify(user_id, payload: NotificationPayload) -> None:
    notify_many([user_id], payload)


def notify_many(user_ids: Iterable, payload: NotificationPayload) -> None:
    """Queue in-app notifications. Fire-and-forget: never raises."""
    recipients = list(dict.fromkeys(str(uid) for uid in user_ids if uid))
    if not recipients:
        return
    try:
        from doctrack.tasks.notifications import create_notifications

        create_notifications.delay(
            user_ids=recipients,
            title=payload.title,
            description=payload.description,
            notification_type=payload.type.value,
            link=payload.link,
            metadata={k: _jsonable(v) for k, v in payload.metadata.items()},
        )
        logger.debug(
            "Queued %s notification for %d users", payload.type.value, len(recipients)
        )
    except Exception as e:
        logger.exception("Failed to queue %s notification: %s", payload.type.value, e)


def _jsonable(value):
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class Notifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str) -> Notification:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise NotFound("Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        user_id: str | None,
        notification_type: str | None,
        is_read: bool | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Notification]:
        query = db.query(Notification)
        if user_id is not None:
            query = query.filter(Notification.user_id == coerce_uuid(user_id))
        if notification_type is not None:
            try:
                kind = NotificationType(notification_type)
            except ValueError:
                raise ValidationError(f"Invalid notification_type: {notification_type}")
            query = query.filter(Notification.type == kind)
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        if is_active is None:
            query = query.filter(Notification.is_active.is_(True))
        else:
            query = query.filter(Notification.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, user_id, notification_ids: List[str]) -> int:
        now = datetime.now(timezone.utc)
        owner = coerce_uuid(user_id)
        count = 0
        for nid in notification_ids:
            notification = db.get(Notification, coerce_uuid(nid))
            if notification and notification.user_id == owner and not notification.is_read:
                notification.is_read = True
                notification.read_at = now
                count += 1
        db.commit()
        logger.info("Marked %d notifications as read", count)
        return count

    @staticmethod
    def mark_all_read(db: Session, user_id) -> int:
        now = datetime.now(timezone.utc)
        notifications = (
            db.query(Notification)
            .filter(
                Notification.user_id == coerce_uuid(user_id),
                Notification.is_read.is_(False),
                Notification.is_active.is_(True),
            )
            .all()
        )
        for n in notifications:
            n.is_read = True
            n.read_at = now
        db.commit()
        logger.info(
            "Marked all %d notifications as read for user %s",
            len(notifications),
            user_id,
        )
        return len(notifications)

    @staticmethod
    def unread_count(db: Session, user_id) -> int:
        return (
            db.query(Notification)
            .filter(
                Notification.user_id == coerce_uuid(user_id),
                Notification.is_read.is_(False),
                Notification.is_active.is_(True),
            )
            .count()
        )

    @staticmethod
    def dismiss(db: Session, user_id, notification_id: str) -> None:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification or notification.user_id != coerce_uuid(user_id):
            raise NotFound("Notification not found")
        notification.is_active = False
        db.commit()
        logger.info("Dismissed notification %s", notification_id)


notifications = Notifications()
