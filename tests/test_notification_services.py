import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from doctrack.models.notification import Notification, NotificationType
from doctrack.services.notification import (
    NotificationPayload,
    notifications,
    notify,
    notify_many,
)


@pytest.fixture()
def make_notification(db_session):
    def _make(user, title="Document Approved", kind=NotificationType.DOCUMENT_APPROVED, **kwargs):
        n = Notification(
            user_id=user.id,
            title=title,
            description="Your document has been approved.",
            type=kind,
            link="/documents/abc",
            **kwargs,
        )
        db_session.add(n)
        db_session.commit()
        db_session.refresh(n)
        return n

    return _make


def _payload(**kwargs):
    data = {
        "title": "Document Approved",
        "description": "Approved",
        "type": NotificationType.DOCUMENT_APPROVED,
    }
    data.update(kwargs)
    return NotificationPayload(**data)


class TestNotify:
    def test_queues_one_task_for_all_recipients(self, notify_delay) -> None:
        first, second = uuid.uuid4(), uuid.uuid4()
        doc_id = uuid.uuid4()
        notify_many(
            [first, second, first, None],
            _payload(link="/documents/x", metadata={"document_id": doc_id, "tags": (1, 2)}),
        )
        notify_delay.assert_called_once()
        kwargs = notify_delay.call_args.kwargs
        assert kwargs["user_ids"] == [str(first), str(second)]
        assert kwargs["notification_type"] == "DOCUMENT_APPROVED"
        assert kwargs["link"] == "/documents/x"
        assert kwargs["metadata"] == {"document_id": str(doc_id), "tags": [1, 2]}

    def test_skips_empty_recipients(self, notify_delay) -> None:
        notify_many([], _payload())
        notify(None, _payload())
        notify_delay.assert_not_called()

    def test_queue_failure_is_swallowed(self, notify_delay) -> None:
        notify_delay.side_effect = ConnectionError("broker down")
        with patch("doctrack.services.notification.logger") as mock_logger:
            notify(uuid.uuid4(), _payload())
        mock_logger.exception.assert_called_once()


class TestNotificationsService:
    def test_get(self, db_session, instructor, make_notification) -> None:
        n = make_notification(instructor)
        assert notifications.get(db_session, str(n.id)).title == "Document Approved"

    def test_get_not_found(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.get(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_list_scoped_to_user(self, db_session, instructor, dean, make_notification) -> None:
        make_notification(instructor)
        make_notification(dean)
        items = notifications.list(
            db_session, instructor.id, None, None, None, "created_at", "desc", 25, 0
        )
        assert [n.user_id for n in items] == [instructor.id]

    def test_list_filters(self, db_session, instructor, make_notification) -> None:
        make_notification(instructor)
        make_notification(
            instructor, title="Archived", kind=NotificationType.DOCUMENT_ARCHIVED
        )
        make_notification(instructor, title="Read", is_read=True)
        make_notification(instructor, title="Dismissed", is_active=False)

        by_type = notifications.list(
            db_session, instructor.id, "DOCUMENT_ARCHIVED", None, None,
            "created_at", "desc", 25, 0,
        )
        assert [n.title for n in by_type] == ["Archived"]

        unread = notifications.list(
            db_session, instructor.id, None, False, None, "created_at", "asc", 25, 0
        )
        assert [n.title for n in unread] == ["Document Approved", "Archived"]

        dismissed = notifications.list(
            db_session, instructor.id, None, None, False, "created_at", "desc", 25, 0
        )
        assert [n.title for n in dismissed] == ["Dismissed"]

    def test_list_invalid_type(self, db_session, instructor) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.list(
                db_session, instructor.id, "bogus", None, None, "created_at", "desc", 25, 0
            )
        assert exc.value.status_code == 400

    def test_list_invalid_order(self, db_session, instructor) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.list(
                db_session, instructor.id, None, None, None, "title", "desc", 25, 0
            )
        assert exc.value.status_code == 400

    def test_list_response(self, db_session, instructor, make_notification) -> None:
        for _ in range(3):
            make_notification(instructor)
        result = notifications.list_response(
            db_session, instructor.id, None, None, None, "created_at", "desc", 2, 0
        )
        assert result["count"] == 2
        assert result["limit"] == 2
        assert result["offset"] == 0

    def test_mark_read_only_own(self, db_session, instructor, dean, make_notification) -> None:
        mine = make_notification(instructor)
        theirs = make_notification(dean)
        count = notifications.mark_read(
            db_session, instructor.id, [str(mine.id), str(theirs.id)]
        )
        assert count == 1
        db_session.refresh(mine)
        db_session.refresh(theirs)
        assert mine.is_read is True
        assert mine.read_at is not None
        assert theirs.is_read is False

    def test_mark_all_read(self, db_session, instructor, make_notification) -> None:
        for _ in range(3):
            make_notification(instructor)
        assert notifications.unread_count(db_session, instructor.id) == 3
        assert notifications.mark_all_read(db_session, instructor.id) == 3
        assert notifications.unread_count(db_session, instructor.id) == 0

    def test_unread_count_ignores_dismissed(
        self, db_session, instructor, make_notification
    ) -> None:
        make_notification(instructor)
        make_notification(instructor, is_active=False)
        assert notifications.unread_count(db_session, instructor.id) == 1

    def test_dismiss(self, db_session, instructor, make_notification) -> None:
        n = make_notification(instructor)
        notifications.dismiss(db_session, instructor.id, str(n.id))
        db_session.refresh(n)
        assert n.is_active is False

    def test_dismiss_other_users(self, db_session, instructor, dean, make_notification) -> None:
        n = make_notification(dean)
        with pytest.raises(HTTPException) as exc:
            notifications.dismiss(db_session, instructor.id, str(n.id))
        assert exc.value.status_code == 404
