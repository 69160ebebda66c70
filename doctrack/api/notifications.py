from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from doctrack.api.deps import get_db, require_user_auth
from doctrack.schemas.common import ListResponse
from doctrack.schemas.notification import (
    MarkReadRequest,
    NotificationRead,
    UnreadCountResponse,
)
from doctrack.services.notification import notifications
from doctrack.services.session import Actor

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return {"count": notifications.unread_count(db, actor.id)}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    notification_type: str | None = None,
    is_read: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return notifications.list_response(
        db,
        actor.id,
        notification_type,
        is_read,
        None,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/mark-read")
def mark_read(
    payload: MarkReadRequest,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    count = notifications.mark_read(
        db, actor.id, [str(nid) for nid in payload.notification_ids]
    )
    return {"marked": count}


@router.post("/mark-all-read")
def mark_all_read(
    actor: Actor = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return {"marked": notifications.mark_all_read(db, actor.id)}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_notification(
    notification_id: str,
    actor: Actor = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    notifications.dismiss(db, actor.id, notification_id)
