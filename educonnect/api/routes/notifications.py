import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc

from educonnect.db.database import get_db
from educonnect.models.user import User
from educonnect.models.notification import Notification
from educonnect.schemas.notification import (
    NotificationList,
    NotificationResponse,
    UnreadCountResponse,
)
from educonnect.api.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _own_notification(db: Session, notification_id: int, user: User) -> Notification:
    notification = (
        db.query(Notification)
        .filter(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
        .first()
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


def _unread_count(db: Session, user: User) -> int:
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user.id,
            Notification.read == False,
        )
        .count()
    )


@router.get("/", response_model=NotificationList)
def list_notifications(
    skip: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List notifications for the current user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.read == False)

    total = query.count()
    query = query.order_by(desc(Notification.created_at), desc(Notification.id)).offset(skip)
    if limit is not None:
        query = query.limit(limit)

    return NotificationList(
        notifications=query.all(),
        unread_count=_unread_count(db, current_user),
        total=total,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UnreadCountResponse(unread_count=_unread_count(db, current_user))


@router.put("/read-all")
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark all notifications as read."""
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == current_user.id,
            Notification.read == False,
        )
        .update({"read": True})
    )
    db.commit()
    logger.info(f"Marked {updated} notifications as read for user {current_user.id}")
    return {"status": "ok", "marked_read": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark a single notification as read."""
    notification = _own_notification(db, notification_id, current_user)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = _own_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return {"status": "ok"}
