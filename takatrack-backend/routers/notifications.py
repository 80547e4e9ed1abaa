from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner
from services.notifications import create_notification

router = APIRouter()


def get_owned_notification(db: Session, notification_id: int, user: models.User) -> models.Notification:
    notification = db.query(models.Notification).filter(
        models.Notification.notification_id == notification_id
    ).first()
    return ensure_owner(notification, user, "Notification")


def count_unread(db: Session, user_id: int) -> int:
    return db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.is_read.is_(False)
    ).count()


@router.get("/", response_model=schemas.NotificationList)
def get_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    is_read: Optional[bool] = Query(None, description="Filter by read state"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Paginated notifications, newest first"""
    query = db.query(models.Notification).filter(models.Notification.user_id == current_user.user_id)
    if is_read is not None:
        query = query.filter(models.Notification.is_read.is_(is_read))

    total = query.count()
    notifications = query.order_by(
        models.Notification.created_at.desc(), models.Notification.notification_id.desc()
    ).offset(skip).limit(limit).all()

    return schemas.NotificationList(
        notifications=[schemas.NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=count_unread(db, current_user.user_id),
        skip=skip,
        limit=limit,
        has_more=skip + limit < total
    )


@router.get("/unread-count")
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return {"unread_count": count_unread(db, current_user.user_id)}


@router.put("/{notification_id}/read", response_model=schemas.NotificationResponse)
def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    notification = get_owned_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = models.utcnow()
        db.commit()
        db.refresh(notification)
    return notification


@router.put("/mark-all-read")
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    updated = db.query(models.Notification).filter(
        models.Notification.user_id == current_user.user_id,
        models.Notification.is_read.is_(False)
    ).update(
        {models.Notification.is_read: True, models.Notification.read_at: models.utcnow()},
        synchronize_session=False
    )
    db.commit()
    return {"message": "All notifications marked as read", "updated": updated}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    notification = get_owned_notification(db, notification_id, current_user)
    db.delete(notification)
    db.commit()
    return None


@router.post("/test", response_model=schemas.NotificationResponse, status_code=status.HTTP_201_CREATED)
def send_test_notification(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create a system notification so clients can check their display"""
    return create_notification(
        db,
        current_user.user_id,
        "system",
        "Test notification",
        "Notifications are working.",
        {"test": True},
    )
