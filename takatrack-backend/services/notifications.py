from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import models
import logging

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> models.Notification:
    """Queue an in-app notification for a user."""
    notification = models.Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    logger.info(f"Created {notification_type} notification for user {user_id}: {title}")
    return notification
