import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from meetup.data.access import write_transaction
from meetup.database import get_db
from meetup.errors import NotFoundError
from meetup.models.notification import Notification, NotificationPriority, NotificationType
from meetup.utils.datetimes import utcnow

logger = logging.getLogger(__name__)

_TEMPLATES: Dict[NotificationType, Dict[str, str]] = {
    NotificationType.NEW_APPLICATION: {
        "title": "New application",
        "message": "'{actor}' applied to join '{meeting_title}'.",
    },
    NotificationType.PARTICIPANT_APPROVED: {
        "title": "Application approved",
        "message": "Your application to '{meeting_title}' was approved.",
    },
    NotificationType.PARTICIPANT_REJECTED: {
        "title": "Application declined",
        "message": "Your application to '{meeting_title}' was declined.",
    },
    NotificationType.PARTICIPANT_KICKED: {
        "title": "Removed from meeting",
        "message": "You were removed from '{meeting_title}'.",
    },
    NotificationType.MEMBER_WITHDRAWN: {
        "title": "Member left",
        "message": "'{actor}' left '{meeting_title}'.",
    },
    NotificationType.MEETING_CANCELLED: {
        "title": "Meeting cancelled",
        "message": "'{meeting_title}' has been cancelled by the host.",
    },
}


class NotificationManager:
    """Outbox writer and reader for member notifications.

    ``enqueue`` only adds the row to the caller's session: it is committed or
    rolled back together with the state change that produced it.
    """

    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=recipient_id,
            type=NotificationType(notification_type).value,
            title=title,
            message=message,
            priority=NotificationPriority(priority).value,
            data=dict(data) if data else None,
        )
        self.db.add(notification)
        logger.debug(
            "Queued %s notification for user %s", notification.type, recipient_id
        )
        return notification

    def enqueue_event(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        priority: NotificationPriority,
        meeting_title: str,
        actor: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        template = _TEMPLATES[NotificationType(notification_type)]
        message = template["message"].format(
            actor=actor or "A member", meeting_title=meeting_title
        )
        return self.enqueue(
            recipient_id,
            notification_type,
            template["title"],
            message,
            priority=priority,
            data=data,
        )

    def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def mark_as_read(self, notification_id: int, user_id: str) -> Notification:
        with write_transaction(self.db, "mark the notification as read"):
            notification = (
                self.db.query(Notification)
                .filter(
                    Notification.id == notification_id,
                    Notification.user_id == user_id,
                )
                .one_or_none()
            )
            if notification is None:
                raise NotFoundError("Notification not found")
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
        self.db.refresh(notification)
        return notification


def get_notification_manager(db: Session = Depends(get_db)) -> NotificationManager:
    """Dependency provider for NotificationManager."""
    return NotificationManager(db=db)
