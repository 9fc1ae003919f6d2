from typing import List

from fastapi import APIRouter, Depends, Query

from meetup.auth.auth import get_current_user_id
from meetup.data.notification_manager import NotificationManager, get_notification_manager
from meetup.schemas.notification import NotificationResponse

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: str = Depends(get_current_user_id),
    notification_manager: NotificationManager = Depends(get_notification_manager),
):
    notifications = notification_manager.list_for_user(
        current_user, unread_only=unread_only, limit=limit
    )
    return [NotificationResponse.model_validate(item) for item in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: str = Depends(get_current_user_id),
    notification_manager: NotificationManager = Depends(get_notification_manager),
):
    notification = notification_manager.mark_as_read(notification_id, current_user)
    return NotificationResponse.model_validate(notification)
