from typing import Any, Dict, Optional

from pydantic import BaseModel

from meetup.models.notification import NotificationPriority, NotificationType
from meetup.schemas.common import UtcDatetime


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}
