from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from meetup.database import Base
from meetup.utils.datetimes import utcnow


class NotificationType(str, Enum):
    NEW_APPLICATION = "NEW_APPLICATION"
    PARTICIPANT_APPROVED = "PARTICIPANT_APPROVED"
    PARTICIPANT_REJECTED = "PARTICIPANT_REJECTED"
    PARTICIPANT_KICKED = "PARTICIPANT_KICKED"
    MEMBER_WITHDRAWN = "MEMBER_WITHDRAWN"
    MEETING_CANCELLED = "MEETING_CANCELLED"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Notification(Base):
    """Outbox row written in the same transaction as the change it reports."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(10), nullable=False, default=NotificationPriority.NORMAL.value)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
