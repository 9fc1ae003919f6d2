# Import models to make them accessible via meetup.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .user import User, UserBlock
from .meeting import Meeting, MeetingSchedule, Bookmark, MeetingStatus
from .participant import Participant, ParticipantStatus
from .activity import (
    MeetingActivity,
    ActivityImage,
    ActivityAttendance,
    AttendanceStatus,
)
from .notification import Notification, NotificationType, NotificationPriority

__all__ = [
    "User",
    "UserBlock",
    "Meeting",
    "MeetingSchedule",
    "Bookmark",
    "MeetingStatus",
    "Participant",
    "ParticipantStatus",
    "MeetingActivity",
    "ActivityImage",
    "ActivityAttendance",
    "AttendanceStatus",
    "Notification",
    "NotificationType",
    "NotificationPriority",
]
