"""
Data access layer providing managers for meetings, participants, activities,
attendance and notifications. Every manager works on one request-scoped session.
"""

from .meeting_manager import MeetingManager
from .participant_manager import ParticipantManager
from .activity_manager import ActivityManager
from .attendance_manager import AttendanceManager
from .notification_manager import NotificationManager

__all__ = [
    "MeetingManager",
    "ParticipantManager",
    "ActivityManager",
    "AttendanceManager",
    "NotificationManager",
]
