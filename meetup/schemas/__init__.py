from .common import MessageResponse, UserSummary
from .meeting import (
    MeetingCreate,
    MeetingUpdate,
    MeetingResponse,
    MeetingDetail,
    MeetingListResponse,
    ScheduleCreate,
)
from .participant import (
    ParticipantResponse,
    ParticipantStatusUpdate,
    MyParticipationResponse,
    WithdrawRequest,
)
from .activity import (
    ActivityCreate,
    ActivityUpdate,
    ActivityResponse,
    AttendanceUpdate,
    AttendanceUpdateResult,
    CalendarEvent,
    ConflictEntry,
)
from .notification import NotificationResponse

__all__ = [
    "MessageResponse",
    "UserSummary",
    "MeetingCreate",
    "MeetingUpdate",
    "MeetingResponse",
    "MeetingDetail",
    "MeetingListResponse",
    "ScheduleCreate",
    "ParticipantResponse",
    "ParticipantStatusUpdate",
    "MyParticipationResponse",
    "WithdrawRequest",
    "ActivityCreate",
    "ActivityUpdate",
    "ActivityResponse",
    "AttendanceUpdate",
    "AttendanceUpdateResult",
    "CalendarEvent",
    "ConflictEntry",
    "NotificationResponse",
]
