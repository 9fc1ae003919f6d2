import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from meetup.config.loader import get_attendance_settings
from meetup.data.access import (
    MEETING_VISIBLE,
    begin_write,
    get_activity_or_404,
    require_host_or_approved_member,
    write_transaction,
)
from meetup.database import get_db
from meetup.errors import InvalidInputError
from meetup.models.activity import ActivityAttendance, AttendanceStatus, MeetingActivity
from meetup.models.meeting import Meeting
from meetup.schemas.activity import (
    AttendanceResponse,
    AttendanceUpdateResult,
    CalendarEvent,
    ConflictEntry,
)
from meetup.services.schedule_conflicts import (
    ScheduledItem,
    candidate_window,
    find_conflicts,
    month_range,
    occupied_window,
)
from meetup.utils.datetimes import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def calendar_zone() -> tzinfo:
    name = get_attendance_settings()["calendar_timezone"]
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown calendar timezone %r; falling back to UTC", name)
        return timezone.utc


class AttendanceManager:
    """Attendance answers per activity, with schedule conflict detection."""

    def __init__(self, db: Session):
        self.db = db

    def detect_conflicts(
        self, activity: MeetingActivity, user_id: str
    ) -> List[ConflictEntry]:
        """Other activities the user attends whose time overlaps ``activity``."""
        settings = get_attendance_settings()
        zone = calendar_zone()
        candidate = candidate_window(
            activity.date,
            activity.end_time,
            timedelta(minutes=settings["default_duration_minutes"]),
        )

        rows = (
            self.db.query(MeetingActivity, Meeting.title)
            .join(
                ActivityAttendance,
                ActivityAttendance.activity_id == MeetingActivity.activity_id,
            )
            .join(Meeting, Meeting.meeting_id == MeetingActivity.meeting_id)
            .filter(
                ActivityAttendance.user_id == user_id,
                ActivityAttendance.status == AttendanceStatus.ATTENDING.value,
                ActivityAttendance.activity_id != activity.activity_id,
                MEETING_VISIBLE,
            )
            .all()
        )
        existing = [
            ScheduledItem(
                activity_id=other.activity_id,
                title=other.title,
                meeting_title=meeting_title,
                start=ensure_utc(other.date),
                end=ensure_utc(other.end_time),
            )
            for other, meeting_title in rows
        ]
        return [
            ConflictEntry(
                activity_id=item.activity_id,
                title=item.title,
                meeting_title=item.meeting_title,
                start=item.start,
                end=occupied_window(item.start, item.end, zone).end,
                all_day=item.end is None,
            )
            for item in find_conflicts(candidate, existing, zone)
        ]

    def update_attendance(
        self,
        activity_id: str,
        user_id: str,
        status: AttendanceStatus,
        confirm: bool = False,
    ) -> AttendanceUpdateResult:
        """Record the user's answer for an activity.

        An ATTENDING answer that overlaps another attended activity is not
        written unless ``confirm`` is set; the overlaps are returned instead.
        A confirmed call writes without checking again.
        """
        target = AttendanceStatus(status)
        activity = get_activity_or_404(self.db, activity_id)
        require_host_or_approved_member(self.db, activity.meeting, user_id)

        if target == AttendanceStatus.ATTENDING and not confirm:
            conflicts = self.detect_conflicts(activity, user_id)
            if conflicts:
                logger.info(
                    "Attendance for %s on %s held back: %d schedule conflicts",
                    user_id,
                    activity_id,
                    len(conflicts),
                )
                self.db.rollback()
                return AttendanceUpdateResult(has_conflict=True, conflicts=conflicts)

        record = self._upsert(activity_id, user_id, target)
        return AttendanceUpdateResult(
            attendance=AttendanceResponse.model_validate(record)
        )

    def _upsert(
        self, activity_id: str, user_id: str, target: AttendanceStatus
    ) -> ActivityAttendance:
        with write_transaction(self.db, "update attendance"):
            record = self._find(activity_id, user_id)
            if record is None:
                record = ActivityAttendance(
                    activity_id=activity_id,
                    user_id=user_id,
                    status=target.value,
                )
                self.db.add(record)
                try:
                    self.db.flush()
                except IntegrityError:
                    # Raced with a concurrent first answer; overwrite the row it created.
                    self.db.rollback()
                    begin_write(self.db)
                    record = self._find(activity_id, user_id)
            record.status = target.value
            record.responded_at = utcnow()
        self.db.refresh(record)
        return record

    def _find(self, activity_id: str, user_id: str) -> Optional[ActivityAttendance]:
        return (
            self.db.query(ActivityAttendance)
            .filter(
                ActivityAttendance.activity_id == activity_id,
                ActivityAttendance.user_id == user_id,
            )
            .one_or_none()
        )

    def get_my_calendar_events(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CalendarEvent]:
        """Attended activities dated within [start, end], defaulting to this month."""
        if start is None or end is None:
            month_start, month_end = month_range(start or end or utcnow(), calendar_zone())
            start = start or month_start
            end = end or month_end
        start, end = ensure_utc(start), ensure_utc(end)
        if start > end:
            raise InvalidInputError("Calendar start must not be after its end")

        rows = (
            self.db.query(ActivityAttendance, MeetingActivity, Meeting)
            .join(
                MeetingActivity,
                MeetingActivity.activity_id == ActivityAttendance.activity_id,
            )
            .join(Meeting, Meeting.meeting_id == MeetingActivity.meeting_id)
            .filter(
                ActivityAttendance.user_id == user_id,
                ActivityAttendance.status == AttendanceStatus.ATTENDING.value,
                MeetingActivity.date >= start,
                MeetingActivity.date <= end,
                MEETING_VISIBLE,
            )
            .order_by(MeetingActivity.date.asc(), MeetingActivity.activity_id.asc())
            .all()
        )
        return [
            CalendarEvent(
                activity_id=activity.activity_id,
                title=activity.title,
                date=activity.date,
                end_time=activity.end_time,
                location=activity.location,
                attendance_status=AttendanceStatus(attendance.status),
                meeting_id=meeting.meeting_id,
                meeting_title=meeting.title,
                meeting_category=meeting.category,
                meeting_image_url=meeting.image_url,
            )
            for attendance, activity, meeting in rows
        ]

    def get_activity_attendances(self, activity_id: str) -> List[ActivityAttendance]:
        get_activity_or_404(self.db, activity_id)
        return (
            self.db.query(ActivityAttendance)
            .options(joinedload(ActivityAttendance.user))
            .filter(ActivityAttendance.activity_id == activity_id)
            .order_by(ActivityAttendance.responded_at.asc(), ActivityAttendance.id.asc())
            .all()
        )

    def get_my_attendance(
        self, activity_id: str, user_id: str
    ) -> Optional[ActivityAttendance]:
        get_activity_or_404(self.db, activity_id)
        return self._find(activity_id, user_id)


def get_attendance_manager(db: Session = Depends(get_db)) -> AttendanceManager:
    """Dependency provider for AttendanceManager."""
    return AttendanceManager(db=db)
