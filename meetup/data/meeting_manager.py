import logging
import math
from typing import Optional

from fastapi import Depends
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from meetup.config.loader import get_meeting_limits
from meetup.data.access import (
    begin_write,
    get_meeting_or_404,
    require_host,
    require_user,
    visible_meetings,
    write_transaction,
)
from meetup.data.notification_manager import NotificationManager
from meetup.data.participant_manager import perform_transition
from meetup.database import get_db
from meetup.errors import InvalidInputError, InvalidStateError, NotFoundError
from meetup.models.meeting import Bookmark, Meeting, MeetingSchedule, MeetingStatus
from meetup.models.participant import Participant, ParticipantStatus
from meetup.schemas.meeting import (
    MeetingCreate,
    MeetingDetail,
    MeetingListResponse,
    MeetingResponse,
    MeetingUpdate,
    ScheduleCreate,
    ScheduleUpdate,
)
from meetup.services import capacity_guard
from meetup.services.participation_rules import ParticipationEvent, resolve
from meetup.utils.datetimes import ensure_utc, utcnow
from meetup.utils.identifiers import generate_meeting_id

logger = logging.getLogger(__name__)

_MEETING_DETAIL_OPTIONS = (
    joinedload(Meeting.host),
    selectinload(Meeting.schedules),
)


class MeetingManager:
    """Manages meeting lifecycle data using SQLAlchemy."""

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationManager(db)

    @staticmethod
    def _validate_capacity(capacity: int) -> None:
        limits = get_meeting_limits()
        if capacity < limits["min_capacity"]:
            raise InvalidInputError(
                f"Capacity must be at least {limits['min_capacity']}"
            )
        if capacity > limits["max_capacity"]:
            raise InvalidInputError(
                f"Capacity must be at most {limits['max_capacity']}"
            )

    def get_meeting(self, meeting_id: str) -> Meeting:
        return get_meeting_or_404(self.db, meeting_id, *_MEETING_DETAIL_OPTIONS)

    def create_meeting(self, host_id: str, meeting_data: MeetingCreate) -> Meeting:
        """Create a meeting together with its initial schedule entries.

        Args:
            host_id: the creating user, who becomes the host
            meeting_data: validated MeetingCreate payload

        Returns:
            The created Meeting with host and schedules loaded; it starts
            RECRUITING with no approved participants.

        Raises:
            InvalidInputError: capacity outside the configured bounds
            NotFoundError: the host user does not exist
        """
        self._validate_capacity(meeting_data.capacity)

        with write_transaction(self.db, "create the meeting"):
            host = require_user(self.db, host_id)
            db_meeting = Meeting(
                meeting_id=generate_meeting_id(self.db, utcnow()),
                title=meeting_data.title,
                description=meeting_data.description,
                category=meeting_data.category,
                location=meeting_data.location,
                image_url=meeting_data.image_url,
                capacity=meeting_data.capacity,
                approved_count=0,
                status=MeetingStatus.RECRUITING.value,
                auto_approve=meeting_data.auto_approve,
                view_count=0,
                host_id=host.user_id,
            )
            for entry in meeting_data.schedules:
                db_meeting.schedules.append(
                    MeetingSchedule(
                        start_time=entry.start_time,
                        end_time=entry.end_time,
                        location=entry.location,
                        note=entry.note,
                    )
                )
            self.db.add(db_meeting)

        logger.info(
            "Created meeting %s (%s) for host %s",
            db_meeting.meeting_id,
            db_meeting.title,
            host_id,
        )
        return self.get_meeting(db_meeting.meeting_id)

    def update_meeting(
        self, meeting_id: str, caller_id: str, meeting_data: MeetingUpdate
    ) -> Meeting:
        changes = meeting_data.model_dump(exclude_unset=True)

        with write_transaction(self.db, "update the meeting"):
            meeting = self._editable_meeting(meeting_id, caller_id)
            if changes.get("status") == MeetingStatus.CANCELLED:
                raise InvalidStateError("Use the cancel action to cancel a meeting")

            if changes.get("capacity") is not None:
                self._validate_capacity(changes["capacity"])
                if changes["capacity"] < meeting.approved_count:
                    raise InvalidStateError(
                        "Capacity cannot be lower than the number of approved participants"
                    )

            for field, value in changes.items():
                if value is None and field in {"title", "capacity", "auto_approve", "status"}:
                    continue
                if field == "status":
                    value = MeetingStatus(value).value
                setattr(meeting, field, value)

        return self.get_meeting(meeting_id)

    def remove_meeting(self, meeting_id: str, caller_id: str) -> None:
        """Soft delete: the row stays for history but disappears from every lookup."""
        with write_transaction(self.db, "delete the meeting"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            require_host(meeting, caller_id)
            meeting.deleted_at = utcnow()
        logger.info("Meeting %s soft-deleted by %s", meeting_id, caller_id)

    def cancel_meeting(self, meeting_id: str, caller_id: str) -> str:
        """Cancel a meeting and everyone still waiting on or holding a place in it.

        The status change, the participant overwrites and one CRITICAL
        notification per approved participant are committed together.
        """
        with write_transaction(self.db, "cancel the meeting"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            require_host(meeting, caller_id)
            if meeting.status == MeetingStatus.CANCELLED.value:
                raise InvalidStateError("Meeting is already cancelled")

            meeting.status = MeetingStatus.CANCELLED.value
            affected = (
                self.db.query(Participant)
                .filter(
                    Participant.meeting_id == meeting_id,
                    Participant.status.in_(
                        [ParticipantStatus.PENDING.value, ParticipantStatus.APPROVED.value]
                    ),
                )
                .order_by(Participant.created_at.asc())
                .all()
            )
            notified = 0
            for participant in affected:
                transition = resolve(participant.status, ParticipationEvent.MEETING_CANCELLED)
                perform_transition(
                    self.db, self.notifications, meeting, participant, transition
                )
                if transition.notify is not None:
                    notified += 1
            capacity_guard.reset(self.db, meeting_id)

        logger.info(
            "Meeting %s cancelled by host; %d participants released, %d notified",
            meeting_id,
            len(affected),
            notified,
        )
        return "Meeting cancelled"

    def _editable_meeting(self, meeting_id: str, caller_id: str) -> Meeting:
        meeting = get_meeting_or_404(self.db, meeting_id)
        require_host(meeting, caller_id)
        if meeting.status == MeetingStatus.CANCELLED.value:
            raise InvalidStateError("A cancelled meeting cannot be edited")
        return meeting

    def _get_schedule(self, meeting_id: str, schedule_id: int) -> MeetingSchedule:
        schedule = (
            self.db.query(MeetingSchedule)
            .filter(
                MeetingSchedule.id == schedule_id,
                MeetingSchedule.meeting_id == meeting_id,
            )
            .one_or_none()
        )
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    def add_schedule(
        self, meeting_id: str, caller_id: str, schedule_data: ScheduleCreate
    ) -> MeetingSchedule:
        with write_transaction(self.db, "add the schedule"):
            self._editable_meeting(meeting_id, caller_id)
            schedule = MeetingSchedule(
                meeting_id=meeting_id,
                start_time=schedule_data.start_time,
                end_time=schedule_data.end_time,
                location=schedule_data.location,
                note=schedule_data.note,
            )
            self.db.add(schedule)

        self.db.refresh(schedule)
        logger.info("Schedule %s added to meeting %s", schedule.id, meeting_id)
        return schedule

    def update_schedule(
        self,
        meeting_id: str,
        schedule_id: int,
        caller_id: str,
        schedule_data: ScheduleUpdate,
    ) -> MeetingSchedule:
        """Change the fields that were sent; an explicit null clears end, location or note."""
        changes = schedule_data.model_dump(exclude_unset=True)
        if "start_time" in changes and changes["start_time"] is None:
            raise InvalidInputError("A schedule must keep its start time")

        with write_transaction(self.db, "update the schedule"):
            self._editable_meeting(meeting_id, caller_id)
            schedule = self._get_schedule(meeting_id, schedule_id)
            for field, value in changes.items():
                setattr(schedule, field, value)

            start = ensure_utc(schedule.start_time)
            end = ensure_utc(schedule.end_time)
            if end is not None and end <= start:
                raise InvalidInputError("Schedule end must be after its start")

        self.db.refresh(schedule)
        return schedule

    def remove_schedule(self, meeting_id: str, schedule_id: int, caller_id: str) -> None:
        with write_transaction(self.db, "remove the schedule"):
            self._editable_meeting(meeting_id, caller_id)
            self.db.delete(self._get_schedule(meeting_id, schedule_id))
        logger.info("Schedule %s removed from meeting %s", schedule_id, meeting_id)

    def _bump_view_count(self, meeting_id: str) -> None:
        # Best effort: a lost increment under contention is acceptable.
        try:
            begin_write(self.db)
            self.db.execute(
                update(Meeting)
                .where(Meeting.meeting_id == meeting_id)
                .values(view_count=Meeting.view_count + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Could not record view for meeting %s: %s", meeting_id, exc)
            self.db.rollback()

    def find_one(self, meeting_id: str, viewer_id: Optional[str] = None) -> MeetingDetail:
        self.get_meeting(meeting_id)
        self._bump_view_count(meeting_id)
        meeting = self.get_meeting(meeting_id)

        is_bookmarked = False
        participant_status = None
        if viewer_id:
            is_bookmarked = (
                self.db.query(Bookmark.id)
                .filter(Bookmark.meeting_id == meeting_id, Bookmark.user_id == viewer_id)
                .first()
                is not None
            )
            participant_status = (
                self.db.query(Participant.status)
                .filter(
                    Participant.meeting_id == meeting_id,
                    Participant.user_id == viewer_id,
                )
                .scalar()
            )

        detail = MeetingDetail.model_validate(meeting)
        detail.is_bookmarked = is_bookmarked
        detail.participant_status = (
            ParticipantStatus(participant_status) if participant_status else None
        )
        return detail

    def list_meetings(
        self,
        category: Optional[str] = None,
        status: Optional[MeetingStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> MeetingListResponse:
        limits = get_meeting_limits()
        page = max(1, page)
        limit = min(max(1, limit or limits["default_page_size"]), limits["max_page_size"])

        query = visible_meetings(self.db)
        if category:
            query = query.filter(Meeting.category == category)
        if status is not None:
            query = query.filter(Meeting.status == MeetingStatus(status).value)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(Meeting.title.ilike(pattern), Meeting.description.ilike(pattern))
            )

        total = query.count()
        meetings = (
            query.options(*_MEETING_DETAIL_OPTIONS)
            .order_by(Meeting.created_at.desc(), Meeting.meeting_id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return MeetingListResponse(
            items=[MeetingResponse.model_validate(meeting) for meeting in meetings],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    def add_bookmark(self, meeting_id: str, user_id: str) -> None:
        with write_transaction(self.db, "bookmark the meeting"):
            get_meeting_or_404(self.db, meeting_id)
            require_user(self.db, user_id)
            exists = (
                self.db.query(Bookmark.id)
                .filter(Bookmark.meeting_id == meeting_id, Bookmark.user_id == user_id)
                .first()
            )
            if exists is None:
                self.db.add(Bookmark(meeting_id=meeting_id, user_id=user_id))

    def remove_bookmark(self, meeting_id: str, user_id: str) -> None:
        with write_transaction(self.db, "remove the bookmark"):
            (
                self.db.query(Bookmark)
                .filter(Bookmark.meeting_id == meeting_id, Bookmark.user_id == user_id)
                .delete(synchronize_session=False)
            )


def get_meeting_manager(db: Session = Depends(get_db)) -> MeetingManager:
    """Dependency provider for MeetingManager."""
    return MeetingManager(db=db)
