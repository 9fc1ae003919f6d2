import logging
from typing import List, Sequence

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from meetup.data.access import (
    get_activity_or_404,
    get_meeting_or_404,
    require_host_or_approved_member,
    write_transaction,
)
from meetup.database import get_db
from meetup.errors import InvalidInputError, InvalidStateError, NotFoundError
from meetup.models.activity import ActivityImage, MeetingActivity
from meetup.models.meeting import MeetingStatus
from meetup.schemas.activity import ActivityCreate, ActivityImageCreate, ActivityUpdate
from meetup.utils.datetimes import ensure_utc
from meetup.utils.identifiers import generate_activity_id

logger = logging.getLogger(__name__)


class ActivityManager:
    """Scheduled sessions inside a meeting and their photo galleries."""

    def __init__(self, db: Session):
        self.db = db

    def _load(self, activity_id: str) -> MeetingActivity:
        activity = (
            self.db.query(MeetingActivity)
            .options(selectinload(MeetingActivity.images))
            .filter(MeetingActivity.activity_id == activity_id)
            .one_or_none()
        )
        if activity is None:
            raise NotFoundError("Activity not found")
        return activity

    def create_activity(
        self, meeting_id: str, caller_id: str, activity_data: ActivityCreate
    ) -> MeetingActivity:
        with write_transaction(self.db, "create the activity"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            require_host_or_approved_member(self.db, meeting, caller_id)
            if meeting.status == MeetingStatus.CANCELLED.value:
                raise InvalidStateError("Activities cannot be added to a cancelled meeting")

            activity = MeetingActivity(
                activity_id=generate_activity_id(self.db, meeting_id),
                meeting_id=meeting_id,
                title=activity_data.title,
                description=activity_data.description,
                date=activity_data.date,
                end_time=activity_data.end_time,
                location=activity_data.location,
                created_by_id=caller_id,
            )
            for index, image in enumerate(activity_data.images):
                activity.images.append(self._build_image(image, index))
            self.db.add(activity)

        logger.info("Activity %s added to meeting %s by %s", activity.activity_id, meeting_id, caller_id)
        return self._load(activity.activity_id)

    def update_activity(
        self, activity_id: str, caller_id: str, activity_data: ActivityUpdate
    ) -> MeetingActivity:
        changes = activity_data.model_dump(exclude_unset=True)
        with write_transaction(self.db, "update the activity"):
            activity = get_activity_or_404(self.db, activity_id)
            require_host_or_approved_member(self.db, activity.meeting, caller_id)

            for field, value in changes.items():
                if value is None and field in {"title", "date"}:
                    continue
                setattr(activity, field, value)

            end_time = ensure_utc(activity.end_time)
            if end_time is not None and end_time <= ensure_utc(activity.date):
                raise InvalidInputError("end_time must be after date")

        return self._load(activity_id)

    def list_activities(self, meeting_id: str) -> List[MeetingActivity]:
        get_meeting_or_404(self.db, meeting_id)
        return (
            self.db.query(MeetingActivity)
            .options(selectinload(MeetingActivity.images))
            .filter(MeetingActivity.meeting_id == meeting_id)
            .order_by(MeetingActivity.date.desc(), MeetingActivity.activity_id.desc())
            .all()
        )

    def add_activity_images(
        self, activity_id: str, caller_id: str, images: Sequence[ActivityImageCreate]
    ) -> MeetingActivity:
        """Append images after the current last position unless an order is given."""
        with write_transaction(self.db, "add activity images"):
            activity = get_activity_or_404(self.db, activity_id)
            require_host_or_approved_member(self.db, activity.meeting, caller_id)

            last_index = (
                self.db.query(func.max(ActivityImage.order_index))
                .filter(ActivityImage.activity_id == activity_id)
                .scalar()
            )
            start_index = -1 if last_index is None else last_index
            for offset, image in enumerate(images, start=1):
                record = self._build_image(image, start_index + offset)
                record.activity_id = activity_id
                self.db.add(record)

        return self._load(activity_id)

    @staticmethod
    def _build_image(image: ActivityImageCreate, default_index: int) -> ActivityImage:
        return ActivityImage(
            image_url=image.image_url,
            caption=image.caption,
            order_index=image.order_index if image.order_index is not None else default_index,
        )


def get_activity_manager(db: Session = Depends(get_db)) -> ActivityManager:
    """Dependency provider for ActivityManager."""
    return ActivityManager(db=db)
