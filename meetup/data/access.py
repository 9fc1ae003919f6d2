"""Lookups, authority checks and the write-transaction wrapper shared by managers.

Soft-deleted meetings are hidden here and nowhere else: every manager reaches
meetings and activities through ``visible_meetings``/``get_meeting_or_404``/
``get_activity_or_404`` or joins with ``MEETING_VISIBLE``.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from meetup.database import WRITER_LOCK_OPTIONS
from meetup.errors import ForbiddenError, NotFoundError
from meetup.models.activity import MeetingActivity
from meetup.models.meeting import Meeting
from meetup.models.participant import Participant, ParticipantStatus
from meetup.models.user import User, UserBlock

logger = logging.getLogger(__name__)

MEETING_VISIBLE = Meeting.deleted_at.is_(None)


def visible_meetings(db: Session) -> Query:
    return db.query(Meeting).filter(MEETING_VISIBLE)


def get_meeting_or_404(db: Session, meeting_id: str, *options) -> Meeting:
    query = visible_meetings(db).filter(Meeting.meeting_id == meeting_id)
    if options:
        query = query.options(*options)
    meeting = query.one_or_none()
    if meeting is None:
        raise NotFoundError("Meeting not found")
    return meeting


def get_activity_or_404(db: Session, activity_id: str) -> MeetingActivity:
    activity = (
        db.query(MeetingActivity)
        .join(Meeting, Meeting.meeting_id == MeetingActivity.meeting_id)
        .filter(MeetingActivity.activity_id == activity_id, MEETING_VISIBLE)
        .options(joinedload(MeetingActivity.meeting))
        .one_or_none()
    )
    if activity is None:
        raise NotFoundError("Activity not found")
    return activity


def require_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def is_host(meeting: Meeting, user_id: str) -> bool:
    return meeting.host_id == user_id


def require_host(meeting: Meeting, caller_id: str) -> None:
    if not is_host(meeting, caller_id):
        logger.info(
            "User %s denied host action on meeting %s", caller_id, meeting.meeting_id
        )
        raise ForbiddenError("Only the host can perform this action")


def is_approved_member(db: Session, meeting_id: str, user_id: str) -> bool:
    return (
        db.query(Participant.participant_id)
        .filter(
            Participant.meeting_id == meeting_id,
            Participant.user_id == user_id,
            Participant.status == ParticipantStatus.APPROVED.value,
        )
        .first()
        is not None
    )


def require_host_or_approved_member(db: Session, meeting: Meeting, caller_id: str) -> None:
    if is_host(meeting, caller_id):
        return
    if not is_approved_member(db, meeting.meeting_id, caller_id):
        raise ForbiddenError("Only the host or approved members can do this")


def is_blocked(db: Session, user_id: str, other_id: str) -> bool:
    """True when either user has blocked the other."""
    return (
        db.query(UserBlock.id)
        .filter(
            or_(
                and_(UserBlock.blocker_id == user_id, UserBlock.blocked_id == other_id),
                and_(UserBlock.blocker_id == other_id, UserBlock.blocked_id == user_id),
            )
        )
        .first()
        is not None
    )


def begin_write(db: Session) -> None:
    """Start a transaction that holds the writer lock from its first statement.

    A read transaction still open on the session is committed first; its
    deferred snapshot cannot be upgraded safely once another writer commits.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options=WRITER_LOCK_OPTIONS)


@contextmanager
def write_transaction(db: Session, action: str) -> Iterator[Session]:
    """Commit the block as one unit; any failure rolls every write in it back.

    Typed failures propagate unchanged. Database errors are logged and surface
    as a generic 500 naming ``action``.
    """
    try:
        begin_write(db)
        yield db
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        logger.error("Database error while trying to %s: %s", action, exc, exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action} due to a database error.",
        )
