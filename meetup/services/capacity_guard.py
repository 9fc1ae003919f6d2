"""Atomic capacity slots for meetings.

``meetings.approved_count`` is a compare-and-swap counter: a slot is taken with
one conditional UPDATE that only matches while the meeting still has room, so
the check and the increment cannot be separated by a concurrent writer. The
caller's transaction owns the commit; the participant's APPROVED write must be
flushed in the same transaction.
"""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from meetup.errors import CapacityExceededError
from meetup.models.meeting import Meeting

logger = logging.getLogger(__name__)


def acquire(db: Session, meeting_id: str) -> None:
    result = db.execute(
        update(Meeting)
        .where(
            Meeting.meeting_id == meeting_id,
            Meeting.approved_count < Meeting.capacity,
        )
        .values(approved_count=Meeting.approved_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Capacity slot refused for meeting %s", meeting_id)
        raise CapacityExceededError()
    _refresh_counter(db, meeting_id)


def release(db: Session, meeting_id: str) -> None:
    db.execute(
        update(Meeting)
        .where(Meeting.meeting_id == meeting_id, Meeting.approved_count > 0)
        .values(approved_count=Meeting.approved_count - 1)
        .execution_options(synchronize_session=False)
    )
    _refresh_counter(db, meeting_id)


def reset(db: Session, meeting_id: str) -> None:
    """Drop every slot, used when the whole meeting is called off."""
    db.execute(
        update(Meeting)
        .where(Meeting.meeting_id == meeting_id)
        .values(approved_count=0)
        .execution_options(synchronize_session=False)
    )
    _refresh_counter(db, meeting_id)


def _refresh_counter(db: Session, meeting_id: str) -> None:
    # The UPDATE bypassed the identity map; drop the stale loaded value if any.
    meeting = db.identity_map.get(db.identity_key(Meeting, meeting_id))
    if meeting is not None:
        db.expire(meeting, ["approved_count"])
