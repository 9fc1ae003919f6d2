import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from meetup.models.meeting import Meeting
from meetup.models.activity import MeetingActivity

MEETING_ID_PREFIX = "MTG"
MEETING_ID_SUFFIX_WIDTH = 4

PARTICIPANT_ID_PREFIX = "PRT"
RECORD_RANDOM_WIDTH = 5

ACTIVITY_ID_STEM = "ACT"
ACTIVITY_SEQUENCE_WIDTH = 4


def _format_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if number == 0:
        return "0"
    result = []
    while number:
        number, remainder = divmod(number, 36)
        result.append(digits[remainder])
    return "".join(reversed(result))


def _next_meeting_sequence(db: Session, date_prefix: str) -> int:
    like_pattern = f"{date_prefix}-%"
    latest: Optional[str] = (
        db.query(Meeting.meeting_id)
        .filter(Meeting.meeting_id.like(like_pattern))
        .order_by(Meeting.meeting_id.desc())
        .limit(1)
        .scalar()
    )
    if not latest:
        return 1
    try:
        suffix = latest.split("-")[-1]
        return int(suffix, 36) + 1
    except (ValueError, IndexError):
        return 1


def generate_meeting_id(db: Session, created_at: Optional[datetime] = None) -> str:
    """
    Construct a unique meeting identifier with the format MTGYYYYMMDD-XXXX
    where the suffix is a zero-padded base36 sequence scoped to the given day.
    """
    timestamp = (created_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    date_prefix = f"{MEETING_ID_PREFIX}{timestamp:%Y%m%d}"
    sequence = _next_meeting_sequence(db, date_prefix)
    suffix = _format_base36(sequence).upper().rjust(MEETING_ID_SUFFIX_WIDTH, "0")
    return f"{date_prefix}-{suffix}"


def _next_activity_sequence(db: Session, meeting_id: str) -> int:
    like_pattern = f"{meeting_id}-{ACTIVITY_ID_STEM}-%"
    latest: Optional[str] = (
        db.query(MeetingActivity.activity_id)
        .filter(
            MeetingActivity.meeting_id == meeting_id,
            MeetingActivity.activity_id.like(like_pattern),
        )
        .order_by(MeetingActivity.activity_id.desc())
        .limit(1)
        .scalar()
    )
    if not latest:
        return 1
    try:
        return int(latest.split("-")[-1]) + 1
    except (ValueError, IndexError):
        return 1


def generate_activity_id(db: Session, meeting_id: str) -> str:
    """
    Generate an activity identifier following MEETING-ACT-NNNN where the
    sequence is local to the meeting.
    """
    safe_meeting = (meeting_id or "").strip() or MEETING_ID_PREFIX
    sequence = _next_activity_sequence(db, safe_meeting)
    return f"{safe_meeting}-{ACTIVITY_ID_STEM}-{sequence:0{ACTIVITY_SEQUENCE_WIDTH}d}"


def generate_participant_id() -> str:
    """
    Participant rows are created by concurrent applications, so the identifier
    mixes a millisecond clock with random base36 digits instead of a sequence.
    """
    clock = _format_base36(int(time.time() * 1000))
    noise = _format_base36(secrets.randbelow(36**RECORD_RANDOM_WIDTH)).rjust(
        RECORD_RANDOM_WIDTH, "0"
    )
    return f"{PARTICIPANT_ID_PREFIX}-{clock}{noise}"
