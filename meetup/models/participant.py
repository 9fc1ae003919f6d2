from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from meetup.database import Base
from meetup.utils.datetimes import utcnow


class ParticipantStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    KICKED = "KICKED"
    ATTENDED = "ATTENDED"


class Participant(Base):
    """One row per (meeting, user); transitions overwrite the row in place."""

    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("meeting_id", "user_id", name="uq_participants_meeting_user"),
        Index("ix_participants_meeting_status", "meeting_id", "status"),
    )

    participant_id = Column(String(24), primary_key=True, index=True)
    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ParticipantStatus.PENDING.value)
    withdraw_reason = Column(String(200), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    meeting = relationship("Meeting", back_populates="participants")
    user = relationship("User", back_populates="participations")

    def __repr__(self):
        return (
            f"<Participant(participant_id={self.participant_id}, meeting_id={self.meeting_id}, "
            f"user_id={self.user_id}, status='{self.status}')>"
        )
