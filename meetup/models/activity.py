from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from meetup.database import Base
from meetup.utils.datetimes import utcnow


class AttendanceStatus(str, Enum):
    PENDING = "PENDING"
    ATTENDING = "ATTENDING"
    NOT_ATTENDING = "NOT_ATTENDING"
    MAYBE = "MAYBE"


class MeetingActivity(Base):
    __tablename__ = "meeting_activities"

    activity_id = Column(String(40), primary_key=True, index=True)
    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(200), nullable=True)
    created_by_id = Column(String(20), ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    meeting = relationship("Meeting", back_populates="activities")
    created_by = relationship("User", foreign_keys=[created_by_id])
    images = relationship(
        "ActivityImage",
        back_populates="activity",
        cascade="all, delete-orphan",
        order_by="ActivityImage.order_index",
    )
    attendances = relationship(
        "ActivityAttendance",
        back_populates="activity",
        cascade="all, delete-orphan",
    )


class ActivityImage(Base):
    __tablename__ = "activity_images"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(
        String(40),
        ForeignKey("meeting_activities.activity_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_url = Column(String(500), nullable=False)
    caption = Column(String(200), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    activity = relationship("MeetingActivity", back_populates="images")


class ActivityAttendance(Base):
    """A member's answer for one activity; updated in place, never deleted."""

    __tablename__ = "activity_attendances"
    __table_args__ = (
        UniqueConstraint("activity_id", "user_id", name="uq_activity_attendances_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(
        String(40),
        ForeignKey("meeting_activities.activity_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AttendanceStatus.PENDING.value)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    activity = relationship("MeetingActivity", back_populates="attendances")
    user = relationship("User")
