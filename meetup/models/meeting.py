from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
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


class MeetingStatus(str, Enum):
    DRAFT = "DRAFT"
    RECRUITING = "RECRUITING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Meeting(Base):
    __tablename__ = "meetings"
    __table_args__ = (
        CheckConstraint("capacity >= 2", name="ck_meetings_capacity_min"),
        CheckConstraint("approved_count >= 0", name="ck_meetings_approved_non_negative"),
        # approved_count is only moved by the capacity guard's conditional UPDATE
        CheckConstraint(
            "approved_count <= capacity", name="ck_meetings_approved_within_capacity"
        ),
    )

    meeting_id = Column(String(20), primary_key=True, index=True)
    title = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(30), nullable=True, index=True)
    location = Column(String(200), nullable=True)
    image_url = Column(String(500), nullable=True)
    capacity = Column(Integer, nullable=False)
    approved_count = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(String(20), nullable=False, default=MeetingStatus.RECRUITING.value)
    auto_approve = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    host_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)

    host = relationship(
        "User",
        back_populates="hosted_meetings",
        foreign_keys=[host_id],
    )

    schedules = relationship(
        "MeetingSchedule",
        back_populates="meeting",
        cascade="all, delete-orphan",
        order_by="MeetingSchedule.start_time",
    )

    participants = relationship(
        "Participant",
        back_populates="meeting",
        cascade="all, delete-orphan",
    )

    activities = relationship(
        "MeetingActivity",
        back_populates="meeting",
        cascade="all, delete-orphan",
    )

    bookmarks = relationship(
        "Bookmark",
        back_populates="meeting",
        cascade="all, delete-orphan",
    )

    @property
    def participant_count(self) -> int:
        return self.approved_count or 0

    def __repr__(self):
        return (
            f"<Meeting(meeting_id={self.meeting_id}, title='{self.title}', "
            f"status='{self.status}', approved={self.approved_count}/{self.capacity})>"
        )


class MeetingSchedule(Base):
    __tablename__ = "meeting_schedules"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(200), nullable=True)
    note = Column(String(500), nullable=True)

    meeting = relationship("Meeting", back_populates="schedules")


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "meeting_id", name="uq_bookmarks_user_meeting"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)

    meeting = relationship("Meeting", back_populates="bookmarks")
