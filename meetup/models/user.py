from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from meetup.database import Base
from meetup.utils.datetimes import utcnow


class User(Base):
    """Minimal member record; profiles and credentials live elsewhere."""

    __tablename__ = "users"

    user_id = Column(String(20), primary_key=True, index=True)
    nickname = Column(String(30), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    hosted_meetings = relationship(
        "Meeting",
        back_populates="host",
        foreign_keys="Meeting.host_id",
    )
    participations = relationship("Participant", back_populates="user")

    def __repr__(self):
        return f"<User(user_id={self.user_id}, nickname='{self.nickname}')>"


class UserBlock(Base):
    __tablename__ = "user_blocks"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_user_blocks_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    blocker_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    blocked_id = Column(String(20), ForeignKey("users.user_id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
