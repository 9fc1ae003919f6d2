from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from meetup.models.meeting import MeetingStatus
from meetup.models.participant import ParticipantStatus
from meetup.schemas.common import UserSummary, UtcDatetime, strip_or_none


class ScheduleCreate(BaseModel):
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = Field(None, max_length=200)
    note: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def ensure_order(self) -> "ScheduleCreate":
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleUpdate(BaseModel):
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = Field(None, max_length=200)
    note: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def ensure_order(self) -> "ScheduleUpdate":
        # Only checks a pair sent together; the manager checks against stored values.
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleResponse(BaseModel):
    id: int
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = None
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=30)
    location: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = Field(None, max_length=500)
    capacity: int = Field(..., json_schema_extra={"example": 10})
    auto_approve: bool = False
    schedules: List[ScheduleCreate] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("category", "location", "image_url", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return strip_or_none(value)


class MeetingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=30)
    location: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = Field(None, max_length=500)
    capacity: Optional[int] = None
    auto_approve: Optional[bool] = None
    status: Optional[MeetingStatus] = None


class MeetingResponse(BaseModel):
    meeting_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    capacity: int
    approved_count: int
    participant_count: int = 0
    status: MeetingStatus
    auto_approve: bool
    view_count: int
    host_id: str
    host: Optional[UserSummary] = None
    schedules: List[ScheduleResponse] = Field(default_factory=list)
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}


class MeetingDetail(MeetingResponse):
    is_bookmarked: bool = False
    participant_status: Optional[ParticipantStatus] = None


class MeetingListResponse(BaseModel):
    items: List[MeetingResponse]
    total: int
    page: int
    limit: int
    total_pages: int
