from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from meetup.models.activity import AttendanceStatus
from meetup.schemas.common import UserSummary, UtcDatetime


class ActivityImageCreate(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=500)
    caption: Optional[str] = Field(None, max_length=200)
    order_index: Optional[int] = Field(None, ge=0)


class ActivityImageResponse(BaseModel):
    id: int
    image_url: str
    caption: Optional[str] = None
    order_index: int

    model_config = {"from_attributes": True}


class ActivityCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    date: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = Field(None, max_length=200)
    images: List[ActivityImageCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_order(self) -> "ActivityCreate":
        if self.end_time is not None and self.end_time <= self.date:
            raise ValueError("end_time must be after date")
        return self


class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    date: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = Field(None, max_length=200)


class ActivityImagesAdd(BaseModel):
    images: List[ActivityImageCreate] = Field(..., min_length=1)


class ActivityResponse(BaseModel):
    activity_id: str
    meeting_id: str
    title: str
    description: Optional[str] = None
    date: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = None
    created_by_id: str
    images: List[ActivityImageResponse] = Field(default_factory=list)
    created_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}


class AttendanceUpdate(BaseModel):
    status: AttendanceStatus
    confirm: bool = False


class AttendanceResponse(BaseModel):
    id: int
    activity_id: str
    user_id: str
    status: AttendanceStatus
    responded_at: Optional[UtcDatetime] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class ConflictEntry(BaseModel):
    activity_id: str
    title: str
    meeting_title: str
    start: UtcDatetime
    # End of the blocked span; for an open-ended activity, the end of its local day.
    end: UtcDatetime
    all_day: bool = False


class AttendanceUpdateResult(BaseModel):
    has_conflict: bool = False
    conflicts: List[ConflictEntry] = Field(default_factory=list)
    attendance: Optional[AttendanceResponse] = None


class CalendarEvent(BaseModel):
    activity_id: str
    title: str
    date: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    location: Optional[str] = None
    attendance_status: AttendanceStatus
    meeting_id: str
    meeting_title: str
    meeting_category: Optional[str] = None
    meeting_image_url: Optional[str] = None
