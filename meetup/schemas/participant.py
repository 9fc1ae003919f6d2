from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from meetup.models.meeting import MeetingStatus
from meetup.models.participant import ParticipantStatus
from meetup.schemas.common import UserSummary, UtcDatetime, strip_or_none


class ParticipantStatusUpdate(BaseModel):
    status: ParticipantStatus


class WithdrawRequest(BaseModel):
    # Upper bound is enforced against participation.withdraw_reason_max_length.
    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return strip_or_none(value)


class ParticipantResponse(BaseModel):
    participant_id: str
    meeting_id: str
    user_id: str
    status: ParticipantStatus
    withdraw_reason: Optional[str] = None
    withdrawn_at: Optional[UtcDatetime] = None
    reviewed_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class MeetingSummary(BaseModel):
    meeting_id: str
    title: str
    category: Optional[str] = None
    image_url: Optional[str] = None
    status: MeetingStatus
    capacity: int
    approved_count: int

    model_config = {"from_attributes": True}


class MyParticipationResponse(ParticipantResponse):
    meeting: MeetingSummary



class BulkReviewRequest(BaseModel):
    participant_ids: List[str] = Field(..., min_length=1, max_length=100)
    status: ParticipantStatus


class BulkReviewItem(BaseModel):
    participant_id: str
    success: bool
    status: Optional[ParticipantStatus] = None
    code: Optional[str] = None
    detail: Optional[str] = None


class BulkReviewResult(BaseModel):
    succeeded: int
    failed: int
    results: List[BulkReviewItem]
