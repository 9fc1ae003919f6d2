import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from meetup.auth.auth import get_current_user_id
from meetup.data.participant_manager import ParticipantManager, get_participant_manager
from meetup.models.participant import ParticipantStatus
from meetup.schemas.participant import (
    BulkReviewRequest,
    BulkReviewResult,
    MyParticipationResponse,
    ParticipantResponse,
    ParticipantStatusUpdate,
    WithdrawRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings/{meeting_id}/participants", tags=["participants"])
my_participations_router = APIRouter(prefix="/api/users/me", tags=["participants"])


@router.post("", response_model=ParticipantResponse, status_code=status.HTTP_201_CREATED)
async def apply_to_meeting(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    participant = participant_manager.apply(meeting_id, current_user)
    return ParticipantResponse.model_validate(participant)


@router.get("", response_model=List[ParticipantResponse])
async def list_participants(
    meeting_id: str,
    status_filter: Optional[ParticipantStatus] = Query(None, alias="status"),
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    participants = participant_manager.find_by_meeting(
        meeting_id, current_user, status_filter
    )
    return [ParticipantResponse.model_validate(item) for item in participants]


@router.delete("/me", response_model=ParticipantResponse)
async def cancel_application(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    participant = participant_manager.cancel_application(meeting_id, current_user)
    return ParticipantResponse.model_validate(participant)


@router.post("/me/withdraw", response_model=ParticipantResponse)
async def withdraw_from_meeting(
    meeting_id: str,
    payload: Optional[WithdrawRequest] = Body(None),
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    reason = payload.reason if payload else None
    participant = participant_manager.withdraw(meeting_id, current_user, reason)
    return ParticipantResponse.model_validate(participant)


@router.put("/{participant_id}", response_model=ParticipantResponse)
async def update_participant_status(
    meeting_id: str,
    participant_id: str,
    payload: ParticipantStatusUpdate,
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    participant = participant_manager.update_status(
        meeting_id, participant_id, current_user, payload.status
    )
    return ParticipantResponse.model_validate(participant)


@router.post("/bulk-review", response_model=BulkReviewResult)
async def bulk_review_participants(
    meeting_id: str,
    payload: BulkReviewRequest,
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    return participant_manager.bulk_review(
        meeting_id, current_user, payload.participant_ids, payload.status
    )


@my_participations_router.get(
    "/participations", response_model=List[MyParticipationResponse]
)
async def list_my_participations(
    status_filter: Optional[ParticipantStatus] = Query(None, alias="status"),
    current_user: str = Depends(get_current_user_id),
    participant_manager: ParticipantManager = Depends(get_participant_manager),
):
    participations = participant_manager.find_my_participations(
        current_user, status_filter
    )
    return [MyParticipationResponse.model_validate(item) for item in participations]
