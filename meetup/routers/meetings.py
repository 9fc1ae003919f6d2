import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from meetup.auth.auth import get_current_user_id, get_optional_user_id
from meetup.data.meeting_manager import MeetingManager, get_meeting_manager
from meetup.models.meeting import MeetingStatus
from meetup.schemas.common import MessageResponse
from meetup.schemas.meeting import (
    MeetingCreate,
    MeetingDetail,
    MeetingListResponse,
    MeetingResponse,
    MeetingUpdate,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
)

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


@router.post("/", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    payload: MeetingCreate,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    logger.debug("Creating new meeting for user: %s", current_user)
    meeting = meeting_manager.create_meeting(current_user, payload)
    return MeetingResponse.model_validate(meeting)


@router.get("/", response_model=MeetingListResponse)
async def list_meetings(
    category: Optional[str] = Query(None, max_length=30),
    status_filter: Optional[MeetingStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.list_meetings(
        category=category,
        status=status_filter,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/{meeting_id}", response_model=MeetingDetail)
async def get_meeting(
    meeting_id: str,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    return meeting_manager.find_one(meeting_id, viewer_id)


@router.put("/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: str,
    payload: MeetingUpdate,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = meeting_manager.update_meeting(meeting_id, current_user, payload)
    return MeetingResponse.model_validate(meeting)


@router.delete("/{meeting_id}", response_model=MessageResponse)
async def delete_meeting(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting_manager.remove_meeting(meeting_id, current_user)
    return MessageResponse(message="Meeting deleted")


@router.post("/{meeting_id}/cancel", response_model=MessageResponse)
async def cancel_meeting(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    message = meeting_manager.cancel_meeting(meeting_id, current_user)
    return MessageResponse(message=message)


@router.post("/{meeting_id}/bookmark", response_model=MessageResponse)
async def add_bookmark(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting_manager.add_bookmark(meeting_id, current_user)
    return MessageResponse(message="Bookmarked")


@router.delete("/{meeting_id}/bookmark", response_model=MessageResponse)
async def remove_bookmark(
    meeting_id: str,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting_manager.remove_bookmark(meeting_id, current_user)
    return MessageResponse(message="Bookmark removed")


@router.post(
    "/{meeting_id}/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_schedule(
    meeting_id: str,
    payload: ScheduleCreate,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    schedule = meeting_manager.add_schedule(meeting_id, current_user, payload)
    return ScheduleResponse.model_validate(schedule)


@router.put("/{meeting_id}/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    meeting_id: str,
    schedule_id: int,
    payload: ScheduleUpdate,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    schedule = meeting_manager.update_schedule(meeting_id, schedule_id, current_user, payload)
    return ScheduleResponse.model_validate(schedule)


@router.delete("/{meeting_id}/schedules/{schedule_id}", response_model=MessageResponse)
async def remove_schedule(
    meeting_id: str,
    schedule_id: int,
    current_user: str = Depends(get_current_user_id),
    meeting_manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting_manager.remove_schedule(meeting_id, schedule_id, current_user)
    return MessageResponse(message="Schedule removed")
