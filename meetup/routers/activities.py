import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from meetup.auth.auth import get_current_user_id
from meetup.data.activity_manager import ActivityManager, get_activity_manager
from meetup.data.attendance_manager import AttendanceManager, get_attendance_manager
from meetup.schemas.activity import (
    ActivityCreate,
    ActivityImagesAdd,
    ActivityResponse,
    ActivityUpdate,
    AttendanceResponse,
    AttendanceUpdate,
    AttendanceUpdateResult,
    CalendarEvent,
)

logger = logging.getLogger(__name__)

meeting_activities_router = APIRouter(
    prefix="/api/meetings/{meeting_id}/activities", tags=["activities"]
)
router = APIRouter(prefix="/api/activities", tags=["activities"])
calendar_router = APIRouter(prefix="/api/users/me", tags=["calendar"])


@meeting_activities_router.get("", response_model=List[ActivityResponse])
async def list_activities(
    meeting_id: str,
    activity_manager: ActivityManager = Depends(get_activity_manager),
):
    activities = activity_manager.list_activities(meeting_id)
    return [ActivityResponse.model_validate(item) for item in activities]


@meeting_activities_router.post(
    "", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED
)
async def create_activity(
    meeting_id: str,
    payload: ActivityCreate,
    current_user: str = Depends(get_current_user_id),
    activity_manager: ActivityManager = Depends(get_activity_manager),
):
    activity = activity_manager.create_activity(meeting_id, current_user, payload)
    return ActivityResponse.model_validate(activity)


@router.put("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdate,
    current_user: str = Depends(get_current_user_id),
    activity_manager: ActivityManager = Depends(get_activity_manager),
):
    activity = activity_manager.update_activity(activity_id, current_user, payload)
    return ActivityResponse.model_validate(activity)


@router.post("/{activity_id}/images", response_model=ActivityResponse)
async def add_activity_images(
    activity_id: str,
    payload: ActivityImagesAdd,
    current_user: str = Depends(get_current_user_id),
    activity_manager: ActivityManager = Depends(get_activity_manager),
):
    activity = activity_manager.add_activity_images(
        activity_id, current_user, payload.images
    )
    return ActivityResponse.model_validate(activity)


@router.put("/{activity_id}/attendance", response_model=AttendanceUpdateResult)
async def update_attendance(
    activity_id: str,
    payload: AttendanceUpdate,
    current_user: str = Depends(get_current_user_id),
    attendance_manager: AttendanceManager = Depends(get_attendance_manager),
):
    return attendance_manager.update_attendance(
        activity_id, current_user, payload.status, confirm=payload.confirm
    )


@router.get("/{activity_id}/attendances", response_model=List[AttendanceResponse])
async def list_activity_attendances(
    activity_id: str,
    attendance_manager: AttendanceManager = Depends(get_attendance_manager),
):
    records = attendance_manager.get_activity_attendances(activity_id)
    return [AttendanceResponse.model_validate(record) for record in records]


@router.get("/{activity_id}/my-attendance", response_model=Optional[AttendanceResponse])
async def get_my_attendance(
    activity_id: str,
    current_user: str = Depends(get_current_user_id),
    attendance_manager: AttendanceManager = Depends(get_attendance_manager),
):
    record = attendance_manager.get_my_attendance(activity_id, current_user)
    return AttendanceResponse.model_validate(record) if record else None


@calendar_router.get("/calendar", response_model=List[CalendarEvent])
async def get_my_calendar(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: str = Depends(get_current_user_id),
    attendance_manager: AttendanceManager = Depends(get_attendance_manager),
):
    return attendance_manager.get_my_calendar_events(current_user, start_date, end_date)
