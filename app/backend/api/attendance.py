import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from datetime import date
from typing import List, Optional

from ..models.redis_models import AdminProfile
from ..services.attendance_service import AttendanceService
from ..services.errors import NotFoundError
from .schemas.attendance import (
    AttendanceLogCreateRequest, AttendanceLogResponse,
    AttendanceLogWithUserResponse, AttendanceStatsResponse,
)
from .auth import get_current_admin
from .dependencies import get_attendance_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.get("/logs", response_model=List[AttendanceLogWithUserResponse], summary="List attendance logs, newest first")
async def list_logs(
    user_id: Optional[int] = Query(None, alias="userId"),
    day: Optional[date] = Query(None, alias="date", description="Calendar day in YYYY-MM-DD format."),
    admin: AdminProfile = Depends(get_current_admin),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.list_logs(user_id=user_id, day=day)


@router.post("/logs", response_model=AttendanceLogResponse, status_code=status.HTTP_201_CREATED, summary="Add a manual attendance entry")
async def create_log(
    log_request: AttendanceLogCreateRequest,
    admin: AdminProfile = Depends(get_current_admin),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Administrator override. Manual entries are not subject to the daily limit."""
    try:
        event = await service.record_manual_event(log_request.user_id, log_request.action, log_request.source)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    logger.info(f"Admin '{admin.username}' added a manual {event.action.value} for user {event.user_id}.")
    return event


@router.get("/stats", response_model=AttendanceStatsResponse, summary="Who is present today")
async def get_stats(
    admin: AdminProfile = Depends(get_current_admin),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.get_daily_stats()
