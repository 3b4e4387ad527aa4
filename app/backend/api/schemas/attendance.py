from pydantic import Field
from datetime import datetime

from ...models.db_models import AttendanceAction, AttendanceSource
from .base import ApiModel
from .user import UserResponse


class AttendanceLogCreateRequest(ApiModel):
    """Manual attendance entry made by an administrator."""
    user_id: int
    action: AttendanceAction
    source: AttendanceSource = Field(AttendanceSource.MANUAL, description="Defaults to 'manual'.")


class AttendanceLogResponse(ApiModel):
    id: int
    user_id: int
    action: AttendanceAction
    timestamp: datetime
    source: AttendanceSource


class AttendanceLogWithUserResponse(AttendanceLogResponse):
    user: UserResponse


class AttendanceStatsResponse(ApiModel):
    total_present: int
    active_students: int
    active_staff: int
