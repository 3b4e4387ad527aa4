# app/backend/models/db_models.py

from enum import Enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class UserCategory(str, Enum):
    STUDENT = "student"
    STAFF = "staff"


class AttendanceAction(str, Enum):
    SIGN_IN = "SIGN_IN"
    SIGN_OUT = "SIGN_OUT"


class AttendanceSource(str, Enum):
    FINGERPRINT = "fingerprint"
    MANUAL = "manual"


class User(BaseModel):
    """
    Represents a tracked person, mapping to the 'users' table.
    Course and schedule fields are informational only.
    """
    id: int = Field(..., description="Serial primary key")
    full_name: str
    category: UserCategory
    email: Optional[str] = None
    course_name: Optional[str] = None
    duration: Optional[str] = None
    frequency: Optional[int] = None
    days_of_week: Optional[str] = Field(None, description="Comma separated day names, e.g. 'Monday,Wednesday'")
    created_at: Optional[datetime] = None


class NewUser(BaseModel):
    """Fields accepted when creating a user; id and created_at come from the database."""
    full_name: str = Field(..., min_length=1)
    category: UserCategory
    email: Optional[str] = None
    course_name: Optional[str] = None
    duration: Optional[str] = None
    frequency: Optional[int] = Field(None, ge=1)
    days_of_week: Optional[str] = None


class Fingerprint(BaseModel):
    """
    An enrolled fingerprint credential, mapping to the 'fingerprints' table.
    template_id is unique across all users.
    """
    id: int
    user_id: int = Field(..., description="FK linking to the owning user")
    template_id: str = Field(..., description="Opaque credential id produced by the biometric ceremony")
    public_key: Optional[str] = None
    credential_type: str = "public-key"
    created_at: Optional[datetime] = None


class AttendanceLog(BaseModel):
    """
    One attendance event, mapping to the append-only 'attendance_logs' table.
    """
    id: int
    user_id: int
    action: AttendanceAction
    timestamp: datetime
    source: AttendanceSource


class AttendanceLogWithUser(AttendanceLog):
    """Attendance event joined with the user it belongs to."""
    user: User


class SystemSettings(BaseModel):
    """The singleton 'system_settings' row."""
    id: int = 1
    auto_toggle_enabled: bool = True
    updated_at: Optional[datetime] = None


class AdminUser(BaseModel):
    """
    An administrator account, mapping to the 'admin_users' table.
    `password` holds the bcrypt hash and is never returned by the API.
    """
    id: int
    username: str
    email: str
    password: str
    full_name: Optional[str] = None
    role: str = "admin"
    created_at: Optional[datetime] = None


class AttendanceStats(BaseModel):
    total_present: int = 0
    active_students: int = 0
    active_staff: int = 0
