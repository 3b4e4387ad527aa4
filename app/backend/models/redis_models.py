from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from uuid import UUID


class AdminProfile(BaseModel):
    """The admin data kept in a session, without the password hash."""
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: str = "admin"


class AdminSessionRedis(BaseModel):
    """
    Represents an administrator's login session stored in Redis.
    """
    admin: AdminProfile = Field(..., description="Snapshot of the admin account at login time.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")
