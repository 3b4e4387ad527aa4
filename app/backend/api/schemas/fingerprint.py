from pydantic import Field
from datetime import datetime
from typing import Optional

from ...models.db_models import AttendanceAction
from .base import ApiModel
from .user import UserResponse


class FingerprintRegisterRequest(ApiModel):
    """Links a credential produced by the browser ceremony to a user."""
    user_id: int
    template_id: str = Field(..., min_length=1, description="Credential id returned by the authenticator.")
    public_key: Optional[str] = None
    credential_type: str = "public-key"


class FingerprintResponse(ApiModel):
    id: int
    user_id: int
    template_id: str
    public_key: Optional[str] = None
    credential_type: str
    created_at: Optional[datetime] = None


class FingerprintVerifyRequest(ApiModel):
    template_id: str = Field(..., min_length=1)


class FingerprintVerifyResponse(ApiModel):
    """Returned when a scan is accepted and recorded."""
    message: str
    user: UserResponse
    action: AttendanceAction


class DuplicateScanResponse(ApiModel):
    """Returned with HTTP 400 when the daily limit rejects a scan."""
    message: str
    already_recorded: bool = True
