from datetime import datetime
from typing import Optional

from .base import ApiModel


class SettingsResponse(ApiModel):
    id: int
    auto_toggle_enabled: bool
    updated_at: Optional[datetime] = None


class SettingsUpdateRequest(ApiModel):
    """Partial update; omitted fields keep their current value."""
    auto_toggle_enabled: Optional[bool] = None
