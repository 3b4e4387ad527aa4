from fastapi import APIRouter, Depends

from ..models.redis_models import AdminProfile
from ..services.settings_service import SettingsService
from .schemas.settings import SettingsResponse, SettingsUpdateRequest
from .auth import get_current_admin
from .dependencies import get_settings_service

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=SettingsResponse)
async def get_settings(
    admin: AdminProfile = Depends(get_current_admin),
    service: SettingsService = Depends(get_settings_service)
):
    """Returns the global settings, creating the default row on first use."""
    return await service.get_settings()


@router.api_route("", methods=["PUT", "PATCH"], response_model=SettingsResponse)
async def update_settings(
    update_request: SettingsUpdateRequest,
    admin: AdminProfile = Depends(get_current_admin),
    service: SettingsService = Depends(get_settings_service)
):
    """Changes take effect on the very next fingerprint scan."""
    return await service.update_settings(auto_toggle_enabled=update_request.auto_toggle_enabled)
