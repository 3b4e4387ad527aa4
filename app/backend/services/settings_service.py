import logging
from typing import Optional

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import SystemSettings

logger = logging.getLogger(__name__)


class SettingsService:
    """Reads and updates the global settings singleton."""
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_settings(self) -> SystemSettings:
        return await self.db_client.get_settings()

    async def update_settings(self, auto_toggle_enabled: Optional[bool] = None) -> SystemSettings:
        """Partial update; fields left as None keep their stored value."""
        updates = {}
        if auto_toggle_enabled is not None:
            updates["auto_toggle_enabled"] = auto_toggle_enabled
        settings = await self.db_client.update_settings(updates)
        logger.info(f"System settings updated: auto_toggle_enabled={settings.auto_toggle_enabled}.")
        return settings
