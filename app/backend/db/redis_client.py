import logging
from typing import Optional
import redis.asyncio as redis

from ..models.redis_models import AdminSessionRedis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client for admin login sessions.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    @staticmethod
    def _session_key(admin_id: int) -> str:
        return f"admin_sessions:{admin_id}"

    async def save_admin_session(self, session: AdminSessionRedis, ttl: int):
        """Stores the admin session with a TTL; a new login replaces the previous one."""
        await self._redis.set(self._session_key(session.admin.id), session.model_dump_json(), ex=ttl)

    async def get_admin_session(self, admin_id: int) -> Optional[AdminSessionRedis]:
        session_json = await self._redis.get(self._session_key(admin_id))
        return AdminSessionRedis.model_validate_json(session_json) if session_json else None

    async def delete_admin_session(self, admin_id: int) -> int:
        return await self._redis.delete(self._session_key(admin_id))
