#app/backend/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.attendance_service import AttendanceService
from ..services.user_service import UserService
from ..services.settings_service import SettingsService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Provides the Redis connection pool stored on the application state.
    """
    return request.app.state.redis_pool

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Provides the PostgreSQL connection pool stored on the application state.
    """
    return request.app.state.postgres_pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    """
    Builds a fresh database client for each request.

    Clients are cheap wrappers; the connection pool itself is created once in
    the application lifespan and shared by every request.
    """
    return AsyncPostgresClient(pool=postgres_pool)

def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)


def get_attendance_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AttendanceService:
    return AttendanceService(db_client=db_client)

def get_user_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> UserService:
    return UserService(db_client=db_client)

def get_settings_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> SettingsService:
    return SettingsService(db_client=db_client)
