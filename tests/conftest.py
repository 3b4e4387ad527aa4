# tests/conftest.py
import asyncio
import sys
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.backend.main import app
from app.backend.api.auth import get_current_admin
from app.backend.api.dependencies import get_db_client, get_redis_client
from app.backend.api.utilities.limiter import limiter
from app.backend.models.redis_models import AdminProfile
from tests.in_memory_db import InMemoryDbClient

# Windows needs the selector loop for asyncpg and pytest-asyncio.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate limit counters live in process memory during tests; start every test from zero."""
    limiter.reset()
    yield


# --- API fixtures ---
# TestClient is used without a context manager so the lifespan (real
# PostgreSQL and Redis pools) never runs; storage is swapped through
# dependency overrides instead.

@pytest.fixture
def memory_db() -> InMemoryDbClient:
    return InMemoryDbClient(auto_toggle_enabled=True)

@pytest.fixture
def mock_redis_client() -> AsyncMock:
    client = AsyncMock()
    client.get_admin_session.return_value = None
    return client

@pytest.fixture
def admin_profile() -> AdminProfile:
    return AdminProfile(id=1, username="admin", email="admin@example.com", full_name="Front Desk")

@pytest.fixture
def anonymous_client(memory_db, mock_redis_client):
    """Client with in-memory storage and no logged in admin."""
    app.dependency_overrides[get_db_client] = lambda: memory_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis_client
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def client(anonymous_client, admin_profile):
    """Client with in-memory storage, authenticated as an admin."""
    app.dependency_overrides[get_current_admin] = lambda: admin_profile
    yield anonymous_client
