# app/backend/db/schema.py
import logging
import asyncpg

logger = logging.getLogger(__name__)

# attendance_logs.user_id has no foreign key: ledger rows of a deleted user
# stay in place for audit.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    full_name TEXT NOT NULL,
    category TEXT NOT NULL CHECK (category IN ('student', 'staff')),
    email TEXT UNIQUE,
    course_name TEXT,
    duration TEXT,
    frequency INTEGER,
    days_of_week TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS fingerprints (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    template_id TEXT NOT NULL UNIQUE,
    public_key TEXT,
    credential_type TEXT NOT NULL DEFAULT 'public-key',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS attendance_logs (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL,
    action TEXT NOT NULL CHECK (action IN ('SIGN_IN', 'SIGN_OUT')),
    timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),
    source TEXT NOT NULL CHECK (source IN ('fingerprint', 'manual'))
);

CREATE INDEX IF NOT EXISTS attendance_logs_user_time_idx
    ON attendance_logs (user_id, timestamp DESC, id DESC);

CREATE TABLE IF NOT EXISTS system_settings (
    id INTEGER PRIMARY KEY DEFAULT 1 CHECK (id = 1),
    auto_toggle_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS admin_users (
    id SERIAL PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    full_name TEXT,
    role TEXT NOT NULL DEFAULT 'admin',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


async def create_schema(pool: asyncpg.Pool):
    """Creates every table the application needs. Safe to run on each startup."""
    async with pool.acquire() as connection:
        await connection.execute(SCHEMA_SQL)
    logger.info("Database schema is ready.")
