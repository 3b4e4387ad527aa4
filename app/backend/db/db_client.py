import logging
from typing import Any, Dict, List, Optional
import asyncpg
from datetime import datetime, timezone
from ..models.db_models import (
    User, NewUser, Fingerprint, AttendanceLog, AttendanceLogWithUser,
    AttendanceAction, AttendanceSource, SystemSettings, AdminUser,
)
from ..services.errors import UserNotFoundError

logger = logging.getLogger(__name__)

# First key of pg_advisory_xact_lock(int, int); the second key is the user id.
SCAN_LOCK_NAMESPACE = 7301

SETTINGS_ID = 1

_USER_COLUMNS = (
    "u.id AS u_id, u.full_name AS u_full_name, u.category AS u_category, u.email AS u_email, "
    "u.course_name AS u_course_name, u.duration AS u_duration, u.frequency AS u_frequency, "
    "u.days_of_week AS u_days_of_week, u.created_at AS u_created_at"
)


def _user_from_prefixed(record: asyncpg.Record) -> User:
    return User(**{key[2:]: record[key] for key in record.keys() if key.startswith("u_")})


def _log_with_user(record: asyncpg.Record) -> AttendanceLogWithUser:
    return AttendanceLogWithUser(
        id=record["id"],
        user_id=record["user_id"],
        action=record["action"],
        timestamp=record["timestamp"],
        source=record["source"],
        user=_user_from_prefixed(record),
    )


class AsyncPostgresClient:
    """
    PostgreSQL client for every persistent record: the user roster and its
    fingerprint credentials, the attendance ledger, the settings singleton
    and admin accounts.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ===== Users =====

    async def get_users(self) -> List[User]:
        """Returns every user, newest first."""
        query = "SELECT * FROM users ORDER BY created_at DESC, id DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [User(**record) for record in records]

    async def get_user(self, user_id: int) -> Optional[User]:
        query = "SELECT * FROM users WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return User(**record) if record else None

    async def create_user(self, user: NewUser) -> User:
        """Inserts a user. A duplicate email raises asyncpg.UniqueViolationError."""
        query = """
            INSERT INTO users (full_name, category, email, course_name, duration, frequency, days_of_week)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, user.full_name, user.category.value, user.email,
                user.course_name, user.duration, user.frequency, user.days_of_week
            )
            return User(**record)

    async def delete_user(self, user_id: int) -> bool:
        """Deletes a user and, through the FK cascade, its fingerprints. Ledger rows are kept."""
        query = "DELETE FROM users WHERE id = $1;"
        async with self._pool.acquire() as connection:
            status = await connection.execute(query, user_id)
            return status == "DELETE 1"

    async def count_users(self) -> int:
        async with self._pool.acquire() as connection:
            return await connection.fetchval("SELECT COUNT(*) FROM users;")

    # ===== Fingerprints =====

    async def create_fingerprint(self, user_id: int, template_id: str,
                                 public_key: Optional[str] = None,
                                 credential_type: str = "public-key") -> Fingerprint:
        """
        Enrolls a credential. Raises asyncpg.UniqueViolationError when the
        template id is already enrolled and asyncpg.ForeignKeyViolationError
        when the user does not exist.
        """
        query = """
            INSERT INTO fingerprints (user_id, template_id, public_key, credential_type)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, template_id, public_key, credential_type)
            return Fingerprint(**record)

    async def get_fingerprint_by_template_id(self, template_id: str) -> Optional[Fingerprint]:
        query = "SELECT * FROM fingerprints WHERE template_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, template_id)
            return Fingerprint(**record) if record else None

    async def get_fingerprints(self, user_id: int) -> List[Fingerprint]:
        query = "SELECT * FROM fingerprints WHERE user_id = $1 ORDER BY id;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id)
            return [Fingerprint(**record) for record in records]

    async def find_user_by_template_id(self, template_id: str) -> Optional[User]:
        """Resolves a scanned credential to its owner in a single query."""
        query = """
            SELECT u.* FROM fingerprints f
            JOIN users u ON u.id = f.user_id
            WHERE f.template_id = $1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, template_id)
            return User(**record) if record else None

    # ===== Attendance Ledger =====

    async def get_last_event(self, user_id: int) -> Optional[AttendanceLog]:
        """The most recent event of a user on any day."""
        query = """
            SELECT * FROM attendance_logs
            WHERE user_id = $1
            ORDER BY timestamp DESC, id DESC
            LIMIT 1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return AttendanceLog(**record) if record else None

    async def count_events_of_kind(self, user_id: int, action: AttendanceAction,
                                   start: datetime, end: datetime) -> int:
        """Counts a user's events of one kind with start <= timestamp < end."""
        query = """
            SELECT COUNT(*) FROM attendance_logs
            WHERE user_id = $1 AND action = $2 AND timestamp >= $3 AND timestamp < $4;
        """
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, user_id, action.value, start, end)

    async def append_event(self, user_id: int, action: AttendanceAction, source: AttendanceSource,
                           timestamp: Optional[datetime] = None) -> AttendanceLog:
        """Appends an event unconditionally."""
        query = """
            INSERT INTO attendance_logs (user_id, action, source, timestamp)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, action.value, source.value, timestamp)
            return AttendanceLog(**record)

    async def append_event_once_per_day(self, user_id: int, action: AttendanceAction,
                                        source: AttendanceSource, start: datetime, end: datetime,
                                        timestamp: datetime) -> Optional[AttendanceLog]:
        """
        Appends an event only if the user has no event of the same kind in
        [start, end). The count and the insert run in one transaction under
        a per-user advisory lock, so two concurrent scans cannot both pass.
        Returns None when an event already exists. Raises UserNotFoundError
        when the user row is gone, since the ledger has no foreign key.
        """
        count_query = """
            SELECT COUNT(*) FROM attendance_logs
            WHERE user_id = $1 AND action = $2 AND timestamp >= $3 AND timestamp < $4;
        """
        insert_query = """
            INSERT INTO attendance_logs (user_id, action, source, timestamp)
            SELECT $1::integer, $2::text, $3::text, $4::timestamptz
            WHERE EXISTS (SELECT 1 FROM users WHERE id = $1)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute("SELECT pg_advisory_xact_lock($1, $2);", SCAN_LOCK_NAMESPACE, user_id)
                existing = await connection.fetchval(count_query, user_id, action.value, start, end)
                if existing:
                    return None
                record = await connection.fetchrow(insert_query, user_id, action.value, source.value, timestamp)
                if record is None:
                    raise UserNotFoundError()
                return AttendanceLog(**record)

    async def list_events(self, user_id: Optional[int] = None,
                          start: Optional[datetime] = None,
                          end: Optional[datetime] = None) -> List[AttendanceLogWithUser]:
        """
        Lists events joined with their users, newest first. Orphaned rows of
        deleted users are skipped by the inner join.
        """
        conditions = []
        args: List[Any] = []
        if user_id is not None:
            args.append(user_id)
            conditions.append(f"l.user_id = ${len(args)}")
        if start is not None:
            args.append(start)
            conditions.append(f"l.timestamp >= ${len(args)}")
        if end is not None:
            args.append(end)
            conditions.append(f"l.timestamp < ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT l.id, l.user_id, l.action, l.timestamp, l.source, {_USER_COLUMNS}
            FROM attendance_logs l
            JOIN users u ON u.id = l.user_id
            {where}
            ORDER BY l.timestamp DESC, l.id DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)
            return [_log_with_user(record) for record in records]

    async def get_events_with_users_between(self, start: datetime, end: datetime) -> List[AttendanceLogWithUser]:
        """All events in [start, end) with their users, oldest first. Feeds the daily statistics."""
        query = f"""
            SELECT l.id, l.user_id, l.action, l.timestamp, l.source, {_USER_COLUMNS}
            FROM attendance_logs l
            JOIN users u ON u.id = l.user_id
            WHERE l.timestamp >= $1 AND l.timestamp < $2
            ORDER BY l.timestamp ASC, l.id ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, start, end)
            return [_log_with_user(record) for record in records]

    # ===== Settings =====

    async def get_settings(self) -> SystemSettings:
        """Returns the settings row, creating the default one on first read."""
        insert_default = """
            INSERT INTO system_settings (id, auto_toggle_enabled)
            VALUES ($1, TRUE)
            ON CONFLICT (id) DO NOTHING;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM system_settings WHERE id = $1;", SETTINGS_ID)
            if record is None:
                await connection.execute(insert_default, SETTINGS_ID)
                record = await connection.fetchrow("SELECT * FROM system_settings WHERE id = $1;", SETTINGS_ID)
                logger.info("Default system settings row created.")
            return SystemSettings(**record)

    async def update_settings(self, updates: Dict[str, Any]) -> SystemSettings:
        """Applies a partial update to the settings row. Unknown keys are ignored."""
        await self.get_settings()
        auto_toggle_enabled = updates.get("auto_toggle_enabled")
        query = """
            UPDATE system_settings
            SET auto_toggle_enabled = COALESCE($2, auto_toggle_enabled),
                updated_at = $3
            WHERE id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, SETTINGS_ID, auto_toggle_enabled, datetime.now(timezone.utc))
            return SystemSettings(**record)

    # ===== Admin Accounts =====

    async def create_admin(self, username: str, email: str, password_hash: str,
                           full_name: Optional[str] = None) -> AdminUser:
        query = """
            INSERT INTO admin_users (username, email, password, full_name, role)
            VALUES ($1, $2, $3, $4, 'admin')
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, username, email, password_hash, full_name)
            return AdminUser(**record)

    async def get_admin(self, admin_id: int) -> Optional[AdminUser]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM admin_users WHERE id = $1;", admin_id)
            return AdminUser(**record) if record else None

    async def get_admin_by_username(self, username: str) -> Optional[AdminUser]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM admin_users WHERE username = $1;", username)
            return AdminUser(**record) if record else None

    async def get_admin_by_email(self, email: str) -> Optional[AdminUser]:
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow("SELECT * FROM admin_users WHERE email = $1;", email)
            return AdminUser(**record) if record else None
