import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

from app.backend.services.attendance_service import (
    AttendanceService, ScanAccepted, DuplicateRejection,
    choose_candidate_action, compute_daily_stats,
)
from app.backend.services.errors import UserNotFoundError, CredentialNotFoundError
from app.backend.models.db_models import (
    User, AttendanceLog, AttendanceLogWithUser, AttendanceAction,
    AttendanceSource, SystemSettings, UserCategory,
)
from tests.in_memory_db import InMemoryDbClient

UTC = ZoneInfo("UTC")
# Mid-morning, far from midnight, so "today" is unambiguous.
NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)

# --- Fixtures ---

@pytest.fixture
def db() -> InMemoryDbClient:
    return InMemoryDbClient(auto_toggle_enabled=True)

@pytest.fixture
def alice(db) -> User:
    return db.add_user("Alice Student", UserCategory.STUDENT)

@pytest.fixture
def service(db) -> AttendanceService:
    return AttendanceService(db_client=db, clock=lambda: NOW)

@pytest_asyncio.fixture
async def mocked_service():
    """Service over an AsyncMock client, for call-level assertions."""
    mock_db_client = AsyncMock()
    mock_db_client.get_settings.return_value = SystemSettings(auto_toggle_enabled=True)
    mock_db_client.get_last_event.return_value = None
    mock_db_client.count_events_of_kind.return_value = 0
    service = AttendanceService(db_client=mock_db_client, clock=lambda: NOW)
    return service, mock_db_client

def make_user(user_id: int = 1) -> User:
    return User(id=user_id, full_name="Test Person", category=UserCategory.STAFF)


@pytest.mark.asyncio
class TestRecordScanEvent:

    async def test_first_scan_is_a_sign_in(self, service, db, alice):
        """Auto toggle on and no history: the scan is accepted as SIGN_IN and one row is written."""
        result = await service.record_scan_event(alice)

        assert isinstance(result, ScanAccepted)
        assert result.action == AttendanceAction.SIGN_IN
        assert result.message == "Successfully Signed In"
        assert result.user == alice
        rows = db.logs_for(alice.id)
        assert len(rows) == 1
        assert rows[0].source == AttendanceSource.FINGERPRINT
        assert rows[0].timestamp == NOW
        assert result.event == rows[0]

    async def test_second_scan_signs_out_and_third_is_rejected(self, service, db, alice):
        """Toggle alternates the candidate; once both kinds are used today the next scan is refused."""
        first = await service.record_scan_event(alice)
        second = await service.record_scan_event(alice)
        third = await service.record_scan_event(alice)

        assert first.action == AttendanceAction.SIGN_IN
        assert isinstance(second, ScanAccepted)
        assert second.action == AttendanceAction.SIGN_OUT
        assert second.message == "Successfully Signed Out"
        assert isinstance(third, DuplicateRejection)
        assert third.action == AttendanceAction.SIGN_IN
        assert third.already_recorded is True
        assert third.message == "You have already signed in today"
        assert len(db.logs_for(alice.id)) == 2

    async def test_repeat_scan_with_toggle_off_is_rejected(self, service, db, alice):
        """Toggle off: the second scan again selects SIGN_IN and the ledger keeps a single row."""
        db.settings = SystemSettings(auto_toggle_enabled=False)

        first = await service.record_scan_event(alice)
        second = await service.record_scan_event(alice)

        assert isinstance(first, ScanAccepted)
        assert isinstance(second, DuplicateRejection)
        assert second.already_recorded is True
        assert len(db.logs_for(alice.id)) == 1

    async def test_toggle_off_with_sign_in_today_rejects(self, service, db, alice):
        db.settings = SystemSettings(auto_toggle_enabled=False)
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=2))

        result = await service.record_scan_event(alice)

        assert isinstance(result, DuplicateRejection)
        assert result.action == AttendanceAction.SIGN_IN
        assert len(db.logs_for(alice.id)) == 1

    async def test_open_sign_in_from_yesterday_makes_today_a_sign_out(self, service, db, alice):
        """The toggle ignores the day boundary: yesterday's SIGN_IN leads to a SIGN_OUT dated today."""
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(days=1))

        result = await service.record_scan_event(alice)

        assert isinstance(result, ScanAccepted)
        assert result.action == AttendanceAction.SIGN_OUT
        assert result.event.timestamp.date() == NOW.date()
        assert len(db.logs_for(alice.id)) == 2

    async def test_sign_out_yesterday_does_not_block_today(self, service, db, alice):
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(days=1, hours=3))
        db.add_log(alice.id, AttendanceAction.SIGN_OUT, NOW - timedelta(days=1))

        result = await service.record_scan_event(alice)

        assert isinstance(result, ScanAccepted)
        assert result.action == AttendanceAction.SIGN_IN

    async def test_rejected_scans_never_write(self, service, db, alice):
        db.settings = SystemSettings(auto_toggle_enabled=False)
        await service.record_scan_event(alice)

        for _ in range(3):
            result = await service.record_scan_event(alice)
            assert isinstance(result, DuplicateRejection)

        assert len(db.logs_for(alice.id)) == 1

    async def test_settings_are_read_on_every_scan(self, service, db, alice):
        """Turning the toggle off between scans changes the very next decision."""
        await service.record_scan_event(alice)
        await db.update_settings({"auto_toggle_enabled": False})

        result = await service.record_scan_event(alice)

        # With the toggle off the candidate is SIGN_IN again, already used today.
        assert isinstance(result, DuplicateRejection)
        assert db.settings_reads == 2

    async def test_missing_settings_row_defaults_to_toggle_on(self):
        db = InMemoryDbClient()
        user = db.add_user()
        service = AttendanceService(db_client=db, clock=lambda: NOW)
        db.add_log(user.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=1))

        result = await service.record_scan_event(user)

        assert result.action == AttendanceAction.SIGN_OUT
        assert db.settings is not None and db.settings.auto_toggle_enabled is True

    async def test_unresolved_user_raises(self, service, db):
        with pytest.raises(UserNotFoundError):
            await service.record_scan_event(None)
        assert db.logs == []

    async def test_deleted_user_is_not_recorded(self, service, db, alice):
        """A User object whose row is gone must not leave an orphan ledger row."""
        await db.delete_user(alice.id)

        with pytest.raises(UserNotFoundError):
            await service.record_scan_event(alice)

        assert db.logs_for(alice.id) == []

    async def test_day_follows_the_configured_timezone(self):
        """01:00 in Istanbul is still the previous day in UTC; the limit uses the local day."""
        istanbul = ZoneInfo("Europe/Istanbul")
        local_now = datetime(2026, 3, 10, 1, 0, tzinfo=istanbul)
        db = InMemoryDbClient(auto_toggle_enabled=False)
        user = db.add_user()
        # 00:30 local on the same local day, 21:30 UTC the day before.
        db.add_log(user.id, AttendanceAction.SIGN_IN, datetime(2026, 3, 9, 21, 30, tzinfo=timezone.utc))
        service = AttendanceService(db_client=db, clock=lambda: local_now)

        result = await service.record_scan_event(user)

        assert isinstance(result, DuplicateRejection)

    async def test_event_just_before_local_midnight_belongs_to_yesterday(self):
        db = InMemoryDbClient(auto_toggle_enabled=False)
        user = db.add_user()
        db.add_log(user.id, AttendanceAction.SIGN_IN, datetime(2026, 3, 9, 23, 59, 59, tzinfo=UTC))
        service = AttendanceService(db_client=db, clock=lambda: datetime(2026, 3, 10, 0, 0, 1, tzinfo=UTC))

        result = await service.record_scan_event(user)

        assert isinstance(result, ScanAccepted)


@pytest.mark.asyncio
class TestRecordScanEventCalls:

    async def test_toggle_off_skips_last_event_lookup(self, mocked_service):
        service, mock_db_client = mocked_service
        mock_db_client.get_settings.return_value = SystemSettings(auto_toggle_enabled=False)
        mock_db_client.append_event_once_per_day.return_value = AttendanceLog(
            id=1, user_id=1, action=AttendanceAction.SIGN_IN, timestamp=NOW, source=AttendanceSource.FINGERPRINT
        )

        await service.record_scan_event(make_user())

        mock_db_client.get_last_event.assert_not_called()
        mock_db_client.get_settings.assert_awaited_once()

    async def test_daily_window_is_start_of_today_to_start_of_tomorrow(self, mocked_service):
        service, mock_db_client = mocked_service
        mock_db_client.count_events_of_kind.return_value = 1

        await service.record_scan_event(make_user())

        mock_db_client.count_events_of_kind.assert_awaited_once_with(
            1, AttendanceAction.SIGN_IN,
            datetime(2026, 3, 10, tzinfo=UTC), datetime(2026, 3, 11, tzinfo=UTC)
        )
        mock_db_client.append_event_once_per_day.assert_not_called()

    async def test_lost_race_is_reported_as_duplicate(self, mocked_service):
        """The pre-check passed but storage found a concurrent row: no second event, a rejection instead."""
        service, mock_db_client = mocked_service
        mock_db_client.append_event_once_per_day.return_value = None

        result = await service.record_scan_event(make_user())

        assert isinstance(result, DuplicateRejection)
        assert result.action == AttendanceAction.SIGN_IN

    async def test_append_uses_fingerprint_source_and_clock_time(self, mocked_service):
        service, mock_db_client = mocked_service
        mock_db_client.append_event_once_per_day.return_value = AttendanceLog(
            id=5, user_id=1, action=AttendanceAction.SIGN_IN, timestamp=NOW, source=AttendanceSource.FINGERPRINT
        )

        await service.record_scan_event(make_user())

        mock_db_client.append_event_once_per_day.assert_awaited_once_with(
            1, AttendanceAction.SIGN_IN, AttendanceSource.FINGERPRINT,
            datetime(2026, 3, 10, tzinfo=UTC), datetime(2026, 3, 11, tzinfo=UTC), NOW
        )

    async def test_user_deleted_before_insert_raises(self, mocked_service):
        service, mock_db_client = mocked_service
        mock_db_client.append_event_once_per_day.side_effect = UserNotFoundError()

        with pytest.raises(UserNotFoundError):
            await service.record_scan_event(make_user())

    async def test_storage_failure_propagates(self, mocked_service):
        service, mock_db_client = mocked_service
        mock_db_client.append_event_once_per_day.side_effect = ConnectionError("database went away")

        with pytest.raises(ConnectionError):
            await service.record_scan_event(make_user())


@pytest.mark.asyncio
class TestVerifyFingerprint:

    async def test_unknown_template_is_not_found_without_reading_settings(self, service, db, alice):
        with pytest.raises(CredentialNotFoundError, match="Fingerprint not recognized"):
            await service.verify_fingerprint("fp_unknown")

        assert db.settings_reads == 0
        assert db.logs == []

    async def test_known_template_records_for_its_owner(self, service, db, alice):
        await db.create_fingerprint(alice.id, "fp_alice_001")

        result = await service.verify_fingerprint("fp_alice_001")

        assert isinstance(result, ScanAccepted)
        assert result.user.id == alice.id

    async def test_user_with_several_fingerprints_shares_one_daily_limit(self, service, db, alice):
        db.settings = SystemSettings(auto_toggle_enabled=False)
        await db.create_fingerprint(alice.id, "fp_left_thumb")
        await db.create_fingerprint(alice.id, "fp_right_thumb")

        first = await service.verify_fingerprint("fp_left_thumb")
        second = await service.verify_fingerprint("fp_right_thumb")

        assert isinstance(first, ScanAccepted)
        assert isinstance(second, DuplicateRejection)


@pytest.mark.asyncio
class TestManualEntriesAndLogs:

    async def test_manual_entry_bypasses_daily_limit(self, service, db, alice):
        await service.record_manual_event(alice.id, AttendanceAction.SIGN_IN)
        await service.record_manual_event(alice.id, AttendanceAction.SIGN_IN)

        rows = db.logs_for(alice.id)
        assert len(rows) == 2
        assert all(row.source == AttendanceSource.MANUAL for row in rows)

    async def test_manual_entry_for_unknown_user_raises(self, service, db):
        with pytest.raises(UserNotFoundError):
            await service.record_manual_event(99, AttendanceAction.SIGN_IN)
        assert db.logs == []

    async def test_list_logs_is_newest_first_and_filters_by_day(self, service, db, alice):
        bob = db.add_user("Bob Staff", UserCategory.STAFF)
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(days=1))
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=2))
        db.add_log(bob.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=1))

        everything = await service.list_logs()
        today = await service.list_logs(day=NOW.date())
        alice_today = await service.list_logs(user_id=alice.id, day=NOW.date())

        assert [log.timestamp for log in everything] == sorted((log.timestamp for log in everything), reverse=True)
        assert len(everything) == 3
        assert [log.user.full_name for log in today] == ["Bob Staff", "Alice Student"]
        assert len(alice_today) == 1

    async def test_daily_stats_use_todays_events(self, service, db, alice):
        bob = db.add_user("Bob Staff", UserCategory.STAFF)
        charlie = db.add_user("Charlie Student", UserCategory.STUDENT)
        db.add_log(alice.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=3))
        db.add_log(bob.id, AttendanceAction.SIGN_IN, NOW - timedelta(hours=3))
        db.add_log(bob.id, AttendanceAction.SIGN_OUT, NOW - timedelta(hours=1))
        # Yesterday's sign-in does not make Charlie present today.
        db.add_log(charlie.id, AttendanceAction.SIGN_IN, NOW - timedelta(days=1))

        stats = await service.get_daily_stats()

        assert stats.total_present == 1
        assert stats.active_students == 1
        assert stats.active_staff == 0


# --- Pure helpers ---

def _event(event_id, user, action, hour) -> AttendanceLogWithUser:
    return AttendanceLogWithUser(
        id=event_id, user_id=user.id, action=action,
        timestamp=datetime(2026, 3, 10, hour, tzinfo=UTC),
        source=AttendanceSource.MANUAL, user=user,
    )

def test_choose_candidate_action_table():
    on = SystemSettings(auto_toggle_enabled=True)
    off = SystemSettings(auto_toggle_enabled=False)
    sign_in = AttendanceLog(id=1, user_id=1, action=AttendanceAction.SIGN_IN, timestamp=NOW, source=AttendanceSource.FINGERPRINT)
    sign_out = sign_in.model_copy(update={"action": AttendanceAction.SIGN_OUT})

    assert choose_candidate_action(on, None) == AttendanceAction.SIGN_IN
    assert choose_candidate_action(on, sign_in) == AttendanceAction.SIGN_OUT
    assert choose_candidate_action(on, sign_out) == AttendanceAction.SIGN_IN
    assert choose_candidate_action(off, sign_in) == AttendanceAction.SIGN_IN

def test_stats_count_sign_in_after_sign_out_as_present():
    staff = User(id=2, full_name="Bob Staff", category=UserCategory.STAFF)
    events = [
        _event(1, staff, AttendanceAction.SIGN_IN, 8),
        _event(2, staff, AttendanceAction.SIGN_OUT, 12),
        _event(3, staff, AttendanceAction.SIGN_IN, 13),
    ]

    stats = compute_daily_stats(events)

    assert stats.total_present == 1
    assert stats.active_staff == 1

def test_stats_ignore_users_who_only_signed_out():
    student = User(id=1, full_name="Alice Student", category=UserCategory.STUDENT)

    stats = compute_daily_stats([_event(1, student, AttendanceAction.SIGN_OUT, 17)])

    assert stats.total_present == 0

def test_stats_split_by_category():
    student = User(id=1, full_name="Alice Student", category=UserCategory.STUDENT)
    other_student = User(id=3, full_name="Charlie Student", category=UserCategory.STUDENT)
    staff = User(id=2, full_name="Bob Staff", category=UserCategory.STAFF)
    events = [
        _event(1, student, AttendanceAction.SIGN_IN, 8),
        _event(2, staff, AttendanceAction.SIGN_IN, 8),
        _event(3, other_student, AttendanceAction.SIGN_IN, 9),
        # Two sign-ins for one user still count once.
        _event(4, student, AttendanceAction.SIGN_IN, 10),
    ]

    stats = compute_daily_stats(events)

    assert (stats.total_present, stats.active_students, stats.active_staff) == (3, 2, 1)
