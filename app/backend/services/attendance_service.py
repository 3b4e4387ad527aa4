import logging
from typing import Callable, Iterable, List, Literal, Optional, Union
from datetime import date, datetime
from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    User, AttendanceLog, AttendanceLogWithUser, AttendanceAction,
    AttendanceSource, AttendanceStats, SystemSettings, UserCategory,
)
from ..tools.day_window import day_bounds, local_now
from .errors import UserNotFoundError, CredentialNotFoundError

logger = logging.getLogger(__name__)

_ACCEPTED_MESSAGES = {
    AttendanceAction.SIGN_IN: "Successfully Signed In",
    AttendanceAction.SIGN_OUT: "Successfully Signed Out",
}
_DUPLICATE_MESSAGES = {
    AttendanceAction.SIGN_IN: "You have already signed in today",
    AttendanceAction.SIGN_OUT: "You have already signed out today",
}


# --- Decision outcomes ---
class ScanAccepted(BaseModel):
    """The scan passed the daily limit and a ledger row was written."""
    outcome: Literal["accepted"] = "accepted"
    message: str
    action: AttendanceAction
    user: User
    event: AttendanceLog


class DuplicateRejection(BaseModel):
    """The user already performed the candidate action today; nothing was written."""
    outcome: Literal["duplicate"] = "duplicate"
    message: str
    action: AttendanceAction
    user: User
    already_recorded: bool = True


DecisionResult = Union[ScanAccepted, DuplicateRejection]


def choose_candidate_action(settings: SystemSettings, last_event: Optional[AttendanceLog]) -> AttendanceAction:
    """
    Picks the action a scan would record before the daily limit is applied.
    With auto toggle on, the most recent event decides regardless of the day
    it happened on; a SIGN_IN left open yesterday makes today's first scan a
    SIGN_OUT.
    """
    if not settings.auto_toggle_enabled:
        return AttendanceAction.SIGN_IN
    if last_event is not None and last_event.action == AttendanceAction.SIGN_IN:
        return AttendanceAction.SIGN_OUT
    return AttendanceAction.SIGN_IN


def compute_daily_stats(events: Iterable[AttendanceLogWithUser]) -> AttendanceStats:
    """
    Counts the users present on a day from that day's events.

    A user is present when they have a SIGN_IN and no SIGN_OUT later than
    their latest SIGN_IN. Events must all belong to the same calendar day.
    """
    last_sign_in = {}
    last_sign_out = {}
    categories = {}
    for event in events:
        categories[event.user_id] = event.user.category
        marker = (event.timestamp, event.id)
        if event.action == AttendanceAction.SIGN_IN:
            if event.user_id not in last_sign_in or marker > last_sign_in[event.user_id]:
                last_sign_in[event.user_id] = marker
        elif event.user_id not in last_sign_out or marker > last_sign_out[event.user_id]:
            last_sign_out[event.user_id] = marker

    active_students = 0
    active_staff = 0
    for user_id, signed_in_at in last_sign_in.items():
        signed_out_at = last_sign_out.get(user_id)
        if signed_out_at is not None and signed_out_at > signed_in_at:
            continue
        if categories[user_id] == UserCategory.STUDENT:
            active_students += 1
        elif categories[user_id] == UserCategory.STAFF:
            active_staff += 1

    return AttendanceStats(
        total_present=active_students + active_staff,
        active_students=active_students,
        active_staff=active_staff,
    )


class AttendanceService:
    """
    Service layer that turns fingerprint matches into attendance decisions
    and serves the attendance ledger.
    """
    def __init__(self, db_client: AsyncPostgresClient, clock: Callable[[], datetime] = local_now):
        self.db_client = db_client
        self._clock = clock

    async def verify_fingerprint(self, template_id: str) -> DecisionResult:
        """Resolves a scanned template id to its user and records the scan."""
        user = await self.db_client.find_user_by_template_id(template_id)
        if user is None:
            logger.warning(f"Scan with unknown fingerprint template '{template_id}'.")
            raise CredentialNotFoundError()
        return await self.record_scan_event(user)

    async def record_scan_event(self, user: Optional[User]) -> DecisionResult:
        """
        Decides whether a verified scan is a sign-in or a sign-out and whether
        the daily limit allows it.

        Settings are read on every call so a change applies to the next scan.
        A rejected scan never touches the ledger. The final insert re-checks
        the limit atomically in storage; losing that race is reported as a
        duplicate as well. A user deleted since the credential lookup raises
        UserNotFoundError from that insert and nothing is written.
        """
        if user is None:
            raise UserNotFoundError()

        settings = await self.db_client.get_settings()
        last_event = None
        if settings.auto_toggle_enabled:
            last_event = await self.db_client.get_last_event(user.id)
        action = choose_candidate_action(settings, last_event)

        now = self._clock()
        start, end = day_bounds(now.date(), tz=now.tzinfo)
        already_today = await self.db_client.count_events_of_kind(user.id, action, start, end)
        if already_today >= 1:
            logger.info(f"User {user.id} rejected: {action.value} already recorded today.")
            return DuplicateRejection(message=_DUPLICATE_MESSAGES[action], action=action, user=user)

        event = await self.db_client.append_event_once_per_day(
            user.id, action, AttendanceSource.FINGERPRINT, start, end, now
        )
        if event is None:
            logger.warning(f"User {user.id}: concurrent scan recorded {action.value} first; rejecting this one.")
            return DuplicateRejection(message=_DUPLICATE_MESSAGES[action], action=action, user=user)

        logger.info(f"User {user.id} ({user.full_name}) {action.value} recorded at {now.isoformat()}.")
        return ScanAccepted(message=_ACCEPTED_MESSAGES[action], action=action, user=user, event=event)

    async def record_manual_event(self, user_id: int, action: AttendanceAction,
                                  source: AttendanceSource = AttendanceSource.MANUAL) -> AttendanceLog:
        """Administrator override: appends an event without the daily limit."""
        user = await self.db_client.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        event = await self.db_client.append_event(user_id, action, source, self._clock())
        logger.info(f"Manual {action.value} recorded for user {user_id} (source={source.value}).")
        return event

    async def list_logs(self, user_id: Optional[int] = None, day: Optional[date] = None) -> List[AttendanceLogWithUser]:
        """Newest-first ledger entries, optionally limited to one user and one calendar day."""
        start = end = None
        if day is not None:
            start, end = day_bounds(day, tz=self._clock().tzinfo)
        return await self.db_client.list_events(user_id=user_id, start=start, end=end)

    async def get_daily_stats(self, day: Optional[date] = None) -> AttendanceStats:
        """Users present on the day: a SIGN_IN with no later SIGN_OUT that day, split by category."""
        now = self._clock()
        start, end = day_bounds(day or now.date(), tz=now.tzinfo)
        events = await self.db_client.get_events_with_users_between(start, end)
        return compute_daily_stats(events)
