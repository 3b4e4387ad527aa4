# app/backend/db/seed.py
import logging

from .db_client import AsyncPostgresClient
from ..models.db_models import NewUser, UserCategory, AttendanceAction, AttendanceSource

logger = logging.getLogger(__name__)


async def seed_database(db_client: AsyncPostgresClient) -> bool:
    """
    Fills an empty roster with demo users, simulated fingerprint templates and
    a couple of sign-ins. Does nothing if any user exists. Returns True when
    data was written.
    """
    if await db_client.count_users() > 0:
        return False

    logger.info("Seeding database...")
    alice = await db_client.create_user(NewUser(full_name="Alice Student", category=UserCategory.STUDENT, email="alice@school.edu"))
    bob = await db_client.create_user(NewUser(full_name="Bob Staff", category=UserCategory.STAFF, email="bob@school.edu"))
    await db_client.create_user(NewUser(full_name="Charlie Student", category=UserCategory.STUDENT, email="charlie@school.edu"))

    await db_client.create_fingerprint(alice.id, "fp_alice_001")
    await db_client.create_fingerprint(bob.id, "fp_bob_002")

    await db_client.append_event(alice.id, AttendanceAction.SIGN_IN, AttendanceSource.FINGERPRINT)
    await db_client.append_event(bob.id, AttendanceAction.SIGN_IN, AttendanceSource.FINGERPRINT)
    logger.info("Database seeded!")
    return True
