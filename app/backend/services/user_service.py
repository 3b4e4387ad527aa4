import logging
from typing import List, Optional
import asyncpg

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, NewUser, Fingerprint
from .errors import UserNotFoundError, DuplicateCredentialError, DuplicateEmailError

logger = logging.getLogger(__name__)


class UserService:
    """
    Service layer for the attendance roster and fingerprint enrollment.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def list_users(self) -> List[User]:
        return await self.db_client.get_users()

    async def get_user(self, user_id: int) -> User:
        user = await self.db_client.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def create_user(self, new_user: NewUser) -> User:
        try:
            user = await self.db_client.create_user(new_user)
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"User creation rejected, email '{new_user.email}' is taken.")
            raise DuplicateEmailError() from e
        logger.info(f"User {user.id} ({user.full_name}, {user.category.value}) created.")
        return user

    async def delete_user(self, user_id: int) -> None:
        """Deletes a user and its fingerprints. Its attendance history stays in the ledger."""
        deleted = await self.db_client.delete_user(user_id)
        if not deleted:
            raise UserNotFoundError()
        logger.info(f"User {user_id} deleted.")

    async def register_fingerprint(self, user_id: int, template_id: str,
                                   public_key: Optional[str] = None,
                                   credential_type: str = "public-key") -> Fingerprint:
        """
        Links a fingerprint template to a user. A template id can belong to
        only one user; a user may enroll several templates.
        """
        try:
            fingerprint = await self.db_client.create_fingerprint(
                user_id, template_id, public_key=public_key, credential_type=credential_type
            )
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Fingerprint template '{template_id}' is already enrolled.")
            raise DuplicateCredentialError() from e
        except asyncpg.ForeignKeyViolationError as e:
            raise UserNotFoundError() from e
        logger.info(f"Fingerprint {fingerprint.id} enrolled for user {user_id}.")
        return fingerprint

    async def list_fingerprints(self, user_id: int) -> List[Fingerprint]:
        await self.get_user(user_id)
        return await self.db_client.get_fingerprints(user_id)
