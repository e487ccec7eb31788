"""User directory: account lookup and resolution of participant identifiers."""

import logging

from grindset.core import db_client
from grindset.core.errors import UserAlreadyExistsError, UserNotFoundError
from grindset.core.logging import span
from grindset.domain.user import User


logger = logging.getLogger(__name__)


async def create_user(*, username: str, email: str, avatar: str = "") -> User:
    """Register a user.

    Raises:
        UserAlreadyExistsError: If a user with this email already exists
    """
    with span("user_service.create_user"):
        email = email.strip().lower()
        record, created = await db_client.get_or_create_record(
            collection="users",
            lookup={"email": email},
            defaults={"username": username, "avatar": avatar},
        )
        if not created:
            logger.warning("User already exists", extra={"email": email})
            raise UserAlreadyExistsError

        logger.info("Created user", extra={"user_id": record["id"]})
        return User(**record)


async def get_user(*, user_id: str) -> User:
    """Get a user by ID, raising UserNotFoundError if absent."""
    with span("user_service.get_user"):
        try:
            record = await db_client.get_record(collection="users", record_id=user_id)
        except db_client.RecordNotFoundError as e:
            raise UserNotFoundError from e
        return User(**record)


async def get_user_by_email(*, email: str) -> User | None:
    """Get a user by email, or None."""
    with span("user_service.get_user_by_email"):
        email = email.strip().lower()
        record = await db_client.get_first_record(
            collection="users",
            filter_query=f'email = "{db_client.sanitize_param(email)}"',
        )
        return User(**record) if record else None


async def resolve_user(*, identifier: str) -> User:
    """Resolve an email address or a user ID to a user.

    Identifiers containing "@" are treated as emails, anything else as an ID.

    Raises:
        UserNotFoundError: If no such user exists
    """
    with span("user_service.resolve_user"):
        if "@" in identifier:
            user = await get_user_by_email(email=identifier)
            if user is None:
                raise UserNotFoundError(f"No user with email {identifier}.")
            return user
        return await get_user(user_id=identifier)
