"""Messages between users."""

import logging
from typing import Any

from grindset.core import db_client
from grindset.core.config import constants
from grindset.core.errors import ForbiddenError, MessageNotFoundError, SameSenderReceiverError
from grindset.core.logging import span
from grindset.domain.message import InvitationStatus, Message, MessageType


logger = logging.getLogger(__name__)

COLLECTION = "messages"


async def create_message(
    *,
    sender_id: str,
    receiver_id: str,
    content: str,
    type: MessageType = MessageType.GENERAL,
    invitation_grind_id: str | None = None,
) -> Message:
    """Create a message; invitations start out pending.

    Raises:
        SameSenderReceiverError: If sender and receiver are the same user
    """
    with span("message_service.create_message"):
        if str(sender_id) == str(receiver_id):
            raise SameSenderReceiverError

        data: dict[str, Any] = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "type": type.value,
            "read": False,
        }
        if invitation_grind_id is not None:
            data["invitation_grind_id"] = invitation_grind_id
        if type == MessageType.INVITATION:
            data["invitation_status"] = InvitationStatus.PENDING.value

        record = await db_client.create_record(collection=COLLECTION, data=data)
        logger.info("Message created", extra={"message_id": record["id"], "type": type.value})
        return Message(**record)


async def get_message(*, message_id: str) -> Message:
    """Get a message by ID, raising MessageNotFoundError if absent."""
    with span("message_service.get_message"):
        try:
            return Message(**await db_client.get_record(collection=COLLECTION, record_id=message_id))
        except db_client.RecordNotFoundError as e:
            raise MessageNotFoundError from e


async def _list(field: str, user_id: str, page: int, per_page: int | None) -> list[Message]:
    records = await db_client.list_records(
        collection=COLLECTION,
        filter_query=f'{field} = "{db_client.sanitize_param(user_id)}"',
        sort="-id",
        page=page,
        per_page=per_page or constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [Message(**r) for r in records]


async def list_received_messages(*, user_id: str, page: int = 1, per_page: int | None = None) -> list[Message]:
    """Messages addressed to the user, newest first."""
    with span("message_service.list_received_messages"):
        return await _list("receiver_id", user_id, page, per_page)


async def list_sent_messages(*, user_id: str, page: int = 1, per_page: int | None = None) -> list[Message]:
    """Messages sent by the user, newest first."""
    with span("message_service.list_sent_messages"):
        return await _list("sender_id", user_id, page, per_page)


async def mark_read(*, message_id: str, acting_user_id: str) -> Message:
    """Mark a message read; only its receiver may do so.

    Raises:
        MessageNotFoundError: If the message does not exist
        ForbiddenError: If the actor is not the receiver
    """
    with span("message_service.mark_read"):
        message = await get_message(message_id=message_id)
        if message.receiver_id != str(acting_user_id):
            raise ForbiddenError("Only the receiver can mark a message as read.")
        if message.read:
            return message

        await db_client.update_records(
            collection=COLLECTION,
            filter_query=f'id = "{message.id}" && read = "false"',
            data={"read": True},
        )
        return await get_message(message_id=message_id)
