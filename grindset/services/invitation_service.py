"""Invitation state machine.

An invitation is a message that starts out pending and is moved, exactly
once and only by its receiver, to accepted or rejected. Accepting adds the
receiver to the grind. Either response notifies the original sender.
"""

import logging

from grindset.core import db_client
from grindset.core.errors import (
    ForbiddenError,
    InvitationAlreadyRespondedError,
    NotAnInvitationError,
    ParticipantAlreadyExistsError,
    ParticipantNotFoundError,
    UserNotFoundError,
)
from grindset.core.logging import log_with_user_context, span
from grindset.domain.message import InvitationStatus, Message, MessageType
from grindset.services import grind_service, message_service, participation_service, user_service


logger = logging.getLogger(__name__)


async def create_invitation(*, sender_id: str, receiver_id: str, grind_id: str) -> Message:
    """Invite a user to a grind.

    Raises:
        SameSenderReceiverError: If sender and receiver are the same user
        UserNotFoundError: If the sender does not exist
        GrindNotFoundError: If the grind does not exist
    """
    with span("invitation_service.create_invitation"):
        sender = await user_service.get_user(user_id=sender_id)
        await grind_service.get_grind(grind_id=grind_id)

        message = await message_service.create_message(
            sender_id=sender.id,
            receiver_id=receiver_id,
            content=f"You have been invited to a grind created by {sender.username}",
            type=MessageType.INVITATION,
            invitation_grind_id=grind_id,
        )
        log_with_user_context(
            logger, "info", "Invitation sent", user_id=sender.id, receiver_id=receiver_id, grind_id=grind_id
        )
        return message


async def invite_by_email(*, sender_id: str, participant_email: str, grind_id: str) -> Message:
    """Invite a user identified by email.

    Raises:
        ParticipantNotFoundError: If no user has that email
    """
    with span("invitation_service.invite_by_email"):
        try:
            receiver = await user_service.resolve_user(identifier=participant_email)
        except UserNotFoundError as e:
            raise ParticipantNotFoundError(f"Participant {participant_email} not found.") from e
        return await create_invitation(sender_id=sender_id, receiver_id=receiver.id, grind_id=grind_id)


async def _load_pending_invitation(invitation_id: str, acting_user_id: str) -> Message:
    invitation = await message_service.get_message(message_id=invitation_id)
    if not invitation.is_invitation:
        raise NotAnInvitationError
    if invitation.receiver_id != str(acting_user_id):
        raise ForbiddenError("Only the invited user can respond to this invitation.")
    if invitation.invitation_status != InvitationStatus.PENDING:
        raise InvitationAlreadyRespondedError
    return invitation


async def _transition(
    invitation: Message,
    status: InvitationStatus,
    *,
    expected: InvitationStatus = InvitationStatus.PENDING,
    read: bool = True,
) -> None:
    updated = await db_client.update_records(
        collection=message_service.COLLECTION,
        filter_query=f'id = "{invitation.id}" && invitation_status = "{expected.value}"',
        data={"invitation_status": status.value, "read": read},
    )
    if updated == 0:
        raise InvitationAlreadyRespondedError


async def accept_invitation(*, invitation_id: str, acting_user_id: str) -> Message:
    """Accept an invitation and join its grind.

    Returns the notification sent back to the inviter.

    Raises:
        MessageNotFoundError: If the invitation does not exist
        NotAnInvitationError: If the message is not an invitation
        ForbiddenError: If the actor is not the invited user
        InvitationAlreadyRespondedError: If the invitation is no longer pending
    """
    with span("invitation_service.accept_invitation"):
        invitation = await _load_pending_invitation(invitation_id, acting_user_id)
        responder = await user_service.get_user(user_id=invitation.receiver_id)

        # Claim first; membership is only written once the invitation is ours.
        await _transition(invitation, InvitationStatus.ACCEPTED)
        try:
            await participation_service.add_participant(
                grind_id=invitation.invitation_grind_id or "", user_id=responder.id
            )
        except ParticipantAlreadyExistsError:
            log_with_user_context(
                logger,
                "warning",
                "Invitee already participates, accepting anyway",
                user_id=responder.id,
                grind_id=invitation.invitation_grind_id,
            )
        except Exception:
            logger.error("Joining the grind failed, reopening invitation", extra={"invitation_id": invitation.id})
            await _transition(
                invitation,
                InvitationStatus.PENDING,
                expected=InvitationStatus.ACCEPTED,
                read=invitation.read,
            )
            raise

        log_with_user_context(
            logger, "info", "Invitation accepted", user_id=responder.id, invitation_id=invitation.id
        )
        return await message_service.create_message(
            sender_id=responder.id,
            receiver_id=invitation.sender_id,
            content=f"Your invitation to the grind has been accepted by {responder.username}",
            type=MessageType.INVITATION_ACCEPTED,
            invitation_grind_id=invitation.invitation_grind_id,
        )


async def reject_invitation(*, invitation_id: str, acting_user_id: str) -> Message:
    """Reject an invitation; membership is untouched.

    Returns the notification sent back to the inviter.

    Raises:
        MessageNotFoundError: If the invitation does not exist
        NotAnInvitationError: If the message is not an invitation
        ForbiddenError: If the actor is not the invited user
        InvitationAlreadyRespondedError: If the invitation is no longer pending
    """
    with span("invitation_service.reject_invitation"):
        invitation = await _load_pending_invitation(invitation_id, acting_user_id)
        responder = await user_service.get_user(user_id=invitation.receiver_id)

        await _transition(invitation, InvitationStatus.REJECTED)
        log_with_user_context(
            logger, "info", "Invitation rejected", user_id=responder.id, invitation_id=invitation.id
        )
        return await message_service.create_message(
            sender_id=responder.id,
            receiver_id=invitation.sender_id,
            content=f"Your invitation to the grind has been rejected by {responder.username}",
            type=MessageType.INVITATION_REJECTED,
            invitation_grind_id=invitation.invitation_grind_id,
        )
