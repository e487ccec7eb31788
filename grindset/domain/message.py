"""Message and invitation domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class MessageType(StrEnum):
    """Kind of message; invitations drive grind membership."""

    GENERAL = "general"
    INVITATION = "invitation"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_REJECTED = "invitation_rejected"


class InvitationStatus(StrEnum):
    """Disposition of an invitation message."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Message(BaseModel):
    """Message data transfer object."""

    id: str = Field(..., description="Unique message ID")
    sender_id: str = Field(..., description="User who sent the message")
    receiver_id: str = Field(..., description="User the message is addressed to")
    content: str = Field(..., description="Message body")
    type: MessageType = Field(default=MessageType.GENERAL, description="Message kind")
    invitation_grind_id: str | None = Field(default=None, description="Grind an invitation refers to")
    invitation_status: InvitationStatus | None = Field(
        default=None, description="Disposition; only set on invitation messages"
    )
    read: bool = Field(default=False, description="Whether the receiver has read the message")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")

    @property
    def is_invitation(self) -> bool:
        return self.type == MessageType.INVITATION

    @property
    def invitation_accepted(self) -> bool:
        return self.invitation_status == InvitationStatus.ACCEPTED

    @property
    def invitation_rejected(self) -> bool:
        return self.invitation_status == InvitationStatus.REJECTED


class InvitationCreate(BaseModel):
    """Payload for inviting someone to a grind by email."""

    grind_id: str = Field(..., alias="grindID", min_length=1)
    participant_email: str = Field(..., alias="participantEmail", min_length=3)

    model_config = {"populate_by_name": True}
