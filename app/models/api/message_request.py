"""
Message ingestion request models.
Used by routes for input parsing; field names follow the camelCase wire format.

Identifying fields are optional at this layer so that a missing userId or
sender field is reported as VALIDATION_ERROR by the ingestion service rather
than as a schema error.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.services.channel_strategies import InboundMessage


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# =============================================================================
# Sender identity
# =============================================================================


class EmailSender(_WireModel):
    email: str | None = None
    name: str | None = None


class SlackSender(EmailSender):
    slack_user_id: str | None = Field(default=None, alias="slackUserId")


class WhatsAppSender(EmailSender):
    phone: str | None = None


class LinkedInSender(EmailSender):
    linkedin_url: str | None = Field(default=None, alias="linkedinUrl")


# =============================================================================
# Channel metadata
# =============================================================================


class EmailMetadata(_WireModel):
    has_attachments: bool | None = Field(default=None, alias="hasAttachments")
    is_reply: bool | None = Field(default=None, alias="isReply")
    importance: Literal["low", "normal", "high"] | None = None


class SlackMetadata(_WireModel):
    channel_name: str | None = Field(default=None, alias="channelName")
    thread_ts: str | None = Field(default=None, alias="threadTs")
    mentions: list[str] | None = None
    is_direct_message: bool | None = Field(default=None, alias="isDirectMessage")


class WhatsAppMetadata(_WireModel):
    message_type: Literal["text", "image", "video", "audio", "document"] | None = Field(
        default=None, alias="messageType"
    )
    is_forwarded: bool | None = Field(default=None, alias="isForwarded")
    is_group_chat: bool | None = Field(default=None, alias="isGroupChat")


class LinkedInMetadata(_WireModel):
    connection_degree: Literal[1, 2, 3] | None = Field(default=None, alias="connectionDegree")
    is_in_mail: bool | None = Field(default=None, alias="isInMail")
    profile_headline: str | None = Field(default=None, alias="profileHeadline")


# =============================================================================
# Ingestion requests
# =============================================================================


class MessageIngestionRequest(_WireModel):
    """Fields shared by every channel."""

    user_id: str | None = Field(default=None, alias="userId")
    external_message_id: str | None = Field(default=None, alias="externalMessageId")
    external_conversation_id: str | None = Field(default=None, alias="externalConversationId")
    received_at: datetime | None = Field(default=None, alias="receivedAt")

    def message_content(self) -> str:
        return getattr(self, "content", None) or ""

    def to_inbound(self) -> InboundMessage:
        """Convert to the channel-neutral shape the ingestion service consumes."""
        sender = getattr(self, "sender", None)
        metadata = getattr(self, "metadata", None)
        return InboundMessage(
            user_id=self.user_id,
            external_message_id=self.external_message_id,
            external_conversation_id=self.external_conversation_id,
            sender=sender.model_dump(by_alias=True, exclude_none=True) if sender else {},
            content=self.message_content(),
            subject=getattr(self, "subject", None),
            received_at=self.received_at,
            metadata=metadata.model_dump(by_alias=True, exclude_none=True) if metadata else {},
        )


class EmailMessageRequest(MessageIngestionRequest):
    sender: EmailSender | None = Field(default=None, alias="from")
    subject: str | None = None
    body: str | None = None
    metadata: EmailMetadata | None = None

    def message_content(self) -> str:
        return self.body or ""


class SlackMessageRequest(MessageIngestionRequest):
    sender: SlackSender | None = Field(default=None, alias="from")
    content: str | None = None
    metadata: SlackMetadata | None = None


class WhatsAppMessageRequest(MessageIngestionRequest):
    sender: WhatsAppSender | None = Field(default=None, alias="from")
    content: str | None = None
    metadata: WhatsAppMetadata | None = None


class LinkedInMessageRequest(MessageIngestionRequest):
    sender: LinkedInSender | None = Field(default=None, alias="from")
    content: str | None = None
    metadata: LinkedInMetadata | None = None


REQUEST_MODELS: dict[str, type[MessageIngestionRequest]] = {
    "email": EmailMessageRequest,
    "slack": SlackMessageRequest,
    "whatsapp": WhatsAppMessageRequest,
    "linkedin": LinkedInMessageRequest,
}


class CreateUserRequest(_WireModel):
    id: str | None = None
    email: str | None = None
    name: str | None = None


def parse_ingestion_request(channel: str, payload: dict[str, Any]) -> MessageIngestionRequest:
    """Validate a raw JSON body against the channel's request model."""
    return REQUEST_MODELS[channel].model_validate(payload)
