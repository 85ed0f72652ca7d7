"""
Per-channel ingestion rules.

Every channel runs through the same ingestion pipeline; what differs is
captured in a ChannelStrategy record:
- which sender fields are required
- how the contact's email key is derived
- how a new conversation is titled
- which extra sender fields are folded into message metadata
- the response-expectation signal (platform reply-latency norm, 0-15)
- the raw provider boost computed from message metadata
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.models.domain.inbox_domain import CHANNELS, Channel
from app.services.errors import ValidationError

WHATSAPP_PLACEHOLDER_DOMAIN = "whatsapp.placeholder"


@dataclass(slots=True)
class InboundMessage:
    """Channel-neutral view of an incoming message, before validation."""

    user_id: str | None
    external_message_id: str | None
    external_conversation_id: str | None
    sender: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    subject: str | None = None
    received_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def sender_name(self) -> str:
        return self.sender.get("name") or ""


@dataclass(slots=True, frozen=True)
class ChannelStrategy:
    channel: Channel
    required_sender_fields: tuple[str, ...]
    response_expectation: int
    derive_contact_email: Callable[[InboundMessage], str]
    derive_conversation_title: Callable[[InboundMessage], str]
    shape_metadata: Callable[[InboundMessage], dict[str, Any]]
    provider_boost: Callable[[dict[str, Any]], int]

    def missing_sender_fields(self, message: InboundMessage) -> list[str]:
        return [
            f"from.{name}" for name in self.required_sender_fields if not message.sender.get(name)
        ]


def _sender_email(message: InboundMessage) -> str:
    return message.sender["email"]


def _with_sender_field(key: str) -> Callable[[InboundMessage], dict[str, Any]]:
    def shape(message: InboundMessage) -> dict[str, Any]:
        shaped = dict(message.metadata)
        value = message.sender.get(key)
        if value is not None:
            shaped[key] = value
        return shaped

    return shape


# =============================================================================
# Email
# =============================================================================


def _email_title(message: InboundMessage) -> str:
    return message.subject or "(No Subject)"


def _email_boost(metadata: dict[str, Any]) -> int:
    boost = 0
    if metadata.get("importance") == "high":
        boost += 5
    if metadata.get("importance") == "low":
        boost -= 3
    return boost


# =============================================================================
# Slack
# =============================================================================


def _slack_title(message: InboundMessage) -> str:
    channel_name = message.metadata.get("channelName")
    if channel_name:
        return channel_name
    if message.metadata.get("isDirectMessage"):
        return f"DM with {message.sender_name}"
    return "Slack Conversation"


def _slack_boost(metadata: dict[str, Any]) -> int:
    boost = 0
    is_dm = bool(metadata.get("isDirectMessage"))
    mentions = metadata.get("mentions")
    if is_dm:
        boost += 10
    if isinstance(mentions, list) and mentions:
        boost += 5
    # Any list, even an empty one, opts out of the channel-noise penalty.
    if not is_dm and not mentions and not isinstance(mentions, list):
        boost -= 5
    return boost


# =============================================================================
# WhatsApp
# =============================================================================


def _whatsapp_contact_email(message: InboundMessage) -> str:
    email = message.sender.get("email")
    if email:
        return email
    return f"{message.sender['phone']}@{WHATSAPP_PLACEHOLDER_DOMAIN}"


def _whatsapp_title(message: InboundMessage) -> str:
    if message.metadata.get("isGroupChat"):
        return "WhatsApp Group"
    return f"WhatsApp with {message.sender_name}"


def _whatsapp_boost(metadata: dict[str, Any]) -> int:
    boost = 0
    if metadata.get("isForwarded"):
        boost -= 5
    if metadata.get("isGroupChat"):
        boost -= 10
    return boost


# =============================================================================
# LinkedIn
# =============================================================================


def _linkedin_title(message: InboundMessage) -> str:
    if message.metadata.get("isInMail"):
        return f"InMail from {message.sender_name}"
    return f"LinkedIn with {message.sender_name}"


def _linkedin_boost(metadata: dict[str, Any]) -> int:
    boost = 0
    if metadata.get("connectionDegree") == 1:
        boost += 5
    if metadata.get("isInMail"):
        boost -= 5
    return boost


CHANNEL_STRATEGIES: dict[str, ChannelStrategy] = {
    "email": ChannelStrategy(
        channel="email",
        required_sender_fields=("email", "name"),
        response_expectation=5,
        derive_contact_email=_sender_email,
        derive_conversation_title=_email_title,
        shape_metadata=lambda message: dict(message.metadata),
        provider_boost=_email_boost,
    ),
    "slack": ChannelStrategy(
        channel="slack",
        required_sender_fields=("email", "name"),
        response_expectation=12,
        derive_contact_email=_sender_email,
        derive_conversation_title=_slack_title,
        shape_metadata=_with_sender_field("slackUserId"),
        provider_boost=_slack_boost,
    ),
    "whatsapp": ChannelStrategy(
        channel="whatsapp",
        required_sender_fields=("name", "phone"),
        response_expectation=15,
        derive_contact_email=_whatsapp_contact_email,
        derive_conversation_title=_whatsapp_title,
        shape_metadata=_with_sender_field("phone"),
        provider_boost=_whatsapp_boost,
    ),
    "linkedin": ChannelStrategy(
        channel="linkedin",
        required_sender_fields=("email", "name"),
        response_expectation=3,
        derive_contact_email=_sender_email,
        derive_conversation_title=_linkedin_title,
        shape_metadata=_with_sender_field("linkedinUrl"),
        provider_boost=_linkedin_boost,
    ),
}


def get_strategy(channel: str) -> ChannelStrategy:
    """Look up the strategy for a channel name."""
    strategy = CHANNEL_STRATEGIES.get(channel)
    if strategy is None:
        raise ValidationError(
            f"Unknown channel '{channel}'. Available channels: {', '.join(CHANNELS)}",
            details={"channel": channel},
        )
    return strategy
