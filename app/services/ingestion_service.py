"""
Ingestion service - turns one incoming channel message into store updates.

Steps, identical for every channel:
1. validate identifying fields
2. resolve the user
3. dedup on externalMessageId (conflict stops here, nothing mutated)
4. find or create the contact
5. find or create the conversation
6. create the message
7. score the conversation
8. store the new priority and lastMessageAt

Channel differences come from the ChannelStrategy record. Steps 2-8 run
under the store lock so the dedup check and the insert cannot interleave
with another ingestion.

Service layer returns domain models only - API layer handles HTTP concerns.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC

from app.infrastructure.observability.logging import get_logger
from app.models.domain.inbox_domain import IngestionResult, PriorityContext, utc_now
from app.services.channel_strategies import ChannelStrategy, InboundMessage, get_strategy
from app.services.entity_store import EntityStore
from app.services.errors import (
    DuplicateMessageError,
    InboxServiceError,
    IngestionError,
    UserNotFoundError,
    ValidationError,
)
from app.services.priority_service import calculate_priority

logger = get_logger(__name__)

PriorityCalculator = Callable[[PriorityContext], int]


class IngestionService:
    def __init__(
        self,
        store: EntityStore,
        calculate: PriorityCalculator = calculate_priority,
    ) -> None:
        self.store = store
        self.calculate = calculate

    def ingest(self, channel: str, message: InboundMessage) -> IngestionResult:
        """
        Ingest one message from a channel.

        Raises:
            ValidationError: Unknown channel or missing required fields
            UserNotFoundError: userId does not exist
            DuplicateMessageError: externalMessageId already ingested
            IngestionError: Unexpected fault during orchestration
        """
        strategy = get_strategy(channel)
        self._validate(strategy, message)

        try:
            with self.store.lock:
                return self._ingest_locked(strategy, message)
        except InboxServiceError:
            raise
        except Exception as e:
            logger.exception(
                "Unexpected ingestion failure",
                channel=channel,
                user_id=message.user_id,
                external_message_id=message.external_message_id,
            )
            raise IngestionError(
                f"Failed to ingest {channel} message: {e}", user_id=message.user_id
            ) from e

    def _validate(self, strategy: ChannelStrategy, message: InboundMessage) -> None:
        missing = [
            name
            for name, value in (
                ("userId", message.user_id),
                ("externalMessageId", message.external_message_id),
                ("externalConversationId", message.external_conversation_id),
            )
            if not value
        ]
        missing.extend(strategy.missing_sender_fields(message))
        if missing:
            logger.info(
                "Rejected message with missing fields",
                channel=strategy.channel,
                missing_fields=missing,
            )
            raise ValidationError.missing_fields(missing, user_id=message.user_id)

    def _ingest_locked(self, strategy: ChannelStrategy, message: InboundMessage) -> IngestionResult:
        user = self.store.get_user(message.user_id)
        if not user:
            raise UserNotFoundError(message.user_id)

        existing = self.store.find_message_by_external_id(message.external_message_id)
        if existing:
            logger.info(
                "Duplicate message ignored",
                channel=strategy.channel,
                user_id=user.id,
                external_message_id=message.external_message_id,
                message_id=existing.id,
            )
            raise DuplicateMessageError(
                message.external_message_id, existing.id, user_id=user.id
            )

        contact = self.store.find_or_create_contact(
            user_id=user.id,
            email=strategy.derive_contact_email(message),
            name=message.sender_name,
            channel=strategy.channel,
        )

        conversation, is_new = self.store.find_or_create_conversation(
            user_id=user.id,
            contact_id=contact.id,
            external_id=message.external_conversation_id,
            channel=strategy.channel,
            title=strategy.derive_conversation_title(message),
        )

        received_at = message.received_at or utc_now()
        if received_at.tzinfo is None:
            received_at = received_at.replace(tzinfo=UTC)

        stored = self.store.create_message(
            conversation_id=conversation.id,
            external_id=message.external_message_id,
            channel=strategy.channel,
            content=message.content or "",
            metadata=strategy.shape_metadata(message),
            created_at=received_at,
        )

        priority = self.calculate(
            PriorityContext(
                channel=strategy.channel,
                content=message.content or "",
                last_message_at=received_at,
                contact_priority=contact.priority,
                metadata=message.metadata,
            )
        )
        self.store.update_conversation_priority(conversation.id, priority, received_at)

        logger.info(
            "Message ingested",
            channel=strategy.channel,
            user_id=user.id,
            contact_id=contact.id,
            conversation_id=conversation.id,
            message_id=stored.id,
            new_conversation=is_new,
            priority=priority,
        )
        return IngestionResult(
            message_id=stored.id,
            conversation_id=conversation.id,
            contact_id=contact.id,
            priority=priority,
        )
