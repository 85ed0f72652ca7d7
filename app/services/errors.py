"""
Service-layer errors for the inbox priority engine.

Services raise these; the HTTP layer maps them to the
{"error": {"code", "message"}} body via app.middleware.error_handlers.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    DUPLICATE_MESSAGE = "DUPLICATE_MESSAGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class InboxServiceError(Exception):
    """Base exception for inbox engine operations."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.details = details or {}
        self.recoverable = recoverable


class ValidationError(InboxServiceError):
    """Malformed or missing input. Never mutates state."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400

    @classmethod
    def missing_fields(cls, fields: list[str], user_id: str | None = None) -> "ValidationError":
        return cls(
            f"Missing required fields: {', '.join(fields)}",
            user_id=user_id,
            details={"missing_fields": fields},
        )


class UserNotFoundError(InboxServiceError):
    code = ErrorCode.USER_NOT_FOUND
    status_code = 404

    def __init__(self, user_id: str):
        super().__init__(f"User with id {user_id} not found", user_id=user_id)


class ConversationNotFoundError(InboxServiceError):
    code = ErrorCode.CONVERSATION_NOT_FOUND
    status_code = 404

    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation with id {conversation_id} not found",
            details={"conversation_id": conversation_id},
        )
        self.conversation_id = conversation_id


class DuplicateMessageError(InboxServiceError):
    """The externalMessageId was already ingested. Safe for callers to treat as delivered."""

    code = ErrorCode.DUPLICATE_MESSAGE
    status_code = 409

    def __init__(self, external_id: str, existing_message_id: str, user_id: str | None = None):
        super().__init__(
            f"Message with externalId {external_id} already exists",
            user_id=user_id,
            details={"external_id": external_id, "message_id": existing_message_id},
        )
        self.external_id = external_id
        self.existing_message_id = existing_message_id


class IngestionError(InboxServiceError):
    """Unexpected fault while orchestrating an ingestion."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message, user_id=user_id, recoverable=False)
