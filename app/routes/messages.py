"""
messages.py
-----------
Purpose:
    Message ingestion endpoint, one path per channel.

Architecture:
    - API layer: parses the channel's JSON body into its request model
    - Service layer: IngestionService runs dedup, entity updates and scoring
    - API layer: converts IngestionResult → MessageIngestionResponse

Usage:
    POST /api/messages/email
    POST /api/messages/slack
    POST /api/messages/whatsapp
    POST /api/messages/linkedin
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from pydantic import ValidationError as PydanticValidationError

from app.infrastructure.observability.logging import get_logger
from app.models.api.message_request import parse_ingestion_request
from app.models.api.message_response import ErrorResponse, MessageIngestionResponse
from app.routes.dependencies import get_ingestion_service
from app.services.channel_strategies import get_strategy
from app.services.errors import ValidationError
from app.services.ingestion_service import IngestionService

router = APIRouter(prefix="/api/messages", tags=["messages"])
logger = get_logger(__name__)


def _invalid_fields(exc: PydanticValidationError) -> list[str]:
    return [".".join(str(part) for part in err["loc"]) for err in exc.errors()]


@router.post(
    "/{channel}",
    response_model=MessageIngestionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def ingest_message(
    channel: str,
    payload: dict[str, Any] = Body(...),
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Ingest one message from a channel.

    Returns:
        MessageIngestionResponse: ids of the stored message, its conversation
        and contact, plus the conversation's new priority

    Raises:
        400: Unknown channel, missing fields or malformed body
        404: userId does not exist
        409: externalMessageId already ingested
    """
    get_strategy(channel)

    try:
        request = parse_ingestion_request(channel, payload)
    except PydanticValidationError as e:
        fields = _invalid_fields(e)
        logger.info("Rejected malformed message body", channel=channel, fields=fields)
        raise ValidationError(
            f"Invalid fields: {', '.join(fields)}",
            user_id=payload.get("userId"),
            details={"fields": fields},
        ) from e

    result = service.ingest(channel, request.to_inbound())
    return MessageIngestionResponse.from_result(result)
