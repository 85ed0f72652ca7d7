import json

import pytest
from fastapi import Request

from app.middleware import error_handlers
from app.services.errors import DuplicateMessageError, IngestionError


class RecordingLogger:
    """Collects (level, event, fields) tuples."""

    def __init__(self):
        self.records = []

    def info(self, event, **fields):
        self.records.append(("info", event, fields))

    def error(self, event, **fields):
        self.records.append(("error", event, fields))


def _request() -> Request:
    return Request(
        {"type": "http", "method": "POST", "path": "/api/messages/email", "headers": []}
    )


@pytest.fixture
def recorded(monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(error_handlers, "logger", recorder)
    return recorder.records


@pytest.mark.asyncio
async def test_client_error_keeps_message_and_logs_recoverable(recorded):
    """Client errors return their own message and are logged as recoverable."""
    response = await error_handlers.inbox_error_handler(
        _request(), DuplicateMessageError("ext-1", "msg-1", user_id="user-1")
    )

    assert response.status_code == 409
    assert json.loads(response.body) == {
        "error": {
            "code": "DUPLICATE_MESSAGE",
            "message": "Message with externalId ext-1 already exists",
        }
    }
    level, _, fields = recorded[0]
    assert level == "info"
    assert fields["recoverable"] is True


@pytest.mark.asyncio
async def test_ingestion_failure_hides_detail_and_logs_unrecoverable(recorded):
    """Internal faults get a generic body and are logged as unrecoverable."""
    response = await error_handlers.inbox_error_handler(
        _request(), IngestionError("store exploded", user_id="user-1")
    )

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["error"]["code"] == "INTERNAL_ERROR"
    assert "exploded" not in body["error"]["message"]
    level, _, fields = recorded[0]
    assert level == "error"
    assert fields["recoverable"] is False
    assert fields["error"] == "store exploded"
