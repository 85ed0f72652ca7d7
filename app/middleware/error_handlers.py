"""
Exception handlers mapping service errors to HTTP responses.

Response format:
    {"error": {"code": "DUPLICATE_MESSAGE", "message": "..."}}

Usage:
    from app.middleware.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.infrastructure.observability.logging import get_logger
from app.services.errors import ErrorCode, InboxServiceError

logger = get_logger(__name__)


def build_error_response(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


async def inbox_error_handler(request: Request, exc: InboxServiceError) -> JSONResponse:
    """Convert InboxServiceError subclasses to their status code and error body."""
    if exc.status_code >= 500:
        logger.error(
            "Server error",
            code=exc.code.value,
            path=request.url.path,
            error=exc.message,
            user_id=exc.user_id,
            recoverable=exc.recoverable,
        )
    else:
        logger.info(
            "Client error",
            code=exc.code.value,
            path=request.url.path,
            error=exc.message,
            user_id=exc.user_id,
            recoverable=exc.recoverable,
        )

    message = exc.message if exc.status_code < 500 else "An unexpected error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc.code.value, message),
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Schema and JSON parse failures surface as VALIDATION_ERROR, not 422."""
    fields = [
        ".".join(str(part) for part in err.get("loc", ()) if part != "body") or "body"
        for err in exc.errors()
    ]
    message = f"Invalid request fields: {', '.join(fields)}" if fields else "Invalid request"

    logger.info("Request validation failed", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_response(ErrorCode.VALIDATION_ERROR.value, message),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=build_error_response(
            ErrorCode.INTERNAL_ERROR.value, "An unexpected error occurred"
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InboxServiceError, inbox_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
