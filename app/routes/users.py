"""
User endpoints.

Users are created explicitly (or by demo seeding); ingestion never creates
them and rejects unknown userIds with USER_NOT_FOUND.
"""

from fastapi import APIRouter, Depends, status

from app.infrastructure.observability.logging import get_logger
from app.models.api.message_request import CreateUserRequest
from app.models.api.message_response import ErrorResponse, UserResponse
from app.routes.dependencies import get_store
from app.services.entity_store import EntityStore
from app.services.errors import UserNotFoundError, ValidationError

router = APIRouter(prefix="/api/users", tags=["users"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_user(request: CreateUserRequest, store: EntityStore = Depends(get_store)):
    missing = [name for name in ("email", "name") if not getattr(request, name)]
    if missing:
        raise ValidationError.missing_fields(missing)

    try:
        user = store.create_user(email=request.email, name=request.name, user_id=request.id)
    except ValueError as e:
        logger.info("Rejected duplicate user", user_id=request.id, error=str(e))
        raise ValidationError(str(e), details={"id": request.id, "email": request.email}) from e

    return UserResponse.from_user(user)


@router.get(
    "/{user_id}", response_model=UserResponse, responses={404: {"model": ErrorResponse}}
)
async def get_user(user_id: str, store: EntityStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise UserNotFoundError(user_id)
    return UserResponse.from_user(user)
