"""User Controller — /users CRUD routes as a RouteProvider.

Invariants:
    - Routes never contain business logic (delegate to UserService)
    - Err(NOT_FOUND) → 404; duplicate id/email and invalid email → 400 ValidationError
    - Successful bodies follow the contract: User, list of User, SuccessMessage
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from userservice.api.routing import RouteProvider
from userservice.core.domain_types import UserErrorCode
from userservice.core.errors import (
    ApiError, FieldViolation, RequestValidationFailed, ResourceNotFoundError,
)
from userservice.core.result import Err, Ok
from userservice.core.user import UserError
from userservice.schemas.user import (
    SuccessMessage, UserCreate, UserResponse, UserUpdate,
)
from userservice.services.user_service import UserResult, UserService


def map_user_error_to_api_error(error: UserError) -> ApiError:
    match error.code:
        case UserErrorCode.NOT_FOUND:
            return ResourceNotFoundError("User", error.value or "")
        case _:
            return RequestValidationFailed([
                FieldViolation(
                    field=f"body.{error.field}" if error.field else "body",
                    message=error.message,
                    value=error.value or "",
                ),
            ])


def _user_or_raise(result: UserResult) -> UserResponse:
    match result:
        case Ok(user):
            return UserResponse.from_entity(user)
        case Err(error):
            raise map_user_error_to_api_error(error)


class UserController(RouteProvider):
    """Exposes UserService over HTTP."""

    def __init__(self, user_service: UserService):
        self._user_service = user_service
        self.router = APIRouter(tags=["users"])
        self._init_routes()

    def _init_routes(self) -> None:
        self.router.add_api_route("/users", self.list_users, methods=["GET"])
        self.router.add_api_route("/users", self.create_user, methods=["POST"])
        self.router.add_api_route("/users/{user_id}", self.get_user, methods=["GET"])
        self.router.add_api_route("/users/{user_id}", self.update_user, methods=["PUT"])
        self.router.add_api_route("/users/{user_id}", self.delete_user, methods=["DELETE"])

    def get_routes(self) -> APIRouter:
        return self.router

    async def list_users(self) -> JSONResponse:
        """Fetch all users."""
        users = await self._user_service.list_users()
        return JSONResponse(
            [UserResponse.from_entity(u).to_json() for u in users],
        )

    async def create_user(self, body: UserCreate) -> JSONResponse:
        """Create a new user."""
        result = await self._user_service.create_user(
            body.id, body.name, body.email, body.created_at,
        )
        return JSONResponse(
            _user_or_raise(result).to_json(), status_code=status.HTTP_201_CREATED,
        )

    async def get_user(self, user_id: str) -> JSONResponse:
        """Fetch a user by id."""
        result = await self._user_service.get_user(user_id)
        return JSONResponse(_user_or_raise(result).to_json())

    async def update_user(self, user_id: str, body: UserUpdate) -> JSONResponse:
        """Update a user's name and/or email."""
        result = await self._user_service.update_user(user_id, body.changes())
        return JSONResponse(_user_or_raise(result).to_json())

    async def delete_user(self, user_id: str) -> JSONResponse:
        """Delete a user by id."""
        result = await self._user_service.delete_user(user_id)
        _user_or_raise(result)
        return JSONResponse(
            SuccessMessage(message="User deleted successfully").model_dump(),
        )
