"""User Controller — domain errors map onto HTTP errors."""

from userservice.api.controllers.user_controller import map_user_error_to_api_error
from userservice.core.domain_types import UserErrorCode
from userservice.core.errors import RequestValidationFailed, ResourceNotFoundError
from userservice.core.user import UserError


def test_not_found_maps_to_404():
    error = map_user_error_to_api_error(
        UserError(UserErrorCode.NOT_FOUND, "User not found", "id", "u1"),
    )
    assert isinstance(error, ResourceNotFoundError)
    assert error.http_status == 404
    assert error.message == "User not found"


def test_duplicate_email_maps_to_400_with_field():
    error = map_user_error_to_api_error(
        UserError(UserErrorCode.DUPLICATE_EMAIL, "taken", "email", "a@b.co"),
    )
    assert isinstance(error, RequestValidationFailed)
    assert error.to_response("/users")["errors"] == [
        {"field": "body.email", "message": "taken", "value": "a@b.co"},
    ]
