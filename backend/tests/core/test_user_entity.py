"""User Entity — email rule and domain error values."""

import pytest

from userservice.core.domain_types import ConnectionEvent, ServerState, UserErrorCode
from userservice.core.user import User, UserError, is_valid_email


@pytest.mark.parametrize("email", ["a@b.co", "first.last@sub.example.org", "x+tag@y.io"])
def test_valid_emails(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("email", ["", "a@b", "a b@c.io", "a@@b.io", "@b.io", "a@.io "])
def test_invalid_emails(email):
    assert not is_valid_email(email)


def test_user_defaults_created_at_to_utc():
    user = User(id="u1", name="Ada", email="a@b.co")
    assert user.created_at.tzinfo is not None


def test_user_error_is_frozen():
    error = UserError(UserErrorCode.NOT_FOUND, "User not found", "id", "u1")
    with pytest.raises(AttributeError):
        error.code = UserErrorCode.DUPLICATE_ID


def test_enums_serialize_to_strings():
    assert ConnectionEvent.ERROR.value == "error"
    assert ServerState("listening") is ServerState.LISTENING
