"""
Tests for message templates and error rendering.
"""
from invite_console.errors import (
    ConflictError,
    InvalidCredentialsError,
    NetworkError,
    RefreshFailedError,
    UnauthenticatedError,
)
from invite_console.messaging import get_message


class TestGetMessage:

    def test_formats_template(self):
        assert get_message("reviews.approved", review_id="r1") == "Review r1 approved."

    def test_missing_key_placeholder(self):
        assert get_message("reviews.nope") == "<Missing Template: reviews.nope>"

    def test_missing_key_default(self):
        assert get_message("reviews.nope", default="fallback") == "fallback"

    def test_missing_placeholder_value_uses_default(self):
        assert get_message("reviews.approved", default="plain") == "plain"


class TestErrorMessages:

    def test_refresh_failed_asks_for_login(self):
        assert "log in again" in RefreshFailedError("401").user_message()

    def test_unauthenticated(self):
        assert "not logged in" in UnauthenticatedError().user_message()

    def test_invalid_credentials_carries_backend_detail(self):
        message = InvalidCredentialsError(401, "Invalid email or password").user_message()

        assert "Invalid email or password" in message

    def test_network_error_mentions_retry(self):
        assert "try again" in NetworkError("timed out").user_message()

    def test_conflict_tells_user_to_reload(self):
        assert "Reload" in ConflictError(409, "Already reviewed").user_message()

    def test_api_error_str_includes_status(self):
        assert str(InvalidCredentialsError(401, "nope")) == "nope (HTTP 401)"
