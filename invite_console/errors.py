"""Typed failures raised by the session and review layers."""

from typing import Any, Optional

from invite_console.messaging import get_message


class ConsoleError(Exception):
    """Base class for every failure the console surfaces to its caller."""

    message_key = "errors.generic"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def user_message(self) -> str:
        """Actionable text for the moderator, falling back to the raw detail."""
        return get_message(self.message_key, default=str(self), detail=self.detail)


class UnauthenticatedError(ConsoleError):
    """No session is held; the caller must route to login."""

    message_key = "errors.unauthenticated"


class RefreshFailedError(ConsoleError):
    """The session expired and could not be renewed; log in again."""

    message_key = "errors.refresh_failed"


class NetworkError(ConsoleError):
    """Transport failure or timeout. Safe to retry."""

    message_key = "errors.network"


class InvalidTransitionError(ConsoleError):
    """A review action that the state machine does not allow."""

    message_key = "errors.invalid_transition"


class ApiError(ConsoleError):
    """The backend answered with a non-success status."""

    message_key = "errors.api"

    def __init__(self, status_code: Optional[int], detail: str = ""):
        super().__init__(detail or f"HTTP {status_code}")
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.detail
        return f"{self.detail} (HTTP {self.status_code})"


class InvalidCredentialsError(ApiError):
    message_key = "errors.invalid_credentials"


class ServerError(ApiError):
    message_key = "errors.server"


class ConflictError(ApiError):
    """The review was decided elsewhere before our decision landed."""

    message_key = "errors.conflict"

    def __init__(
        self, status_code: Optional[int] = 409, detail: str = "", latest: Any = None
    ):
        super().__init__(status_code, detail)
        # Latest backend copy of the record, when it could be fetched
        self.latest = latest
