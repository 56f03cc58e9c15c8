"""Service-layer exceptions mapped to HTTP responses."""
from fastapi import status


class AuthServiceError(Exception):
    """Base class; each subclass carries an HTTP status and a stable code."""

    http_status: int = status.HTTP_400_BAD_REQUEST
    code: str = "invalid_input"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AuthServiceError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    default_message = "Invalid input"


class DuplicateEmail(AuthServiceError):
    http_status = status.HTTP_409_CONFLICT
    code = "duplicate_email"
    default_message = "User with this email already exists"


class InvalidCredentials(AuthServiceError):
    """Wrong password or unknown email; the two are never distinguished."""

    http_status = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidOrExpiredToken(AuthServiceError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "invalid_or_expired_token"
    default_message = "Invalid or expired token"


class InvalidToken(InvalidOrExpiredToken):
    code = "invalid_token"
    default_message = "Invalid token"


class ExpiredToken(InvalidOrExpiredToken):
    code = "expired_token"
    default_message = "Token has expired"


class MalformedToken(InvalidOrExpiredToken):
    code = "malformed_token"
    default_message = "Malformed token"


class Unauthorized(AuthServiceError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Access token required"


class Forbidden(AuthServiceError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Admin access required"


class NotFound(AuthServiceError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "User not found"


class NotificationFailure(AuthServiceError):
    """Outbound email could not be delivered."""

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "notification_failure"
    default_message = "Failed to send email"
