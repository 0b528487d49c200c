"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can read it without
    # parsing str(exception). Don't raise this base class directly - raise a subclass so
    # callers (and the exception handlers) can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class InvalidRequestError(DomainException):
    """Caller contract violation.

    Raised for invalid query parameters, neither/both of track_id and artist_id,
    or a non-positive batch size.

    HTTP Status: 400

    Example:
        raise InvalidRequestError("Provide either track_id or artist_id, not both")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """User is not authenticated or token expired.

    HTTP Status: 401

    Example:
        raise AuthenticationError("No Spotify access token provided")
    """

    pass


class CredentialExpiredError(AuthenticationError):
    """Spotify rejected the access token (HTTP 401) and no refresh succeeded.

    Hey future me - the Spotify client raises this for EVERY 401. AuthenticatedFetch is
    the only place that catches it and tries a refresh; everywhere else it bubbles up to
    the handler which tells the user to reconnect their account.
    """

    def __init__(
        self,
        message: str = "Spotify access token expired or invalid",
        status_code: int | None = 401,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenRefreshException(CredentialExpiredError):
    """Raised when token refresh fails and re-authentication is required.

    Common causes:
    - No refresh token stored for the owner
    - User revoked app access in Spotify settings (invalid_grant)
    - App credentials changed
    - The retry after a successful refresh was rejected again

    It is a CredentialExpiredError, so anything that handles "please reconnect"
    handles this too.
    """

    def __init__(
        self,
        message: str = "Spotify access token expired and refresh failed",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, status_code=http_status)
        self.error_code = error_code  # e.g., "invalid_grant"
        self.http_status = http_status  # e.g., 400, 401

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires user re-authentication."""
        # 400 with invalid_grant means the refresh token is dead,
        # 401/403 mean access denied (user revoked, etc.)
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


class ExternalServiceError(DomainException):
    """External service (Spotify) returned an error.

    Carries the upstream status code and response body when there was one.

    HTTP Status: 502 (Bad Gateway)

    Example:
        raise ExternalServiceError("Spotify API error: 503", status_code=503)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitExceededError(ExternalServiceError):
    """Spotify answered 429 Too Many Requests.

    Never retried by the aggregation engine - surfaced so the caller can back off.

    HTTP Status: 429
    """

    def __init__(
        self,
        message: str = "Too many requests to Spotify API. Please try again later.",
        retry_after: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message, status_code=429, body=body)
        self.retry_after = retry_after


class UpstreamServerError(ExternalServiceError):
    """Spotify answered with a 5xx status. Not retried."""

    pass


class UpstreamNotFoundError(ExternalServiceError):
    """Spotify answered 404 (unknown playlist, track, etc)."""

    pass


class UpstreamForbiddenError(ExternalServiceError):
    """Spotify answered 403, usually a missing OAuth scope."""

    pass


class PaginationLimitExceededError(ExternalServiceError):
    """A paginated walk went past the configured max_pages ceiling."""

    def __init__(self, resource: str, max_pages: int) -> None:
        super().__init__(
            f"Spotify kept paginating {resource} beyond {max_pages} pages; aborting walk"
        )
        self.resource = resource
        self.max_pages = max_pages


__all__ = [
    "DomainException",
    "InvalidRequestError",
    "ConfigurationError",
    "AuthenticationError",
    "CredentialExpiredError",
    "TokenRefreshException",
    "ExternalServiceError",
    "RateLimitExceededError",
    "UpstreamServerError",
    "UpstreamNotFoundError",
    "UpstreamForbiddenError",
    "PaginationLimitExceededError",
]
