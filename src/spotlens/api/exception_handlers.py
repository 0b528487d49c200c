"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into proper HTTP responses with appropriate status codes.

Hey future me - the user-facing split is:
- CredentialExpiredError / TokenRefreshException -> 401 "please reconnect"
- RateLimitExceededError -> 429 + Retry-After, "try again later"
- everything else from Spotify -> 4xx mirror or a generic 502
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from spotlens.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CredentialExpiredError,
    ExternalServiceError,
    InvalidRequestError,
    RateLimitExceededError,
    UpstreamForbiddenError,
    UpstreamNotFoundError,
)

logger = logging.getLogger(__name__)

RECONNECT_MESSAGE = "Please reconnect your Spotify account"


# Pydantic's exc.errors() can carry the raw body as bytes, which JSONResponse can't encode
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors by converting bytes to strings."""

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        return value

    return [_sanitize_value(error) for error in errors]


# Hey future me, these are GLOBAL handlers - FastAPI calls them for matching exceptions
# raised in ANY endpoint. Starlette picks the handler for the most specific class in the
# exception's MRO, so CredentialExpiredError wins over AuthenticationError and
# RateLimitExceededError wins over ExternalServiceError. Register during app setup only.
def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain exceptions to HTTP responses.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(
        request: Request, exc: InvalidRequestError
    ) -> JSONResponse:
        """Handle caller contract violations with 400 Bad Request."""
        logger.warning(
            "Invalid request at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors with 422 Unprocessable Entity."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))

        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path, "errors": sanitized_errors},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": sanitized_errors},
        )

    @app.exception_handler(CredentialExpiredError)
    async def credential_expired_handler(
        request: Request, exc: CredentialExpiredError
    ) -> JSONResponse:
        """Handle expired credentials and failed refreshes with 401 + reconnect hint.

        Also covers TokenRefreshException, which subclasses CredentialExpiredError.
        """
        logger.warning(
            "Spotify credential rejected at %s: %s",
            request.url.path,
            exc.message,
            extra={
                "path": request.url.path,
                "error": exc.message,
                "error_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": RECONNECT_MESSAGE, "error": exc.message},
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle authentication errors with 401 Unauthorized."""
        logger.warning(
            "Authentication error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": exc.message},
        )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        """Handle Spotify rate limiting with 429 Too Many Requests."""
        logger.warning(
            "Spotify rate limit hit at %s (retry_after=%s)",
            request.url.path,
            exc.retry_after,
            extra={"path": request.url.path, "retry_after": exc.retry_after},
        )
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": exc.message, "retry_after": exc.retry_after},
            headers=headers,
        )

    @app.exception_handler(UpstreamNotFoundError)
    async def upstream_not_found_handler(
        request: Request, exc: UpstreamNotFoundError
    ) -> JSONResponse:
        """Mirror Spotify 404s."""
        logger.info(
            "Spotify resource not found at %s",
            request.url.path,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(UpstreamForbiddenError)
    async def upstream_forbidden_handler(
        request: Request, exc: UpstreamForbiddenError
    ) -> JSONResponse:
        """Mirror Spotify 403s (usually a missing OAuth scope)."""
        logger.warning(
            "Spotify denied access at %s",
            request.url.path,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message},
        )

    # UpstreamServerError and PaginationLimitExceededError land here too
    @app.exception_handler(ExternalServiceError)
    async def external_service_error_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        """Handle other Spotify failures with 502 Bad Gateway."""
        logger.error(
            "External service error at %s: %s",
            request.url.path,
            exc.message,
            extra={
                "path": request.url.path,
                "error": exc.message,
                "upstream_status": exc.status_code,
                "error_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": exc.message},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 503 Service Unavailable."""
        logger.error(
            "Configuration error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )
