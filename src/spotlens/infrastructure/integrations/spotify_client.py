"""Spotify HTTP client implementation."""

import base64
import logging
from typing import Any, NoReturn, cast

import httpx

from spotlens.config.settings import SpotifySettings
from spotlens.domain.exceptions import (
    ConfigurationError,
    CredentialExpiredError,
    ExternalServiceError,
    RateLimitExceededError,
    TokenRefreshException,
    UpstreamForbiddenError,
    UpstreamNotFoundError,
    UpstreamServerError,
)
from spotlens.domain.ports import ISpotifyClient
from spotlens.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return max(0, int(value))
    except ValueError:
        return None


class SpotifyClient(ISpotifyClient):
    """HTTP client for the Spotify Web API endpoints the engine uses."""

    TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL
    API_BASE_URL = "https://api.spotify.com/v1"

    # Hey future me, we DON'T create the HTTP client here - it's lazy-loaded in
    # _get_client() so construction never touches the event loop. transport is for tests
    # (httpx.MockTransport), rate_limiter defaults to the process-wide Spotify limiter.
    def __init__(
        self,
        settings: SpotifySettings,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            transport: Optional httpx transport override
            rate_limiter: Optional limiter override
        """
        self.settings = settings
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout, transport=self._transport
            )
        return self._client

    # Hey, this close() is IMPORTANT - without it we leak connections. The app lifespan
    # calls it on shutdown.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _limiter(self) -> RateLimiter:
        return self._rate_limiter or get_spotify_limiter()

    # Hey future me - CENTRALIZED API REQUEST! Every Web API call goes through here.
    # - Token Bucket rate limiting, shared across ALL requests in this process
    # - Non-2xx statuses become typed domain exceptions carrying status + body
    # - 429 is NOT retried. We push a cool-down into the limiter (so nobody else hammers
    #   Spotify) and raise RateLimitExceededError so the caller can back off.
    async def _api_request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a rate-limited API request and return the decoded JSON body.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL to request
            access_token: OAuth access token
            params: Query parameters

        Returns:
            Decoded JSON response

        Raises:
            CredentialExpiredError: 401
            RateLimitExceededError: 429
            UpstreamForbiddenError: 403
            UpstreamNotFoundError: 404
            UpstreamServerError: 5xx
            ExternalServiceError: Any other failure, including transport errors
        """
        client = await self._get_client()
        rate_limiter = self._limiter()

        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            # Raising inside the block keeps the limiter from resetting its backoff
            async with rate_limiter:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    headers=headers,
                )
                if not response.is_success:
                    self._raise_for_status(response, rate_limiter)
        except httpx.TransportError as e:
            logger.error(f"Spotify request failed: {method} {url}: {e}")
            raise ExternalServiceError(f"Spotify request failed: {e}") from e

        return cast(dict[str, Any], response.json())

    def _raise_for_status(
        self, response: httpx.Response, rate_limiter: RateLimiter
    ) -> NoReturn:
        status = response.status_code
        body = _response_body(response)
        url = str(response.request.url)

        if status == 401:
            raise CredentialExpiredError(body=body)

        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            rate_limiter.note_rate_limited(retry_after)
            logger.warning(
                f"Spotify API rate limited (429). URL: {url}. "
                f"Retry-After: {retry_after or 'not provided'} seconds."
            )
            raise RateLimitExceededError(retry_after=retry_after, body=body)

        if status == 403:
            raise UpstreamForbiddenError(
                "Spotify denied access to this resource", status_code=status, body=body
            )
        if status == 404:
            raise UpstreamNotFoundError(
                "Spotify resource not found", status_code=status, body=body
            )
        if status >= 500:
            logger.error(f"Spotify server error {status} for {url}")
            raise UpstreamServerError(
                f"Spotify API server error: {status}", status_code=status, body=body
            )

        raise ExternalServiceError(
            f"Spotify API error: {status}", status_code=status, body=body
        )

    # Hey future me, two flavours of refresh:
    # - confidential client (client_secret configured): HTTP Basic auth with id:secret
    # - public PKCE client: client_id in the form body, no secret
    # Spotify answers 400 {"error": "invalid_grant"} when the refresh token is revoked -
    # that and 401/403 mean the user must reconnect, so they become TokenRefreshException.
    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """
        Refresh access token using refresh token.

        Args:
            refresh_token: Refresh token from previous authentication

        Returns:
            Token response with access_token, token_type, expires_in, and
            refresh_token only if Spotify rotated it

        Raises:
            ConfigurationError: No client id configured
            TokenRefreshException: Refresh token invalid/revoked (requires re-auth)
            ExternalServiceError: Other HTTP or network failures
        """
        if not self.settings.client_id:
            raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")

        client = await self._get_client()

        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        if self.settings.client_secret:
            raw = f"{self.settings.client_id}:{self.settings.client_secret}"
            encoded = base64.b64encode(raw.encode()).decode()
            headers["Authorization"] = f"Basic {encoded}"
        else:
            data["client_id"] = self.settings.client_id

        try:
            response = await client.post(self.TOKEN_URL, data=data, headers=headers)
        except httpx.TransportError as e:
            raise ExternalServiceError(f"Spotify token refresh failed: {e}") from e

        if response.status_code == 400:
            body = _response_body(response)
            if isinstance(body, dict) and body.get("error") == "invalid_grant":
                description = body.get(
                    "error_description", "Refresh token is invalid or has been revoked"
                )
                raise TokenRefreshException(
                    message=f"Refresh token invalid: {description}. "
                    "Please re-authenticate with Spotify.",
                    error_code="invalid_grant",
                    http_status=400,
                )

        if response.status_code in (401, 403):
            raise TokenRefreshException(
                message="Spotify access denied. Please re-authenticate with Spotify.",
                error_code="access_denied",
                http_status=response.status_code,
            )

        if not response.is_success:
            raise ExternalServiceError(
                f"Spotify token refresh failed: {response.status_code}",
                status_code=response.status_code,
                body=_response_body(response),
            )

        return cast(dict[str, Any], response.json())

    # Spotify caps /me/playlists at 50 per page; 'next' is null on the last page.
    async def get_user_playlists(
        self, access_token: str, limit: int = 50, offset: int = 0
    ) -> dict[str, Any]:
        """
        Get current user's playlists.

        Args:
            access_token: OAuth access token
            limit: Maximum number of playlists to return (1-50, default 50)
            offset: The index of the first playlist to return

        Returns:
            Paginated response with items, next, previous, total, limit, offset
        """
        limit = min(limit, 50)

        return await self._api_request(
            method="GET",
            url=f"{self.API_BASE_URL}/me/playlists",
            access_token=access_token,
            params={"limit": limit, "offset": offset},
        )

    async def get_playlist_tracks(
        self,
        playlist_id: str,
        access_token: str,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get a page of tracks for a playlist (raw JSON)."""
        limit = min(limit, 100)

        return await self._api_request(
            method="GET",
            url=f"{self.API_BASE_URL}/playlists/{playlist_id}/tracks",
            access_token=access_token,
            params={"limit": limit, "offset": offset},
        )

    # Needs the user-top-read scope, otherwise Spotify answers 403.
    async def get_top_tracks(
        self,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get the user's top tracks for short_term, medium_term or long_term."""
        return await self._api_request(
            method="GET",
            url=f"{self.API_BASE_URL}/me/top/tracks",
            access_token=access_token,
            params={"time_range": time_range, "limit": min(limit, 50), "offset": offset},
        )

    async def get_top_artists(
        self,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get the user's top artists for short_term, medium_term or long_term."""
        return await self._api_request(
            method="GET",
            url=f"{self.API_BASE_URL}/me/top/artists",
            access_token=access_token,
            params={"time_range": time_range, "limit": min(limit, 50), "offset": offset},
        )

    async def __aenter__(self) -> "SpotifyClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
