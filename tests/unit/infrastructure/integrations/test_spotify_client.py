"""Tests for SpotifyClient status mapping and token refresh, via httpx.MockTransport."""

import base64
from collections.abc import Callable
from urllib.parse import parse_qs

import httpx
import pytest

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
from spotlens.infrastructure.integrations.spotify_client import SpotifyClient
from spotlens.infrastructure.rate_limiter import RateLimiter

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(
    handler: Handler,
    limiter: RateLimiter | None = None,
    client_secret: str = "secret",
) -> SpotifyClient:
    settings = SpotifySettings(client_id="client-id", client_secret=client_secret)
    return SpotifyClient(
        settings,
        transport=httpx.MockTransport(handler),
        rate_limiter=limiter or RateLimiter(),
    )


class TestApiRequests:
    """Tests for the Web API calls."""

    async def test_get_user_playlists_sends_bearer_and_clamps_limit(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [], "next": None})

        client = make_client(handler)
        data = await client.get_user_playlists("tok", limit=500, offset=50)
        await client.close()

        assert data == {"items": [], "next": None}
        request = seen[0]
        assert request.url.path == "/v1/me/playlists"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["limit"] == "50"
        assert request.url.params["offset"] == "50"

    async def test_get_playlist_tracks_clamps_to_100(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": []})

        client = make_client(handler)
        await client.get_playlist_tracks("pl-1", "tok", limit=250)
        await client.close()

        assert seen[0].url.path == "/v1/playlists/pl-1/tracks"
        assert seen[0].url.params["limit"] == "100"

    @pytest.mark.parametrize("kind", ["tracks", "artists"])
    async def test_top_content_endpoints(self, kind: str) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [{"id": "x"}]})

        client = make_client(handler)
        method = client.get_top_tracks if kind == "tracks" else client.get_top_artists
        await method("tok", time_range="short_term", limit=20)
        await client.close()

        assert seen[0].url.path == f"/v1/me/top/{kind}"
        assert seen[0].url.params["time_range"] == "short_term"
        assert seen[0].url.params["limit"] == "20"

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, CredentialExpiredError),
            (403, UpstreamForbiddenError),
            (404, UpstreamNotFoundError),
            (500, UpstreamServerError),
            (503, UpstreamServerError),
            (418, ExternalServiceError),
        ],
    )
    async def test_status_mapping(
        self, status: int, expected: type[Exception]
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": {"status": status}})

        client = make_client(handler)
        with pytest.raises(expected) as exc_info:
            await client.get_user_playlists("tok")
        await client.close()

        assert getattr(exc_info.value, "status_code", None) == status
        assert exc_info.value.body == {"error": {"status": status}}  # type: ignore[attr-defined]

    async def test_401_is_not_a_refresh_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={})

        client = make_client(handler)
        with pytest.raises(CredentialExpiredError) as exc_info:
            await client.get_user_playlists("tok")
        await client.close()

        assert not isinstance(exc_info.value, TokenRefreshException)

    async def test_429_not_retried_and_cools_down_limiter(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(429, headers={"Retry-After": "7"}, json={})

        limiter = RateLimiter()
        client = make_client(handler, limiter=limiter)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await client.get_user_playlists("tok")
        await client.close()

        assert calls == 1
        assert exc_info.value.retry_after == 7
        assert exc_info.value.status_code == 429
        # Backoff escalated and was not reset by the failed request
        assert limiter.current_backoff == 2.0

    async def test_429_without_retry_after(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="slow down")

        client = make_client(handler)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await client.get_user_playlists("tok")
        await client.close()

        assert exc_info.value.retry_after is None
        assert exc_info.value.body == "slow down"

    async def test_transport_error_becomes_external_service_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_user_playlists("tok")
        await client.close()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestRefreshToken:
    """Tests for the token endpoint."""

    async def test_confidential_client_uses_basic_auth(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"access_token": "new", "expires_in": 3600}
            )

        client = make_client(handler)
        data = await client.refresh_token("refresh-1")
        await client.close()

        assert data["access_token"] == "new"
        request = seen[0]
        assert str(request.url) == SpotifyClient.TOKEN_URL
        expected = base64.b64encode(b"client-id:secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["refresh-1"]
        assert "client_id" not in form

    async def test_public_client_sends_client_id_in_form(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "new"})

        client = make_client(handler, client_secret="")
        await client.refresh_token("refresh-1")
        await client.close()

        assert "Authorization" not in seen[0].headers
        assert parse_qs(seen[0].content.decode())["client_id"] == ["client-id"]

    async def test_invalid_grant_requires_reauth(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Refresh token revoked"},
            )

        client = make_client(handler)
        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_token("dead")
        await client.close()

        assert exc_info.value.error_code == "invalid_grant"
        assert exc_info.value.http_status == 400
        assert exc_info.value.requires_reauth
        assert "Refresh token revoked" in exc_info.value.message

    @pytest.mark.parametrize("status", [401, 403])
    async def test_access_denied(self, status: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "invalid_client"})

        client = make_client(handler)
        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_token("refresh-1")
        await client.close()

        assert exc_info.value.error_code == "access_denied"
        assert exc_info.value.http_status == status

    async def test_server_error_is_not_a_reauth(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        client = make_client(handler)
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.refresh_token("refresh-1")
        await client.close()

        assert not isinstance(exc_info.value, TokenRefreshException)
        assert exc_info.value.status_code == 503

    async def test_missing_client_id_is_configuration_error(self) -> None:
        client = SpotifyClient(SpotifySettings(client_id=""), rate_limiter=RateLimiter())

        with pytest.raises(ConfigurationError):
            await client.refresh_token("refresh-1")
