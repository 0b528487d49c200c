"""Tests for AuthenticatedFetch refresh-and-retry."""

import asyncio

import pytest

from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.domain.exceptions import (
    ConfigurationError,
    CredentialExpiredError,
    RateLimitExceededError,
    TokenRefreshException,
    UpstreamServerError,
)
from spotlens.domain.ports import ICredentialRefresher


class FakeRefresher(ICredentialRefresher):
    """Records refreshes; 'persisting' means appending to persisted."""

    def __init__(self, new_token: str = "new-token", error: Exception | None = None):
        self.new_token = new_token
        self.error = error
        self.calls: list[str] = []
        self.persisted: list[tuple[str, str]] = []

    async def refresh_credential(self, owner_id: str) -> str:
        self.calls.append(owner_id)
        if self.error is not None:
            raise self.error
        self.persisted.append((owner_id, self.new_token))
        return self.new_token


class ScriptedRequest:
    """Request callable that plays back a list of outcomes, one per call."""

    def __init__(self, *outcomes: object):
        self.outcomes = list(outcomes)
        self.tokens: list[str] = []

    async def __call__(self, token: str) -> object:
        self.tokens.append(token)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestAuthenticatedFetchSuccess:
    """Happy path and refresh-then-succeed."""

    async def test_success_returns_result_unchanged(self) -> None:
        refresher = FakeRefresher()
        request = ScriptedRequest({"items": [1, 2]})

        result = await AuthenticatedFetch(refresher).execute("owner-1", "tok", request)

        assert result == {"items": [1, 2]}
        assert request.tokens == ["tok"]
        assert refresher.calls == []

    async def test_401_then_success_refreshes_once_and_retries(self) -> None:
        refresher = FakeRefresher(new_token="fresh")
        request = ScriptedRequest(CredentialExpiredError(), "payload")

        result = await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert result == "payload"
        assert request.tokens == ["stale", "fresh"]
        assert refresher.calls == ["owner-1"]
        assert refresher.persisted == [("owner-1", "fresh")]

    async def test_execute_with_token_reports_refreshed_token(self) -> None:
        refresher = FakeRefresher(new_token="fresh")
        request = ScriptedRequest(CredentialExpiredError(), "payload")

        result, token = await AuthenticatedFetch(refresher).execute_with_token(
            "owner-1", "stale", request
        )

        assert result == "payload"
        assert token == "fresh"

    async def test_execute_with_token_keeps_token_without_refresh(self) -> None:
        request = ScriptedRequest("payload")

        _, token = await AuthenticatedFetch(FakeRefresher()).execute_with_token(
            "owner-1", "tok", request
        )

        assert token == "tok"


class TestAuthenticatedFetchFailures:
    """Everything that must NOT be silently fixed."""

    async def test_retry_401_again_raises_refresh_failed_after_one_retry(self) -> None:
        refresher = FakeRefresher(new_token="fresh")
        request = ScriptedRequest(CredentialExpiredError(), CredentialExpiredError())

        with pytest.raises(TokenRefreshException) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert exc_info.value.message == "Spotify access token expired and refresh failed"
        assert exc_info.value.http_status == 401
        assert request.tokens == ["stale", "fresh"]
        # The refreshed token is still persisted exactly once
        assert refresher.persisted == [("owner-1", "fresh")]

    async def test_401_without_owner_reraises_original(self) -> None:
        refresher = FakeRefresher()
        original = CredentialExpiredError()
        request = ScriptedRequest(original)

        with pytest.raises(CredentialExpiredError) as exc_info:
            await AuthenticatedFetch(refresher).execute(None, "tok", request)

        assert exc_info.value is original
        assert not isinstance(exc_info.value, TokenRefreshException)
        assert refresher.calls == []
        assert request.tokens == ["tok"]

    async def test_refresh_error_becomes_token_refresh_exception(self) -> None:
        boom = RuntimeError("token endpoint down")
        refresher = FakeRefresher(error=boom)
        request = ScriptedRequest(CredentialExpiredError())

        with pytest.raises(TokenRefreshException) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert exc_info.value.__cause__ is boom
        assert request.tokens == ["stale"]

    async def test_refresh_token_exception_passes_through(self) -> None:
        rejected = TokenRefreshException("revoked", error_code="invalid_grant")
        refresher = FakeRefresher(error=rejected)
        request = ScriptedRequest(CredentialExpiredError())

        with pytest.raises(TokenRefreshException) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert exc_info.value is rejected
        assert exc_info.value.requires_reauth

    async def test_rate_limit_propagates_without_refresh(self) -> None:
        refresher = FakeRefresher()
        request = ScriptedRequest(RateLimitExceededError(retry_after=3))

        with pytest.raises(RateLimitExceededError) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "tok", request)

        assert exc_info.value.retry_after == 3
        assert refresher.calls == []
        assert request.tokens == ["tok"]

    async def test_non_401_retry_failure_becomes_refresh_failed(self) -> None:
        refresher = FakeRefresher(new_token="fresh")
        server_error = UpstreamServerError("boom", status_code=500)
        request = ScriptedRequest(CredentialExpiredError(), server_error)

        with pytest.raises(TokenRefreshException) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert exc_info.value.message == "Spotify access token expired and refresh failed"
        assert exc_info.value.__cause__ is server_error
        assert exc_info.value.http_status == 500
        assert request.tokens == ["stale", "fresh"]
        assert refresher.persisted == [("owner-1", "fresh")]

    async def test_configuration_error_is_not_turned_into_reconnect(self) -> None:
        misconfigured = ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
        refresher = FakeRefresher(error=misconfigured)
        request = ScriptedRequest(CredentialExpiredError())

        with pytest.raises(ConfigurationError) as exc_info:
            await AuthenticatedFetch(refresher).execute("owner-1", "stale", request)

        assert exc_info.value is misconfigured
        assert not isinstance(exc_info.value, TokenRefreshException)


class SlowRefresher(FakeRefresher):
    """Refresher that yields to the loop so concurrent callers overlap."""

    async def refresh_credential(self, owner_id: str) -> str:
        await asyncio.sleep(0.01)
        return await super().refresh_credential(owner_id)


class TestAuthenticatedFetchSharedRefresh:
    """Concurrent calls with the same rejected token refresh once."""

    async def test_concurrent_rejections_share_one_refresh(self) -> None:
        refresher = SlowRefresher(new_token="fresh")
        requests = [ScriptedRequest(CredentialExpiredError(), i) for i in range(4)]
        fetch = AuthenticatedFetch(refresher)

        results = await asyncio.gather(
            *(fetch.execute_with_token("owner-1", "stale", r) for r in requests)
        )

        assert results == [(0, "fresh"), (1, "fresh"), (2, "fresh"), (3, "fresh")]
        assert refresher.calls == ["owner-1"]
        assert all(r.tokens == ["stale", "fresh"] for r in requests)

    async def test_rejected_refreshed_token_triggers_new_refresh(self) -> None:
        refresher = FakeRefresher(new_token="fresh")
        fetch = AuthenticatedFetch(refresher)
        await fetch.execute("owner-1", "stale", ScriptedRequest(CredentialExpiredError(), 1))

        refresher.new_token = "fresher"
        result, token = await fetch.execute_with_token(
            "owner-1", "fresh", ScriptedRequest(CredentialExpiredError(), 2)
        )

        assert (result, token) == (2, "fresher")
        assert refresher.calls == ["owner-1", "owner-1"]

    async def test_failed_refresh_not_repeated_for_same_token(self) -> None:
        refresher = FakeRefresher(
            error=TokenRefreshException("revoked", error_code="invalid_grant")
        )
        fetch = AuthenticatedFetch(refresher)

        for _ in range(2):
            with pytest.raises(TokenRefreshException):
                await fetch.execute(
                    "owner-1", "stale", ScriptedRequest(CredentialExpiredError())
                )

        assert refresher.calls == ["owner-1"]
