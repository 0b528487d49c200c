"""One-shot credential refresh and retry around a single Spotify call.

Hey future me - this is the ONLY place in the engine that catches an error and tries
to fix it. Everything else (PageWalker, BatchScanner) just lets failures fly.

Flow:
1. request(token)
2. CredentialExpiredError (Spotify 401) + we know the owner?
   -> refresher.refresh_credential(owner_id)  (persists the new token)
   -> request(new_token) EXACTLY once
3. Retry fails for ANY reason -> TokenRefreshException, chained to the retry error.
   No loops, no retry storms.

One instance lives for one request. Calls that run concurrently and get their token
rejected share ONE refresh per (owner, rejected token). With refresh-token rotation a
second refresh would post an already-spent refresh token, get invalid_grant and mark
the credential invalid.

429 / 404 / 5xx / transport errors on the FIRST attempt are NOT ours to handle.
They propagate untouched. So does ConfigurationError from the refresher (503, not 401).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from spotlens.domain.exceptions import (
    ConfigurationError,
    CredentialExpiredError,
    TokenRefreshException,
)
from spotlens.domain.ports import ICredentialRefresher

logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenRequest = Callable[[str], Awaitable[T]]

REFRESH_FAILED_MESSAGE = "Spotify access token expired and refresh failed"


class AuthenticatedFetch:
    """Wraps one upstream call with refresh-and-retry on an expired credential."""

    def __init__(self, refresher: ICredentialRefresher) -> None:
        """Initialize with the collaborator that refreshes and persists tokens.

        Args:
            refresher: Refreshes an owner's token and persists it
        """
        self._refresher = refresher
        self._refresh_lock = asyncio.Lock()
        # (owner_id, rejected token) -> token that replaced it
        self._replacements: dict[tuple[str, str], str] = {}
        self._failures: dict[tuple[str, str], Exception] = {}

    async def execute(
        self,
        owner_id: str | None,
        token: str,
        request: TokenRequest[T],
    ) -> T:
        """Run request(token), refreshing the credential once on a 401.

        Args:
            owner_id: Owner of the credential, None when the token can't be refreshed
            token: Current access token
            request: The upstream call, parameterized by access token

        Returns:
            Whatever request returns

        Raises:
            CredentialExpiredError: 401 and no owner_id to refresh for
            TokenRefreshException: Refresh failed, or the retry failed
            ConfigurationError: Refresh impossible because the app is misconfigured
        """
        result, _ = await self.execute_with_token(owner_id, token, request)
        return result

    async def execute_with_token(
        self,
        owner_id: str | None,
        token: str,
        request: TokenRequest[T],
    ) -> tuple[T, str]:
        """Same as execute(), also returning the token that finally succeeded.

        Callers pass the returned token on so one refresh covers the rest of a request.
        """
        try:
            return await request(token), token
        except CredentialExpiredError as original:
            if not owner_id:
                raise

            logger.info(
                "Spotify rejected access token, refreshing credential",
                extra={"owner_id": owner_id, "status_code": original.status_code},
            )
            new_token = await self._replacement_for(owner_id, token)

        try:
            return await request(new_token), new_token
        except Exception as retry_error:
            logger.warning(
                "Request with the refreshed access token failed",
                extra={"owner_id": owner_id, "error": str(retry_error)},
            )
            raise TokenRefreshException(
                REFRESH_FAILED_MESSAGE,
                http_status=getattr(retry_error, "status_code", None),
            ) from retry_error

    async def _replacement_for(self, owner_id: str, rejected_token: str) -> str:
        key = (owner_id, rejected_token)
        async with self._refresh_lock:
            if key in self._replacements:
                return self._replacements[key]
            failure = self._failures.get(key)
            if isinstance(failure, ConfigurationError):
                raise ConfigurationError(failure.message) from failure
            if failure is not None:
                raise TokenRefreshException(REFRESH_FAILED_MESSAGE) from failure

            try:
                new_token = await self._refresh(owner_id)
            except Exception as e:
                self._failures[key] = e
                raise

            self._replacements[key] = new_token
            return new_token

    async def _refresh(self, owner_id: str) -> str:
        try:
            return await self._refresher.refresh_credential(owner_id)
        except (TokenRefreshException, ConfigurationError):
            raise
        except Exception as e:
            logger.error(
                "Credential refresh failed",
                extra={"owner_id": owner_id, "error": str(e)},
            )
            raise TokenRefreshException(f"{REFRESH_FAILED_MESSAGE}: {e}") from e
