"""Stored Spotify credentials: lookup and refresh.

Hey future me - this is the ICredentialRefresher AuthenticatedFetch talks to. It owns
the whole "refresh token -> Spotify -> DB" round trip:

1. Load the owner's row (no row / no refresh token -> TokenRefreshException)
2. POST the refresh token to Spotify (no DB session held during the network call!)
3. Persist the new access token ONCE, keeping the old refresh token unless rotated
4. Spotify rejected the refresh -> mark the row invalid, re-raise

No locking: two requests refreshing the same owner at once both hit Spotify and both
write. Last writer wins, and both tokens work, so the cost is one redundant refresh.
"""

import logging
from datetime import UTC, datetime, timedelta

from spotlens.config.settings import SpotifySettings
from spotlens.domain.exceptions import AuthenticationError, TokenRefreshException
from spotlens.domain.ports import ICredentialRefresher, ISpotifyClient
from spotlens.infrastructure.persistence.database import Database
from spotlens.infrastructure.persistence.repositories import CredentialRepository

logger = logging.getLogger(__name__)


class CredentialService(ICredentialRefresher):
    """DB-backed credential store with Spotify token refresh."""

    def __init__(
        self,
        database: Database,
        spotify_client: ISpotifyClient,
        spotify_settings: SpotifySettings,
    ) -> None:
        """Initialize credential service.

        Args:
            database: Credential store database
            spotify_client: Client used for the token endpoint
            spotify_settings: Provides the fallback token lifetime
        """
        self._database = database
        self._client = spotify_client
        self._settings = spotify_settings

    async def refresh_credential(self, owner_id: str) -> str:
        """Refresh the owner's access token, persist it, and return it.

        Raises:
            TokenRefreshException: No refresh token on record, or Spotify rejected it
        """
        async with self._database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner(owner_id)
            refresh_token = model.refresh_token if model else None

        if not refresh_token:
            logger.warning(
                "No Spotify refresh token on record", extra={"owner_id": owner_id}
            )
            raise TokenRefreshException(
                "No Spotify refresh token on record. Please reconnect your Spotify account."
            )

        try:
            token_data = await self._client.refresh_token(refresh_token)
        except TokenRefreshException as e:
            await self._mark_invalid(owner_id, e.message)
            raise

        access_token = token_data.get("access_token")
        if not access_token:
            raise TokenRefreshException(
                "Spotify token response did not contain an access token"
            )

        expires_in = int(
            token_data.get("expires_in") or self._settings.token_lifetime_seconds
        )
        expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)

        async with self._database.session_scope() as session:
            updated = await CredentialRepository(session).update_after_refresh(
                owner_id=owner_id,
                access_token=access_token,
                token_expires_at=expires_at,
                refresh_token=token_data.get("refresh_token"),
            )

        if not updated:
            # Row vanished between load and write (user disconnected meanwhile)
            raise TokenRefreshException(
                "Spotify credential was removed during refresh. "
                "Please reconnect your Spotify account."
            )

        logger.info(
            "Refreshed Spotify access token",
            extra={"owner_id": owner_id, "expires_in": expires_in},
        )
        return str(access_token)

    async def get_valid_access_token(self, owner_id: str) -> str:
        """Return the owner's stored access token, refreshing it first if expired.

        Raises:
            AuthenticationError: Nothing stored for this owner
            TokenRefreshException: Credential was invalidated or the refresh failed
        """
        async with self._database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner(owner_id)
            if model is None:
                raise AuthenticationError(
                    "No Spotify access token provided and none stored for this user"
                )
            credential = model.to_entity()

        if not credential.is_valid:
            raise TokenRefreshException(
                "Spotify connection expired. Please reconnect your Spotify account."
            )

        if credential.is_expired():
            logger.debug(
                "Stored access token expired, refreshing", extra={"owner_id": owner_id}
            )
            return await self.refresh_credential(owner_id)

        return credential.access_token

    async def _mark_invalid(self, owner_id: str, error_message: str) -> None:
        async with self._database.session_scope() as session:
            await CredentialRepository(session).mark_invalid(owner_id, error_message)
        logger.warning(
            "Spotify rejected refresh token, credential marked invalid",
            extra={"owner_id": owner_id},
        )
