"""Repository implementations.

Credential rows are provisioned outside this service: whatever runs the OAuth
authorization-code exchange writes them with upsert_credential(). SpotLens itself only
reads them and writes back refresh results.
"""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spotlens.infrastructure.persistence.models import SpotifyCredentialModel


class CredentialRepository:
    """Repository for per-owner Spotify OAuth credentials.

    Key methods:
    - get_by_owner(): Load the credential row (valid or not)
    - upsert_credential(): Store tokens after the user connects their account
    - update_after_refresh(): Store the result of a token refresh
    - mark_invalid(): Flag the credential after a rejected refresh
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get_by_owner(self, owner_id: str) -> SpotifyCredentialModel | None:
        """Get the credential for an owner regardless of validity."""
        stmt = select(SpotifyCredentialModel).where(
            SpotifyCredentialModel.owner_id == owner_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Listen up - UPSERT pattern: row exists -> update, else create. Sets is_valid=True
    # and clears errors, a fresh connect always wins over an old failure.
    async def upsert_credential(
        self,
        owner_id: str,
        access_token: str,
        refresh_token: str | None,
        token_expires_at: datetime,
    ) -> SpotifyCredentialModel:
        """Store or update an owner's OAuth tokens.

        Args:
            owner_id: Spotify user id owning the tokens
            access_token: Access token from Spotify
            refresh_token: Refresh token from Spotify
            token_expires_at: When the access token expires

        Returns:
            The created or updated SpotifyCredentialModel
        """
        model = await self.get_by_owner(owner_id)
        now = datetime.now(UTC)

        if model:
            model.access_token = access_token
            model.refresh_token = refresh_token
            model.token_expires_at = token_expires_at
            model.is_valid = True
            model.last_error = None
            model.last_error_at = None
            model.updated_at = now
            model.last_refreshed_at = now
        else:
            model = SpotifyCredentialModel(
                owner_id=owner_id,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expires_at=token_expires_at,
                is_valid=True,
                created_at=now,
                updated_at=now,
                last_refreshed_at=now,
            )
            self.session.add(model)

        await self.session.flush()
        return model

    async def update_after_refresh(
        self,
        owner_id: str,
        access_token: str,
        token_expires_at: datetime,
        refresh_token: str | None = None,
    ) -> bool:
        """Update a credential after a successful refresh.

        Args:
            owner_id: Owner whose token was refreshed
            access_token: New access token
            token_expires_at: New expiration time
            refresh_token: New refresh token, if Spotify rotated it

        Returns:
            True if the credential was updated, False if no credential exists
        """
        model = await self.get_by_owner(owner_id)
        if not model:
            return False

        now = datetime.now(UTC)
        model.access_token = access_token
        model.token_expires_at = token_expires_at
        model.updated_at = now
        model.last_refreshed_at = now
        model.is_valid = True
        model.last_error = None
        model.last_error_at = None

        # Spotify only sometimes rotates refresh tokens, keep the old one otherwise
        if refresh_token:
            model.refresh_token = refresh_token

        await self.session.flush()
        return True

    async def mark_invalid(self, owner_id: str, error_message: str) -> bool:
        """Mark a credential invalid after a refresh failure.

        Returns:
            True if the credential was marked invalid, False if none exists
        """
        model = await self.get_by_owner(owner_id)
        if not model:
            return False

        now = datetime.now(UTC)
        model.is_valid = False
        model.last_error = error_message
        model.last_error_at = now
        model.updated_at = now

        await self.session.flush()
        return True
