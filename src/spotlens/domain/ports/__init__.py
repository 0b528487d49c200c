"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any


# Hey future me, ISpotifyClient is a PORT (Hexagonal Architecture)! Application services
# depend on this interface, the httpx implementation lives in infrastructure. Every method
# returns RAW Spotify JSON and raises the typed domain exceptions (CredentialExpiredError on
# 401, RateLimitExceededError on 429, ...). Tests swap in fakes that implement this.
class ISpotifyClient(ABC):
    """Port for the Spotify Web API calls the aggregation engine needs."""

    @abstractmethod
    async def get_user_playlists(
        self, access_token: str, limit: int = 50, offset: int = 0
    ) -> dict[str, Any]:
        """Get one page of the current user's playlists."""
        pass

    @abstractmethod
    async def get_playlist_tracks(
        self,
        playlist_id: str,
        access_token: str,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get one page of a playlist's tracks."""
        pass

    @abstractmethod
    async def get_top_tracks(
        self,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get the user's top tracks for a time range."""
        pass

    @abstractmethod
    async def get_top_artists(
        self,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get the user's top artists for a time range."""
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new access token."""
        pass


# Yo, this is the narrow "refresh collaborator" seam. AuthenticatedFetch only knows this
# one method: give me a fresh access token for this owner (and persist it). The DB-backed
# implementation is CredentialService.
class ICredentialRefresher(ABC):
    """Port for refreshing and persisting an owner's access token."""

    @abstractmethod
    async def refresh_credential(self, owner_id: str) -> str:
        """Refresh the owner's access token, persist it, and return it.

        Raises:
            TokenRefreshException: If no refresh token is on record or Spotify rejects it
        """
        pass


__all__ = ["ICredentialRefresher", "ISpotifyClient"]
