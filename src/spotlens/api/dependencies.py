"""Dependency injection for FastAPI routes."""

from dataclasses import dataclass
from typing import cast

from fastapi import Depends, Header, Request

from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.application.services.batch_scanner import BatchScanner
from spotlens.application.services.credential_service import CredentialService
from spotlens.application.services.page_walker import PageWalker
from spotlens.application.services.playlist_analytics_service import (
    PlaylistAnalyticsService,
)
from spotlens.config import Settings
from spotlens.domain.exceptions import AuthenticationError
from spotlens.domain.ports import ISpotifyClient


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with."""
    return cast(Settings, request.app.state.settings)


# Yo, the SpotifyClient is a process-wide singleton created in the lifespan - ONE httpx
# connection pool and ONE rate limiter for everybody. Don't build a client per request.
def get_spotify_client(request: Request) -> ISpotifyClient:
    """Get the shared Spotify client from app state."""
    return cast(ISpotifyClient, request.app.state.spotify_client)


def get_credential_service(request: Request) -> CredentialService:
    """Get the credential service from app state."""
    return cast(CredentialService, request.app.state.credential_service)


@dataclass(frozen=True)
class SpotifyAuth:
    """Who is calling and with which access token.

    owner_id None means the token came from the client and can't be refreshed here.
    """

    owner_id: str | None
    access_token: str


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# Hey future me - two ways in:
# 1. Authorization: Bearer <spotify token> (+ optional X-Spotify-Id so we can refresh on 401)
# 2. Only X-Spotify-Id -> we use the stored token, refreshing it first if it expired
# Neither -> 401.
async def get_spotify_auth(
    authorization: str | None = Header(default=None),
    x_spotify_id: str | None = Header(default=None, alias="X-Spotify-Id"),
    credential_service: CredentialService = Depends(get_credential_service),
) -> SpotifyAuth:
    """Resolve the caller's Spotify access token and owner id."""
    owner_id = x_spotify_id.strip() if x_spotify_id and x_spotify_id.strip() else None
    token = _bearer_token(authorization)

    if token:
        return SpotifyAuth(owner_id=owner_id, access_token=token)

    if owner_id:
        stored = await credential_service.get_valid_access_token(owner_id)
        return SpotifyAuth(owner_id=owner_id, access_token=stored)

    raise AuthenticationError("No Spotify access token provided")


# Engine pieces are cheap and stateless, so they're built per request
def get_playlist_analytics_service(
    spotify_client: ISpotifyClient = Depends(get_spotify_client),
    credential_service: CredentialService = Depends(get_credential_service),
    settings: Settings = Depends(get_app_settings),
) -> PlaylistAnalyticsService:
    """Build the playlist analytics service for one request."""
    aggregation = settings.aggregation
    authenticated_fetch = AuthenticatedFetch(credential_service)
    return PlaylistAnalyticsService(
        spotify_client=spotify_client,
        authenticated_fetch=authenticated_fetch,
        page_walker=PageWalker(authenticated_fetch, max_pages=aggregation.max_pages),
        batch_scanner=BatchScanner(batch_size=aggregation.batch_size),
        settings=aggregation,
    )
