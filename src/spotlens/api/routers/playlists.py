"""Playlist endpoints: paging, containment search and top-content analytics."""

import logging
from typing import TypeVar

from fastapi import APIRouter, Depends, Query

from spotlens.api.dependencies import (
    SpotifyAuth,
    get_playlist_analytics_service,
    get_spotify_auth,
)
from spotlens.api.schemas import (
    PlaylistAnalyticsItem,
    PlaylistAnalyticsResponse,
    PlaylistPageResponse,
    PlaylistResponse,
    PlaylistSearchResponse,
    TrackPageResponse,
)
from spotlens.application.services.playlist_analytics_service import (
    PlaylistAnalyticsService,
)
from spotlens.domain.exceptions import InvalidRequestError
from spotlens.domain.value_objects import (
    SPOTIFY_LIMIT_MAX,
    SearchMode,
    ValidationResult,
    validate_pagination_params,
    validate_playlist_search_params,
    validate_playlist_tracks_pagination,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlists", tags=["playlists"])

T = TypeVar("T")


def _unwrap(result: ValidationResult[T]) -> T:
    if not result.is_valid or result.value is None:
        raise InvalidRequestError(result.error or "Invalid request")
    return result.value


# Hey future me - query params arrive as RAW strings on purpose! The typed validators in
# domain.value_objects decide what's valid and give us the exact user-facing message.
# Letting FastAPI coerce ints would turn "limit=abc" into a 422 with pydantic's wording.
@router.get("", response_model=PlaylistPageResponse)
async def list_playlists(
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    auth: SpotifyAuth = Depends(get_spotify_auth),
    service: PlaylistAnalyticsService = Depends(get_playlist_analytics_service),
) -> PlaylistPageResponse:
    """One page of the current user's playlists."""
    params = _unwrap(
        validate_pagination_params(limit, offset, default_limit=SPOTIFY_LIMIT_MAX)
    )
    page = await service.get_playlists_page(
        auth.owner_id, auth.access_token, params.limit, params.offset
    )
    return PlaylistPageResponse.from_page(page, params.limit, params.offset)


@router.get(
    "/search",
    response_model=PlaylistSearchResponse | PlaylistAnalyticsResponse,
)
async def search_playlists(
    track_id: str | None = Query(default=None),
    artist_id: str | None = Query(default=None),
    analyze_top: str | None = Query(default=None),
    time_range: str | None = Query(default=None),
    auth: SpotifyAuth = Depends(get_spotify_auth),
    service: PlaylistAnalyticsService = Depends(get_playlist_analytics_service),
) -> PlaylistSearchResponse | PlaylistAnalyticsResponse:
    """Search the user's playlists, or rank them by top content.

    - track_id: playlists containing that track
    - artist_id: playlists containing a track by that artist
    - analyze_top=true (+ time_range): top-content analytics for every playlist
    """
    query = _unwrap(
        validate_playlist_search_params(track_id, artist_id, analyze_top, time_range)
    )

    if query.mode is SearchMode.ANALYZE_TOP:
        records = await service.analyze_top_content(
            auth.owner_id, auth.access_token, query.time_range
        )
        return PlaylistAnalyticsResponse(
            time_range=query.time_range.value,
            playlists=[PlaylistAnalyticsItem.from_record(r) for r in records],
            total=len(records),
        )

    playlists = await service.search_playlists(
        auth.owner_id,
        auth.access_token,
        track_id=query.track_id,
        artist_id=query.artist_id,
    )
    return PlaylistSearchResponse(
        playlists=[PlaylistResponse.from_entity(p) for p in playlists],
        total=len(playlists),
    )


@router.get("/{playlist_id}/tracks", response_model=TrackPageResponse)
async def list_playlist_tracks(
    playlist_id: str,
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    auth: SpotifyAuth = Depends(get_spotify_auth),
    service: PlaylistAnalyticsService = Depends(get_playlist_analytics_service),
) -> TrackPageResponse:
    """One page of a playlist's tracks."""
    params = _unwrap(validate_playlist_tracks_pagination(limit, offset))
    page = await service.get_playlist_tracks_page(
        auth.owner_id, auth.access_token, playlist_id, params.limit, params.offset
    )
    return TrackPageResponse.from_page(page, params.limit, params.offset)
