"""API response schemas."""

from spotlens.api.schemas.playlists import (
    ArtistResponse,
    PlaylistAnalyticsItem,
    PlaylistAnalyticsResponse,
    PlaylistPageResponse,
    PlaylistResponse,
    PlaylistSearchResponse,
    TrackPageResponse,
    TrackResponse,
)

__all__ = [
    "ArtistResponse",
    "PlaylistAnalyticsItem",
    "PlaylistAnalyticsResponse",
    "PlaylistPageResponse",
    "PlaylistResponse",
    "PlaylistSearchResponse",
    "TrackPageResponse",
    "TrackResponse",
]
