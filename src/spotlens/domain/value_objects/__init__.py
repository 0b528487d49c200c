"""Domain value objects."""

from spotlens.domain.value_objects.query_params import (
    SPOTIFY_LIMIT_MAX,
    SPOTIFY_LIMIT_MIN,
    SPOTIFY_OFFSET_MIN,
    SPOTIFY_PLAYLIST_TRACKS_LIMIT_MAX,
    PaginationParams,
    PlaylistSearchQuery,
    SearchMode,
    ValidationResult,
    validate_pagination_params,
    validate_playlist_search_params,
    validate_playlist_tracks_pagination,
    validate_time_range,
)
from spotlens.domain.value_objects.time_range import TimeRange

__all__ = [
    "SPOTIFY_LIMIT_MAX",
    "SPOTIFY_LIMIT_MIN",
    "SPOTIFY_OFFSET_MIN",
    "SPOTIFY_PLAYLIST_TRACKS_LIMIT_MAX",
    "PaginationParams",
    "PlaylistSearchQuery",
    "SearchMode",
    "TimeRange",
    "ValidationResult",
    "validate_pagination_params",
    "validate_playlist_search_params",
    "validate_playlist_tracks_pagination",
    "validate_time_range",
]
