"""Typed query parameters with explicit validation.

Hey future me - route handlers get raw strings from the query string. Every validator
here turns them into a typed value object and returns a ValidationResult. They NEVER
raise: the router decides what to do with an invalid result (usually a 400). Keep it
that way so the parsing rules stay testable without FastAPI.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from spotlens.domain.value_objects.time_range import TimeRange

T = TypeVar("T")

SPOTIFY_LIMIT_MIN = 1
SPOTIFY_LIMIT_MAX = 50
SPOTIFY_OFFSET_MIN = 0
SPOTIFY_PLAYLIST_TRACKS_LIMIT_MAX = 100


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Either a parsed value or a reason why parsing failed."""

    value: T | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        """True when parsing succeeded."""
        return self.error is None

    @classmethod
    def ok(cls, value: T) -> "ValidationResult[T]":
        """Successful result."""
        return cls(value=value)

    @classmethod
    def invalid(cls, reason: str) -> "ValidationResult[T]":
        """Failed result with a user-facing reason."""
        return cls(error=reason)


@dataclass(frozen=True)
class PaginationParams:
    """Validated limit/offset pair."""

    limit: int
    offset: int


class SearchMode(str, Enum):
    """What a playlist search request asks for."""

    TRACK = "track"
    ARTIST = "artist"
    ANALYZE_TOP = "analyze_top"


@dataclass(frozen=True)
class PlaylistSearchQuery:
    """Validated playlist search request."""

    mode: SearchMode
    track_id: str | None = None
    artist_id: str | None = None
    time_range: TimeRange = TimeRange.MEDIUM_TERM


def _parse_int(value: Any, default: int) -> int | None:
    """Parse an integer query value. None means 'not an integer'."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return None
    return None


def _clean_id(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def validate_pagination_params(
    limit: Any,
    offset: Any,
    default_limit: int,
    max_limit: int = SPOTIFY_LIMIT_MAX,
) -> ValidationResult[PaginationParams]:
    """Validate and parse limit/offset query values."""
    limit_num = _parse_int(limit, default_limit)
    if limit_num is None or limit_num < SPOTIFY_LIMIT_MIN or limit_num > max_limit:
        return ValidationResult.invalid(
            f"Invalid limit. Must be between {SPOTIFY_LIMIT_MIN} and {max_limit}"
        )

    offset_num = _parse_int(offset, 0)
    if offset_num is None or offset_num < SPOTIFY_OFFSET_MIN:
        return ValidationResult.invalid(
            f"Invalid offset. Must be {SPOTIFY_OFFSET_MIN} or greater"
        )

    return ValidationResult.ok(PaginationParams(limit=limit_num, offset=offset_num))


def validate_playlist_tracks_pagination(
    limit: Any,
    offset: Any,
    default_limit: int = SPOTIFY_PLAYLIST_TRACKS_LIMIT_MAX,
) -> ValidationResult[PaginationParams]:
    """Pagination for playlist tracks, where Spotify allows up to 100 per page."""
    return validate_pagination_params(
        limit, offset, default_limit, max_limit=SPOTIFY_PLAYLIST_TRACKS_LIMIT_MAX
    )


def validate_time_range(value: Any) -> ValidationResult[TimeRange]:
    """Parse a time_range value. Missing falls back to medium_term."""
    if value is None or value == "":
        return ValidationResult.ok(TimeRange.default())
    if isinstance(value, str):
        try:
            return ValidationResult.ok(TimeRange(value.strip()))
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in TimeRange)
    return ValidationResult.invalid(f"Invalid time_range. Must be one of: {allowed}")


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def validate_playlist_search_params(
    track_id: str | None,
    artist_id: str | None,
    analyze_top: Any,
    time_range: Any,
) -> ValidationResult[PlaylistSearchQuery]:
    """Validate the playlist search query string.

    Exactly one of track_id / artist_id selects a containment search. analyze_top=true
    selects the analytics mode; a track or artist id wins over analyze_top.
    """
    track = _clean_id(track_id)
    artist = _clean_id(artist_id)

    if track and artist:
        return ValidationResult.invalid(
            "Provide either track_id or artist_id, not both"
        )
    if track:
        return ValidationResult.ok(
            PlaylistSearchQuery(mode=SearchMode.TRACK, track_id=track)
        )
    if artist:
        return ValidationResult.ok(
            PlaylistSearchQuery(mode=SearchMode.ARTIST, artist_id=artist)
        )
    if not _parse_flag(analyze_top):
        return ValidationResult.invalid(
            "At least one of the following query parameters is required: "
            "track_id, artist_id, analyze_top"
        )

    range_result = validate_time_range(time_range)
    if not range_result.is_valid or range_result.value is None:
        return ValidationResult.invalid(range_result.error or "Invalid time_range")
    return ValidationResult.ok(
        PlaylistSearchQuery(mode=SearchMode.ANALYZE_TOP, time_range=range_result.value)
    )
