"""Domain entities for playlist aggregation.

Hey future me - everything here except Credential is REQUEST-SCOPED. A Page, a
PlaylistRef or an AnalyticsRecord is built fresh for one incoming call and thrown away
after the response is sent. Nothing is cached across requests, so don't add caches here.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Credential:
    """Stored Spotify OAuth credential for one owner.

    Owned by the credential store. The aggregation engine never mutates it, it only
    asks for a refresh through a callback.
    """

    owner_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    is_valid: bool = True

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the access token is past its expiry."""
        current = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return current >= expires_at


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a cursor-paginated upstream resource.

    next_cursor is the authoritative end-of-collection signal: None or "" means done.
    A short page does NOT mean done - Spotify's own cursor decides.
    """

    items: list[T]
    next_cursor: str | None = None
    previous_cursor: str | None = None
    total: int | None = None
    offset: int = 0
    limit: int | None = None

    @property
    def has_next(self) -> bool:
        """True if the upstream says another page follows."""
        return bool(self.next_cursor)


@dataclass(frozen=True)
class ArtistRef:
    """Artist credit on a track."""

    id: str | None
    name: str


@dataclass(frozen=True)
class TrackRef:
    """A track as it appears inside a playlist or a top-tracks list.

    Local files have no Spotify id, so id may be None.
    """

    id: str | None
    name: str
    artists: tuple[ArtistRef, ...] = ()
    album_name: str | None = None
    duration_ms: int | None = None
    is_local: bool = False
    added_at: str | None = None

    @property
    def artist_ids(self) -> tuple[str, ...]:
        """Non-empty artist ids in credit order."""
        return tuple(artist.id for artist in self.artists if artist.id)


@dataclass(frozen=True)
class PlaylistRef:
    """Immutable snapshot of one user playlist for the duration of a request."""

    id: str
    name: str
    track_count: int = 0
    owner_id: str | None = None
    owner_name: str | None = None
    description: str | None = None
    public: bool | None = None
    collaborative: bool = False
    image_url: str | None = None
    spotify_url: str | None = None


@dataclass(frozen=True)
class TopContentSnapshot:
    """The user's top track ids and top artist ids for one time range.

    Fetched once per analytics request and read-only during the scan.
    """

    track_ids: frozenset[str] = field(default_factory=frozenset)
    artist_ids: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class TopContentStats:
    """Top-content counts for one playlist."""

    top_track_count: int
    top_artist_count: int
    top_track_pct: float
    top_artist_pct: float


@dataclass(frozen=True)
class AnalyticsRecord:
    """Top-content analytics for one playlist."""

    playlist: PlaylistRef
    top_track_count: int
    top_artist_count: int
    top_track_pct: float
    top_artist_pct: float

    @classmethod
    def from_stats(cls, playlist: PlaylistRef, stats: TopContentStats) -> "AnalyticsRecord":
        """Build a record from a playlist and its computed stats."""
        return cls(
            playlist=playlist,
            top_track_count=stats.top_track_count,
            top_artist_count=stats.top_artist_count,
            top_track_pct=stats.top_track_pct,
            top_artist_pct=stats.top_artist_pct,
        )


__all__ = [
    "AnalyticsRecord",
    "ArtistRef",
    "Credential",
    "Page",
    "PlaylistRef",
    "TopContentSnapshot",
    "TopContentStats",
    "TrackRef",
]
