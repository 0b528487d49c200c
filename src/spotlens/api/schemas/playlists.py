"""Response schemas for playlist endpoints."""

from pydantic import BaseModel, Field

from spotlens.domain.entities import AnalyticsRecord, Page, PlaylistRef, TrackRef


class PlaylistResponse(BaseModel):
    """Trimmed playlist as returned to the frontend."""

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

    @classmethod
    def from_entity(cls, playlist: PlaylistRef) -> "PlaylistResponse":
        return cls(
            id=playlist.id,
            name=playlist.name,
            track_count=playlist.track_count,
            owner_id=playlist.owner_id,
            owner_name=playlist.owner_name,
            description=playlist.description,
            public=playlist.public,
            collaborative=playlist.collaborative,
            image_url=playlist.image_url,
            spotify_url=playlist.spotify_url,
        )


class ArtistResponse(BaseModel):
    id: str | None = None
    name: str


class TrackResponse(BaseModel):
    """Trimmed playlist track."""

    id: str | None = None
    name: str
    artists: list[ArtistResponse] = Field(default_factory=list)
    album_name: str | None = None
    duration_ms: int | None = None
    is_local: bool = False
    added_at: str | None = None

    @classmethod
    def from_entity(cls, track: TrackRef) -> "TrackResponse":
        return cls(
            id=track.id,
            name=track.name,
            artists=[ArtistResponse(id=a.id, name=a.name) for a in track.artists],
            album_name=track.album_name,
            duration_ms=track.duration_ms,
            is_local=track.is_local,
            added_at=track.added_at,
        )


class PlaylistPageResponse(BaseModel):
    """One page of playlists."""

    items: list[PlaylistResponse]
    total: int | None = None
    limit: int
    offset: int
    has_next: bool

    @classmethod
    def from_page(
        cls, page: Page[PlaylistRef], limit: int, offset: int
    ) -> "PlaylistPageResponse":
        return cls(
            items=[PlaylistResponse.from_entity(p) for p in page.items],
            total=page.total,
            limit=limit,
            offset=offset,
            has_next=page.has_next,
        )


class TrackPageResponse(BaseModel):
    """One page of a playlist's tracks."""

    items: list[TrackResponse]
    total: int | None = None
    limit: int
    offset: int
    has_next: bool

    @classmethod
    def from_page(cls, page: Page[TrackRef], limit: int, offset: int) -> "TrackPageResponse":
        return cls(
            items=[TrackResponse.from_entity(t) for t in page.items],
            total=page.total,
            limit=limit,
            offset=offset,
            has_next=page.has_next,
        )


class PlaylistSearchResponse(BaseModel):
    """Playlists containing the requested track or artist."""

    playlists: list[PlaylistResponse]
    total: int


class PlaylistAnalyticsItem(BaseModel):
    """Top-content analytics for one playlist."""

    playlist: PlaylistResponse
    top_tracks_count: int
    top_artists_count: int
    top_tracks_percentage: float = Field(description="0-100, two decimals")
    top_artists_percentage: float = Field(description="0-100, two decimals")

    @classmethod
    def from_record(cls, record: AnalyticsRecord) -> "PlaylistAnalyticsItem":
        return cls(
            playlist=PlaylistResponse.from_entity(record.playlist),
            top_tracks_count=record.top_track_count,
            top_artists_count=record.top_artist_count,
            top_tracks_percentage=record.top_track_pct,
            top_artists_percentage=record.top_artist_pct,
        )


class PlaylistAnalyticsResponse(BaseModel):
    """Playlists ranked by how many of the user's top tracks they contain."""

    time_range: str
    playlists: list[PlaylistAnalyticsItem]
    total: int
