"""Map raw Spotify Web API JSON to domain entities.

Hey future me - Spotify JSON is messy:
- playlist items can have "track": null (track removed from Spotify, or unavailable in
  the user's market). Those items are DROPPED here, they never reach the aggregator.
- local files have "id": null and artists with null ids.
- images can be an empty list or null.
Use .get() everywhere, Spotify adds and drops fields without notice.
"""

from typing import Any

from spotlens.domain.entities import ArtistRef, Page, PlaylistRef, TrackRef


def _first_image_url(images: list[dict[str, Any]] | None) -> str | None:
    if not images:
        return None
    return images[0].get("url")


def artist_from_json(data: dict[str, Any]) -> ArtistRef:
    return ArtistRef(id=data.get("id"), name=data.get("name") or "")


def track_from_json(data: dict[str, Any], added_at: str | None = None) -> TrackRef:
    """Build a TrackRef from a Spotify track object."""
    album = data.get("album") or {}
    return TrackRef(
        id=data.get("id"),
        name=data.get("name") or "",
        artists=tuple(artist_from_json(a) for a in data.get("artists") or []),
        album_name=album.get("name"),
        duration_ms=data.get("duration_ms"),
        is_local=bool(data.get("is_local", False)),
        added_at=added_at,
    )


def playlist_from_json(data: dict[str, Any]) -> PlaylistRef:
    """Build a PlaylistRef from a simplified Spotify playlist object."""
    owner = data.get("owner") or {}
    tracks = data.get("tracks") or {}
    return PlaylistRef(
        id=data["id"],
        name=data.get("name") or "",
        track_count=int(tracks.get("total") or 0),
        owner_id=owner.get("id"),
        owner_name=owner.get("display_name"),
        description=data.get("description") or None,
        public=data.get("public"),
        collaborative=bool(data.get("collaborative", False)),
        image_url=_first_image_url(data.get("images")),
        spotify_url=(data.get("external_urls") or {}).get("spotify"),
    )


def _page(data: dict[str, Any], items: list[Any]) -> Page[Any]:
    return Page(
        items=items,
        next_cursor=data.get("next"),
        previous_cursor=data.get("previous"),
        total=data.get("total"),
        offset=int(data.get("offset") or 0),
        limit=data.get("limit"),
    )


def playlist_page_from_json(data: dict[str, Any]) -> Page[PlaylistRef]:
    """Map a /me/playlists page. Null entries are skipped."""
    items = [playlist_from_json(item) for item in data.get("items") or [] if item]
    return _page(data, items)


def playlist_tracks_page_from_json(data: dict[str, Any]) -> Page[TrackRef]:
    """Map a /playlists/{id}/tracks page, dropping items whose track is null."""
    items = [
        track_from_json(item["track"], added_at=item.get("added_at"))
        for item in data.get("items") or []
        if item and item.get("track")
    ]
    return _page(data, items)


def top_track_ids_from_json(data: dict[str, Any]) -> frozenset[str]:
    """Track ids from a /me/top/tracks response."""
    return frozenset(
        item["id"] for item in data.get("items") or [] if item and item.get("id")
    )


def top_artist_ids_from_json(data: dict[str, Any]) -> frozenset[str]:
    """Artist ids from a /me/top/artists response."""
    return frozenset(
        item["id"] for item in data.get("items") or [] if item and item.get("id")
    )


__all__ = [
    "artist_from_json",
    "playlist_from_json",
    "playlist_page_from_json",
    "playlist_tracks_page_from_json",
    "top_artist_ids_from_json",
    "top_track_ids_from_json",
    "track_from_json",
]
