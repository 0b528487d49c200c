"""Pure aggregation over scanned playlist tracks.

No I/O, no state - just functions over TrackRef lists. That makes this the easiest part
of the engine to test, so keep it that way.
"""

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from spotlens.domain.entities import AnalyticsRecord, TopContentStats, TrackRef
from spotlens.domain.exceptions import InvalidRequestError


def containment_check(
    tracks: Iterable[TrackRef],
    track_id: str | None = None,
    artist_id: str | None = None,
) -> bool:
    """Check whether a playlist contains a track, or a track by an artist.

    Exactly one of track_id / artist_id must be given.

    Raises:
        InvalidRequestError: Both or neither targets given
    """
    if track_id and artist_id:
        raise InvalidRequestError("Provide either track_id or artist_id, not both")
    if not track_id and not artist_id:
        raise InvalidRequestError("Provide either track_id or artist_id")

    if track_id:
        return playlist_contains_track(tracks, track_id)
    return playlist_contains_artist(tracks, artist_id or "")


def playlist_contains_track(tracks: Iterable[TrackRef], track_id: str) -> bool:
    return any(track.id == track_id for track in tracks)


def playlist_contains_artist(tracks: Iterable[TrackRef], artist_id: str) -> bool:
    return any(artist_id in track.artist_ids for track in tracks)


def _percentage(count: int, total: int) -> float:
    # Half-up to 2 places, so 12.345 -> 12.35 (float round() would give 12.34)
    if total == 0:
        return 0.0
    pct = Decimal(count) * 100 / Decimal(total)
    return float(pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# Hey future me - the two counters are deliberately asymmetric!
# top_track_count counts TRACKS: the same top track added twice counts twice.
# top_artist_count counts ARTISTS: an artist with 3 tracks in the playlist counts once.
# Both percentages are against the playlist's TOTAL track count, so the artist pct is
# "distinct top artists per track", not a share of artists.
def top_content_stats(
    tracks: Sequence[TrackRef],
    top_track_ids: frozenset[str] | set[str],
    top_artist_ids: frozenset[str] | set[str],
) -> TopContentStats:
    """Count top tracks and distinct top artists in one pass over a playlist."""
    top_track_count = 0
    seen_artists: set[str] = set()

    for track in tracks:
        if track.id and track.id in top_track_ids:
            top_track_count += 1
        for artist_id in track.artist_ids:
            if artist_id in top_artist_ids:
                seen_artists.add(artist_id)

    total = len(tracks)
    return TopContentStats(
        top_track_count=top_track_count,
        top_artist_count=len(seen_artists),
        top_track_pct=_percentage(top_track_count, total),
        top_artist_pct=_percentage(len(seen_artists), total),
    )


def rank_by_top_tracks(records: Iterable[AnalyticsRecord]) -> list[AnalyticsRecord]:
    """Sort records by top track count, descending.

    sorted() is stable, so ties keep the order the scan produced them in.
    """
    return sorted(records, key=lambda record: record.top_track_count, reverse=True)


__all__ = [
    "containment_check",
    "playlist_contains_artist",
    "playlist_contains_track",
    "rank_by_top_tracks",
    "top_content_stats",
]
