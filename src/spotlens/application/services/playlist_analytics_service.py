"""Playlist search and top-content analytics.

Hey future me - this is where the engine gets composed:

    route -> PageWalker(playlists)
          -> BatchScanner(each playlist -> PageWalker(tracks))
          -> aggregator
          -> response

Two modes:
- search_playlists: which of my playlists contain track X / an artist Y?
- analyze_top_content: how much of each playlist is my top tracks / top artists?

Everything is request-scoped and all-or-nothing. One playlist failing (after
AuthenticatedFetch had its one shot at refreshing) fails the whole request.
"""

import asyncio
import logging

from opentelemetry import trace

from spotlens.application.services import aggregator
from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.application.services.batch_scanner import BatchScanner
from spotlens.application.services.page_walker import PageWalker
from spotlens.config.settings import AggregationSettings
from spotlens.domain.entities import (
    AnalyticsRecord,
    Page,
    PlaylistRef,
    TopContentSnapshot,
    TrackRef,
)
from spotlens.domain.exceptions import InvalidRequestError
from spotlens.domain.ports import ISpotifyClient
from spotlens.domain.value_objects import TimeRange
from spotlens.infrastructure.integrations.spotify_mapping import (
    playlist_page_from_json,
    playlist_tracks_page_from_json,
    top_artist_ids_from_json,
    top_track_ids_from_json,
)
from spotlens.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PlaylistAnalyticsService:
    """Aggregates a user's playlists against a track, an artist or their top content."""

    def __init__(
        self,
        spotify_client: ISpotifyClient,
        authenticated_fetch: AuthenticatedFetch,
        page_walker: PageWalker,
        batch_scanner: BatchScanner,
        settings: AggregationSettings,
    ) -> None:
        """Initialize service.

        Args:
            spotify_client: Spotify Web API port
            authenticated_fetch: Refresh-and-retry wrapper for single calls
            page_walker: Walks paged collections to the end
            batch_scanner: Bounded fan-out over playlists
            settings: Page sizes and top-content limit
        """
        self._client = spotify_client
        self._fetch = authenticated_fetch
        self._walker = page_walker
        self._scanner = batch_scanner
        self._settings = settings

    # --- single pages (thin pass-through for the list endpoints) ---

    async def get_playlists_page(
        self, owner_id: str | None, token: str, limit: int, offset: int
    ) -> Page[PlaylistRef]:
        """One page of the user's playlists."""

        async def request(t: str) -> Page[PlaylistRef]:
            data = await self._client.get_user_playlists(t, limit=limit, offset=offset)
            return playlist_page_from_json(data)

        return await self._fetch.execute(owner_id, token, request)

    async def get_playlist_tracks_page(
        self,
        owner_id: str | None,
        token: str,
        playlist_id: str,
        limit: int,
        offset: int,
    ) -> Page[TrackRef]:
        """One page of a playlist's tracks."""

        async def request(t: str) -> Page[TrackRef]:
            data = await self._client.get_playlist_tracks(
                playlist_id, t, limit=limit, offset=offset
            )
            return playlist_tracks_page_from_json(data)

        return await self._fetch.execute(owner_id, token, request)

    # --- full collections ---
    # Each returns the token its last call succeeded with. The aggregation modes pass
    # it on, so a token refreshed early in a request is reused by everything after.

    async def fetch_all_user_playlists(
        self, owner_id: str | None, token: str
    ) -> tuple[list[PlaylistRef], str]:
        """Every playlist of the user, in Spotify's order."""
        page_size = self._settings.playlist_page_size

        async def fetch_page(t: str, offset: int) -> Page[PlaylistRef]:
            data = await self._client.get_user_playlists(t, limit=page_size, offset=offset)
            return playlist_page_from_json(data)

        return await self._walker.collect_with_token(
            owner_id, token, fetch_page, page_size, resource="playlists"
        )

    async def fetch_all_playlist_tracks(
        self, owner_id: str | None, token: str, playlist_id: str
    ) -> tuple[list[TrackRef], str]:
        """Every track of one playlist, in playlist order."""
        page_size = self._settings.track_page_size

        async def fetch_page(t: str, offset: int) -> Page[TrackRef]:
            data = await self._client.get_playlist_tracks(
                playlist_id, t, limit=page_size, offset=offset
            )
            return playlist_tracks_page_from_json(data)

        return await self._walker.collect_with_token(
            owner_id,
            token,
            fetch_page,
            page_size,
            resource=f"tracks of playlist {playlist_id}",
        )

    async def top_content_snapshot(
        self, owner_id: str | None, token: str, time_range: TimeRange
    ) -> TopContentSnapshot:
        """Fetch the user's top tracks and top artists concurrently."""
        snapshot, _ = await self._top_content_snapshot_with_token(
            owner_id, token, time_range
        )
        return snapshot

    async def _top_content_snapshot_with_token(
        self, owner_id: str | None, token: str, time_range: TimeRange
    ) -> tuple[TopContentSnapshot, str]:
        limit = self._settings.top_content_limit

        async def top_tracks(t: str) -> frozenset[str]:
            data = await self._client.get_top_tracks(
                t, time_range=time_range.value, limit=limit
            )
            return top_track_ids_from_json(data)

        async def top_artists(t: str) -> frozenset[str]:
            data = await self._client.get_top_artists(
                t, time_range=time_range.value, limit=limit
            )
            return top_artist_ids_from_json(data)

        (track_ids, token), (artist_ids, _) = await asyncio.gather(
            self._fetch.execute_with_token(owner_id, token, top_tracks),
            self._fetch.execute_with_token(owner_id, token, top_artists),
        )
        return TopContentSnapshot(track_ids=track_ids, artist_ids=artist_ids), token

    # --- the two aggregation modes ---

    async def search_playlists(
        self,
        owner_id: str | None,
        token: str,
        track_id: str | None = None,
        artist_id: str | None = None,
    ) -> list[PlaylistRef]:
        """Playlists that contain track_id, or a track by artist_id.

        Raises:
            InvalidRequestError: Both or neither of track_id / artist_id given
        """
        if track_id and artist_id:
            raise InvalidRequestError("Provide either track_id or artist_id, not both")
        if not track_id and not artist_id:
            raise InvalidRequestError("Provide either track_id or artist_id")

        mode = "track" if track_id else "artist"
        with tracer.start_as_current_span("playlist_analytics.search_playlists") as span:
            span.set_attribute("spotlens.search.mode", mode)
            async with log_operation(
                logger, "playlist_search", mode=mode, target_id=track_id or artist_id
            ):
                playlists, token = await self.fetch_all_user_playlists(owner_id, token)
                span.set_attribute("spotlens.playlists.count", len(playlists))

                async def contains(playlist: PlaylistRef) -> bool:
                    tracks, _ = await self.fetch_all_playlist_tracks(
                        owner_id, token, playlist.id
                    )
                    return aggregator.containment_check(
                        tracks, track_id=track_id, artist_id=artist_id
                    )

                hits = await self._scanner.scan(playlists, contains)
                matches = [p for p, hit in zip(playlists, hits, strict=True) if hit]

                logger.info(
                    f"Playlist search matched {len(matches)}/{len(playlists)} playlists"
                )
                return matches

    async def analyze_top_content(
        self, owner_id: str | None, token: str, time_range: TimeRange
    ) -> list[AnalyticsRecord]:
        """Top-content stats for every playlist, most top tracks first."""
        with tracer.start_as_current_span(
            "playlist_analytics.analyze_top_content"
        ) as span:
            span.set_attribute("spotlens.time_range", time_range.value)
            async with log_operation(
                logger, "top_content_analysis", time_range=time_range.value
            ):
                snapshot, token = await self._top_content_snapshot_with_token(
                    owner_id, token, time_range
                )
                playlists, token = await self.fetch_all_user_playlists(owner_id, token)
                span.set_attribute("spotlens.playlists.count", len(playlists))

                async def analyze(playlist: PlaylistRef) -> AnalyticsRecord:
                    tracks, _ = await self.fetch_all_playlist_tracks(
                        owner_id, token, playlist.id
                    )
                    stats = aggregator.top_content_stats(
                        tracks, snapshot.track_ids, snapshot.artist_ids
                    )
                    return AnalyticsRecord.from_stats(playlist, stats)

                records = await self._scanner.scan(playlists, analyze)
                return aggregator.rank_by_top_tracks(records)
