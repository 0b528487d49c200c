"""External service integrations."""

from spotlens.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["SpotifyClient"]
