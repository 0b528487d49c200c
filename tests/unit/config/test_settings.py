"""Tests for environment-driven settings."""

import pytest

from spotlens.config.settings import AggregationSettings, SpotifySettings


class TestSpotifySettings:
    """SPOTIFY_* environment variables."""

    def test_reads_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "abc")
        monkeypatch.setenv("SPOTIFY_REQUEST_TIMEOUT", "12.5")

        settings = SpotifySettings()

        assert settings.client_id == "abc"
        assert settings.request_timeout == 12.5
        assert settings.token_lifetime_seconds == 3600

    def test_leftover_oauth_redirect_env_is_ignored(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that an old SPOTIFY_REDIRECT_URI doesn't break startup or add a field."""
        monkeypatch.setenv("SPOTIFY_REDIRECT_URI", "http://localhost/callback")

        settings = SpotifySettings()

        assert "redirect_uri" not in SpotifySettings.model_fields
        assert not hasattr(settings, "redirect_uri")


class TestAggregationSettings:
    """AGGREGATION_* engine knobs."""

    def test_defaults(self) -> None:
        settings = AggregationSettings()

        assert settings.batch_size == 5
        assert settings.playlist_page_size == 50
        assert settings.track_page_size == 100
        assert settings.top_content_limit == 50
        assert settings.max_pages is None
