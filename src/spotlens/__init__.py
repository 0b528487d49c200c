"""SpotLens - playlist aggregation and analytics backend for Spotify."""

__version__ = "0.1.0"
