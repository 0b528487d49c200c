"""Persistence layer for the Spotify credential store."""

from spotlens.infrastructure.persistence.database import Database
from spotlens.infrastructure.persistence.models import (
    Base,
    SpotifyCredentialModel,
    ensure_utc_aware,
    utc_now,
)
from spotlens.infrastructure.persistence.repositories import CredentialRepository

__all__ = [
    "Base",
    "CredentialRepository",
    "Database",
    "SpotifyCredentialModel",
    "ensure_utc_aware",
    "utc_now",
]
