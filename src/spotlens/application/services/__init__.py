"""Application services."""

from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.application.services.batch_scanner import BatchScanner
from spotlens.application.services.credential_service import CredentialService
from spotlens.application.services.page_walker import PageWalker
from spotlens.application.services.playlist_analytics_service import (
    PlaylistAnalyticsService,
)

__all__ = [
    "AuthenticatedFetch",
    "BatchScanner",
    "CredentialService",
    "PageWalker",
    "PlaylistAnalyticsService",
]
