"""Application lifecycle management for startup and shutdown tasks.

This module handles the FastAPI lifespan context manager that wires the
long-lived resources onto app.state:

- app.state.settings: Settings
- app.state.db: Database (credential store)
- app.state.spotify_client: SpotifyClient (one httpx pool for the whole process)
- app.state.credential_service: CredentialService

Request-scoped engine pieces (AuthenticatedFetch, PageWalker, BatchScanner) are
built per request in api.dependencies - they hold no state worth sharing.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from spotlens.application.services.credential_service import CredentialService
from spotlens.config import Settings, get_settings
from spotlens.domain.exceptions import ConfigurationError
from spotlens.infrastructure.integrations.spotify_client import SpotifyClient
from spotlens.infrastructure.observability import configure_logging
from spotlens.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


# Hey future me, this validates the SQLite path BEFORE we create the DB engine. SQLite
# needs to create temp files (-journal, -wal) next to the .db file, so the directory must
# be writable. We DON'T pre-create the .db file, SQLite does that on first connect.
# Returns early for non-SQLite and in-memory URLs.
def _validate_sqlite_path(settings: Settings) -> None:
    """Validate SQLite database path accessibility before engine creation."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


# Listen future me, everything before `yield` runs at STARTUP, everything after at
# SHUTDOWN. The finally block makes sure the httpx pool and the DB engine are closed even
# when startup blew up halfway.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles:
    - Logging configuration
    - Database initialization and table creation
    - Spotify client and credential service creation
    - Resource cleanup
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    try:
        _validate_sqlite_path(settings)

        db = Database(settings)
        app.state.db = db
        await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        spotify_client = SpotifyClient(settings.spotify)
        app.state.spotify_client = spotify_client
        app.state.credential_service = CredentialService(
            database=db,
            spotify_client=spotify_client,
            spotify_settings=settings.spotify,
        )

        if not settings.spotify.client_id:
            logger.warning(
                "SPOTIFY_CLIENT_ID is not set - token refresh will be unavailable"
            )

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        spotify_client = getattr(app.state, "spotify_client", None)
        if spotify_client is not None:
            try:
                await spotify_client.close()
                logger.info("Spotify client closed")
            except Exception as e:
                logger.exception("Error closing Spotify client: %s", e)

        db = getattr(app.state, "db", None)
        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
