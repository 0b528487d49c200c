"""Unit tests for CredentialRepository against a throwaway SQLite file.

Hey future me - these run the real SQLAlchemy async stack through aiosqlite, so they
also catch the "SQLite hands back naive datetimes" problem.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from spotlens.config.settings import DatabaseSettings, Settings
from spotlens.infrastructure.persistence.database import Database
from spotlens.infrastructure.persistence.repositories import CredentialRepository


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'creds.db'}")
    )
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


class TestCredentialRepository:
    """Tests for per-owner credential storage."""

    async def test_get_by_owner_missing_returns_none(self, database: Database) -> None:
        async with database.session_scope() as session:
            assert await CredentialRepository(session).get_by_owner("nobody") is None

    async def test_upsert_creates_then_updates(self, database: Database) -> None:
        """Test that a second upsert overwrites tokens and revalidates the row."""
        expires = datetime.now(UTC) + timedelta(hours=1)
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "user-1", "access-1", "refresh-1", expires
            )
        async with database.session_scope() as session:
            await CredentialRepository(session).mark_invalid("user-1", "revoked")
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "user-1", "access-2", "refresh-2", expires
            )

        async with database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner("user-1")

        assert model is not None
        assert model.access_token == "access-2"
        assert model.refresh_token == "refresh-2"
        assert model.is_valid is True
        assert model.last_error is None

    async def test_update_after_refresh_keeps_refresh_token_unless_rotated(
        self, database: Database
    ) -> None:
        expires = datetime.now(UTC) + timedelta(hours=1)
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "user-1", "old", "refresh-1", expires
            )

        async with database.session_scope() as session:
            updated = await CredentialRepository(session).update_after_refresh(
                "user-1", "new", expires + timedelta(hours=1)
            )

        async with database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner("user-1")

        assert updated is True
        assert model is not None
        assert model.access_token == "new"
        assert model.refresh_token == "refresh-1"
        assert model.last_refreshed_at is not None

    async def test_update_after_refresh_stores_rotated_refresh_token(
        self, database: Database
    ) -> None:
        expires = datetime.now(UTC) + timedelta(hours=1)
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "user-1", "old", "refresh-1", expires
            )
        async with database.session_scope() as session:
            await CredentialRepository(session).update_after_refresh(
                "user-1", "new", expires, refresh_token="refresh-2"
            )

        async with database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner("user-1")

        assert model is not None
        assert model.refresh_token == "refresh-2"

    async def test_update_and_mark_invalid_without_row(self, database: Database) -> None:
        async with database.session_scope() as session:
            repo = CredentialRepository(session)
            assert (
                await repo.update_after_refresh("ghost", "tok", datetime.now(UTC))
                is False
            )
            assert await repo.mark_invalid("ghost", "boom") is False

    async def test_mark_invalid_records_error(self, database: Database) -> None:
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "user-1", "tok", "refresh", datetime.now(UTC) + timedelta(hours=1)
            )
        async with database.session_scope() as session:
            await CredentialRepository(session).mark_invalid("user-1", "invalid_grant")

        async with database.session_scope() as session:
            model = await CredentialRepository(session).get_by_owner("user-1")

        assert model is not None
        assert model.is_valid is False
        assert model.last_error == "invalid_grant"
        assert model.last_error_at is not None

    async def test_expiry_survives_sqlite_round_trip(self, database: Database) -> None:
        """Test that expiry comparisons work on the naive datetimes SQLite returns."""
        async with database.session_scope() as session:
            await CredentialRepository(session).upsert_credential(
                "past", "tok", "refresh", datetime.now(UTC) - timedelta(minutes=1)
            )
            await CredentialRepository(session).upsert_credential(
                "future", "tok", "refresh", datetime.now(UTC) + timedelta(hours=1)
            )

        async with database.session_scope() as session:
            repo = CredentialRepository(session)
            past = await repo.get_by_owner("past")
            future = await repo.get_by_owner("future")

        assert past is not None and past.is_expired()
        assert future is not None and not future.is_expired()
        assert future.to_entity().expires_at.tzinfo is not None

    async def test_ping(self, database: Database) -> None:
        await database.ping()
