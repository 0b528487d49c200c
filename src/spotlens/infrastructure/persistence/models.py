"""SQLAlchemy ORM models for SpotLens."""

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from spotlens.domain.entities import Credential


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back naive.
# ALWAYS run DB datetimes through this before comparing with datetime.now(UTC), or you get
# "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class SpotifyCredentialModel(Base):
    """Spotify OAuth credential, one row per owner (Spotify user id).

    Refresh is an UPSERT on owner_id: two concurrent refreshes for the same owner both
    write, the last one wins. Both tokens are valid Spotify tokens, so that's harmless.
    """

    __tablename__ = "spotify_credentials"

    owner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    # False once a refresh is rejected - user has to reconnect
    is_valid: Mapped[bool] = mapped_column(default=True, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    last_refreshed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_spotify_credentials_valid", "is_valid"),)

    def is_expired(self) -> bool:
        """Check if the access token is past its expiration time."""
        return utc_now() >= ensure_utc_aware(self.token_expires_at)

    def to_entity(self) -> Credential:
        """Convert to the domain Credential."""
        return Credential(
            owner_id=self.owner_id,
            access_token=self.access_token,
            refresh_token=self.refresh_token or "",
            expires_at=ensure_utc_aware(self.token_expires_at),
            is_valid=self.is_valid,
        )
