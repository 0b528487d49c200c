"""Time range for Spotify top-content endpoints."""

from enum import Enum


class TimeRange(str, Enum):
    """Spotify's affinity time frames for /me/top.

    short_term ~ last 4 weeks, medium_term ~ last 6 months, long_term ~ several years.
    """

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"

    @classmethod
    def default(cls) -> "TimeRange":
        """Range used when the caller doesn't pick one."""
        return cls.MEDIUM_TERM
