"""Shared logging helpers.

USAGE:
    from spotlens.infrastructure.observability.logger_template import log_operation

    async with log_operation(logger, "playlist_search", mode="track"):
        await service.search_playlists(...)
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, this context manager logs {operation}.started / .completed / .failed with the
# duration_ms attached automatically. The **context kwargs become extra fields on every
# line, so don't use reserved LogRecord names like "name" or "message" as keys.
# On failure it logs with exc_info and re-raises - it never swallows.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[None]:
    """Context manager for logging operation start/end with automatic timing.

    Args:
        logger: Module logger
        operation: Operation name (e.g., "playlist_search")
        **context: Additional fields to include in logs (e.g., owner_id="abc")

    Example:
        >>> async with log_operation(logger, "top_content_analysis", time_range="short_term"):
        ...     await analyze()
    """
    start = time.time()
    logger.info(f"{operation}.started", extra=context)

    try:
        yield
    except Exception as e:
        duration_ms = int((time.time() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = int((time.time() - start) * 1000)
    logger.info(
        f"{operation}.completed",
        extra={**context, "duration_ms": duration_ms},
    )
