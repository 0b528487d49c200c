"""Bounded-concurrency fan-out over a materialized collection.

Hey future me - this is our backpressure against Spotify's rate limits. Items are split
into chunks of batch_size; a chunk runs concurrently, chunks run one after another.
With 12 playlists and batch_size=5 you get [5, 5, 2] and never more than 5 playlist
walks in flight for one request.

Failure = abort. First failing item wins, its unfinished siblings get cancelled (and
awaited, so nothing keeps hammering Spotify in the background), later chunks never start.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from spotlens.domain.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

I = TypeVar("I")  # noqa: E741
R = TypeVar("R")

DEFAULT_BATCH_SIZE = 5


class BatchScanner:
    """Runs an async per-item function over items in sequential concurrent batches."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise InvalidRequestError(f"batch_size must be positive, got {batch_size}")
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def scan(
        self,
        items: Sequence[I],
        per_item: Callable[[I], Awaitable[R]],
        batch_size: int | None = None,
    ) -> list[R]:
        """Apply per_item to every item, batch by batch.

        Args:
            items: Input collection
            per_item: Async function applied to each item
            batch_size: Override for this scan, defaults to the scanner's batch size

        Returns:
            Results with batch k before batch k+1 and input order kept inside a batch

        Raises:
            InvalidRequestError: batch_size is not positive
        """
        size = self._batch_size if batch_size is None else batch_size
        if size <= 0:
            raise InvalidRequestError(f"batch_size must be positive, got {size}")

        results: list[R] = []
        total_batches = (len(items) + size - 1) // size

        for batch_index, start in enumerate(range(0, len(items), size)):
            chunk = items[start : start + size]
            logger.debug(
                f"Scanning batch {batch_index + 1}/{total_batches} "
                f"({len(chunk)} items)"
            )
            results.extend(await self._run_batch(chunk, per_item, batch_index))

        return results

    async def _run_batch(
        self,
        chunk: Sequence[I],
        per_item: Callable[[I], Awaitable[R]],
        batch_index: int,
    ) -> list[R]:
        tasks = [asyncio.ensure_future(per_item(item)) for item in chunk]
        try:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )

            # Read every finished task's exception, not just the first, so siblings
            # failing in the same wake-up are marked retrieved
            errors = [
                task.exception()
                for task in tasks
                if task in done and not task.cancelled()
            ]
            error = next((e for e in errors if e is not None), None)
            if error is not None:
                for task in pending:
                    task.cancel()
                # Siblings must be resolved before the failure leaves this batch
                await asyncio.gather(*pending, return_exceptions=True)

                error.add_note(f"in batch {batch_index + 1} of the scan")
                raise error

            return [task.result() for task in tasks]
        finally:
            # Only reached with live tasks when the scan itself was cancelled
            for task in tasks:
                if not task.done():
                    task.cancel()
