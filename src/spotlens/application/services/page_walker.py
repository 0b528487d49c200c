"""Cursor-pagination driver that materializes a whole Spotify collection.

Hey future me - Spotify's "next" URL is the ONLY end-of-collection signal we trust.
A page with fewer than page_size items does NOT mean we're done (Spotify happily returns
short pages mid-collection when items are unavailable in the user's market).

All-or-nothing: if page 7 of 9 fails, the caller gets page 7's error and NOTHING else.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.domain.entities import Page
from spotlens.domain.exceptions import InvalidRequestError, PaginationLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[str, int], Awaitable[Page[T]]]


class PageWalker:
    """Walks a paged upstream resource from offset 0 until the cursor runs out."""

    def __init__(
        self, authenticated_fetch: AuthenticatedFetch, max_pages: int | None = None
    ) -> None:
        """Initialize page walker.

        Args:
            authenticated_fetch: Wraps every page call with refresh-and-retry
            max_pages: Optional ceiling on pages per walk, None for unbounded
        """
        if max_pages is not None and max_pages <= 0:
            raise InvalidRequestError(f"max_pages must be positive, got {max_pages}")
        self._fetch = authenticated_fetch
        self._max_pages = max_pages

    async def collect(
        self,
        owner_id: str | None,
        token: str,
        page_fetcher: PageFetcher[T],
        page_size: int,
        resource: str = "collection",
    ) -> list[T]:
        """Fetch every page and return the concatenated items in fetch order.

        Args:
            owner_id: Credential owner, enables refresh on 401
            token: Access token to start with
            page_fetcher: Fetches one page given (token, offset)
            page_size: Offset step between pages
            resource: Human-readable name used in logs and error notes

        Returns:
            All items of all pages

        Raises:
            InvalidRequestError: page_size is not positive
            PaginationLimitExceededError: max_pages reached while Spotify still has pages
        """
        items, _ = await self.collect_with_token(
            owner_id, token, page_fetcher, page_size, resource
        )
        return items

    async def collect_with_token(
        self,
        owner_id: str | None,
        token: str,
        page_fetcher: PageFetcher[T],
        page_size: int,
        resource: str = "collection",
    ) -> tuple[list[T], str]:
        """Same as collect(), also returning the token the last page was fetched with."""
        if page_size <= 0:
            raise InvalidRequestError(f"page_size must be positive, got {page_size}")

        items: list[T] = []
        offset = 0
        pages = 0
        current_token = token

        while True:
            async def fetch_page(t: str) -> Page[T]:
                return await page_fetcher(t, offset)

            try:
                page, current_token = await self._fetch.execute_with_token(
                    owner_id, current_token, fetch_page
                )
            except Exception as e:
                e.add_note(f"while fetching {resource} page at offset {offset}")
                raise

            items.extend(page.items)
            pages += 1

            if not page.next_cursor:
                break

            if self._max_pages is not None and pages >= self._max_pages:
                logger.warning(
                    f"Pagination ceiling hit for {resource}",
                    extra={"max_pages": self._max_pages, "offset": offset},
                )
                raise PaginationLimitExceededError(resource, self._max_pages)

            offset += page_size

        logger.debug(
            f"Collected {len(items)} items of {resource} in {pages} page(s)"
        )
        return items, current_token
