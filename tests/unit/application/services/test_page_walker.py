"""Tests for PageWalker cursor pagination."""

import pytest

from spotlens.application.services.authenticated_fetch import AuthenticatedFetch
from spotlens.application.services.page_walker import PageWalker
from spotlens.domain.entities import Page
from spotlens.domain.exceptions import (
    CredentialExpiredError,
    InvalidRequestError,
    PaginationLimitExceededError,
    UpstreamServerError,
)
from spotlens.domain.ports import ICredentialRefresher


class CountingRefresher(ICredentialRefresher):
    def __init__(self) -> None:
        self.calls = 0

    async def refresh_credential(self, owner_id: str) -> str:
        self.calls += 1
        return f"fresh-{self.calls}"


class PagedSource:
    """Serves pre-built pages by offset and records every call."""

    def __init__(self, page_sizes: list[int], page_size: int) -> None:
        self.pages: dict[int, Page[int]] = {}
        counter = 0
        for index, size in enumerate(page_sizes):
            offset = index * page_size
            items = list(range(counter, counter + size))
            counter += size
            is_last = index == len(page_sizes) - 1
            self.pages[offset] = Page(
                items=items,
                next_cursor=None if is_last else f"cursor-{index + 1}",
                offset=offset,
            )
        self.calls: list[tuple[str, int]] = []
        self.failures: dict[int, Exception] = {}

    async def __call__(self, token: str, offset: int) -> Page[int]:
        self.calls.append((token, offset))
        if offset in self.failures:
            raise self.failures.pop(offset)
        return self.pages[offset]


@pytest.fixture
def refresher() -> CountingRefresher:
    return CountingRefresher()


@pytest.fixture
def walker(refresher: CountingRefresher) -> PageWalker:
    return PageWalker(AuthenticatedFetch(refresher))


class TestPageWalkerCollect:
    """Completeness and ordering."""

    @pytest.mark.parametrize(
        "page_sizes",
        [[3], [5, 5, 1], [2, 0, 4], [1, 1, 1, 1, 1, 1]],
    )
    async def test_collects_all_pages_in_order(
        self, walker: PageWalker, page_sizes: list[int]
    ) -> None:
        source = PagedSource(page_sizes, page_size=5)

        items = await walker.collect("owner", "tok", source, page_size=5)

        assert items == list(range(sum(page_sizes)))
        assert [offset for _, offset in source.calls] == [
            i * 5 for i in range(len(page_sizes))
        ]

    async def test_short_page_does_not_end_walk(self, walker: PageWalker) -> None:
        # Second page is short but still carries a cursor
        source = PagedSource([5, 2, 5, 1], page_size=5)

        items = await walker.collect("owner", "tok", source, page_size=5)

        assert len(items) == 13
        assert len(source.calls) == 4

    async def test_empty_string_cursor_ends_walk(self, walker: PageWalker) -> None:
        async def fetch(token: str, offset: int) -> Page[str]:
            return Page(items=["only"], next_cursor="")

        assert await walker.collect(None, "tok", fetch, page_size=10) == ["only"]

    async def test_non_positive_page_size_rejected(self, walker: PageWalker) -> None:
        source = PagedSource([1], page_size=1)

        with pytest.raises(InvalidRequestError):
            await walker.collect("owner", "tok", source, page_size=0)

        assert source.calls == []


class TestPageWalkerFailures:
    """All-or-nothing behaviour."""

    async def test_mid_walk_failure_aborts_with_note(self, walker: PageWalker) -> None:
        source = PagedSource([5, 5, 5], page_size=5)
        failure = UpstreamServerError("boom", status_code=503)
        source.failures[5] = failure

        with pytest.raises(UpstreamServerError) as exc_info:
            await walker.collect("owner", "tok", source, page_size=5, resource="playlists")

        assert exc_info.value is failure
        assert any("offset 5" in note for note in exc_info.value.__notes__)
        assert any("playlists" in note for note in exc_info.value.__notes__)
        # Page at offset 10 is never requested
        assert [offset for _, offset in source.calls] == [0, 5]

    async def test_refreshed_token_reused_for_remaining_pages(
        self, walker: PageWalker, refresher: CountingRefresher
    ) -> None:
        source = PagedSource([2, 2, 2], page_size=2)
        source.failures[2] = CredentialExpiredError()

        items = await walker.collect("owner", "stale", source, page_size=2)

        assert items == [0, 1, 2, 3, 4, 5]
        assert refresher.calls == 1
        assert [token for token, _ in source.calls] == [
            "stale",
            "stale",
            "fresh-1",
            "fresh-1",
        ]

    async def test_collect_with_token_reports_final_token(
        self, walker: PageWalker, refresher: CountingRefresher
    ) -> None:
        source = PagedSource([2, 2], page_size=2)
        source.failures[2] = CredentialExpiredError()

        items, token = await walker.collect_with_token("owner", "stale", source, 2)

        assert items == [0, 1, 2, 3]
        assert token == "fresh-1"

    async def test_collect_with_token_keeps_token_without_refresh(
        self, walker: PageWalker
    ) -> None:
        source = PagedSource([1], page_size=1)

        _, token = await walker.collect_with_token("owner", "tok", source, 1)

        assert token == "tok"


class TestPageWalkerCeiling:
    """Optional max_pages guard."""

    async def test_max_pages_exceeded_raises(self, refresher: CountingRefresher) -> None:
        walker = PageWalker(AuthenticatedFetch(refresher), max_pages=2)
        source = PagedSource([1, 1, 1], page_size=1)

        with pytest.raises(PaginationLimitExceededError) as exc_info:
            await walker.collect("owner", "tok", source, page_size=1, resource="tracks")

        assert exc_info.value.max_pages == 2
        assert exc_info.value.resource == "tracks"
        assert len(source.calls) == 2

    async def test_max_pages_not_hit_when_walk_ends_in_time(
        self, refresher: CountingRefresher
    ) -> None:
        walker = PageWalker(AuthenticatedFetch(refresher), max_pages=2)
        source = PagedSource([1, 1], page_size=1)

        assert await walker.collect("owner", "tok", source, page_size=1) == [0, 1]

    def test_non_positive_max_pages_rejected(self, refresher: CountingRefresher) -> None:
        with pytest.raises(InvalidRequestError):
            PageWalker(AuthenticatedFetch(refresher), max_pages=0)
