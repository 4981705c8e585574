# Verso Console MCP Server
# File: tests/test_table_fetcher.py
# Version: v1

"""Tests for TableFetcher: last-request-wins and cancellation on close."""

from __future__ import annotations

import asyncio
from typing import Dict, List

import pytest

from verso_console_mcp.errors import InvalidState, OutOfRange, TransportError
from verso_console_mcp.models import Filter, ResourceEnvelope, ResponseMetadata
from verso_console_mcp.table import TableFetcher


class _GatedBackend:
    """Fake fetch whose responses are released by the test, in any order."""

    def __init__(self) -> None:
        self.calls: List[Filter] = []
        self.gates: List[asyncio.Event] = []
        self.results: Dict[int, object] = {}

    async def fetch(self, flt: Filter) -> ResourceEnvelope:
        index = len(self.calls)
        self.calls.append(flt)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result  # type: ignore[return-value]

    def resolve(self, index: int, result: object) -> None:
        self.results[index] = result
        self.gates[index].set()


def _envelope(tag: str, page: int = 1, total: int = 1) -> ResourceEnvelope:
    return ResourceEnvelope(data=[{"tag": tag}], meta=ResponseMetadata(page=page, total=total))


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_out_of_order_response_is_discarded():
    backend = _GatedBackend()
    fetcher = TableFetcher.create(backend.fetch, limit=10)

    task_a = asyncio.create_task(fetcher.search("alpha"))
    await _settle()
    task_b = asyncio.create_task(fetcher.search("beta"))
    await _settle()

    assert [c.free_text_query for c in backend.calls] == ["alpha", "beta"]

    backend.resolve(1, _envelope("B"))
    assert await task_b is True
    backend.resolve(0, _envelope("A"))
    assert await task_a is False

    assert fetcher.data == [{"tag": "B"}]
    assert fetcher.generation == 2


@pytest.mark.asyncio
async def test_stale_error_is_dropped():
    backend = _GatedBackend()
    fetcher = TableFetcher.create(backend.fetch, limit=10)

    task_a = asyncio.create_task(fetcher.refresh())
    await _settle()
    task_b = asyncio.create_task(fetcher.refresh())
    await _settle()

    backend.resolve(1, _envelope("B"))
    await task_b
    backend.resolve(0, TransportError("connection reset"))

    assert await task_a is False
    assert fetcher.error is None
    assert fetcher.data == [{"tag": "B"}]


@pytest.mark.asyncio
async def test_current_error_is_recorded_and_raised():
    async def failing(flt: Filter) -> ResourceEnvelope:
        raise TransportError("backend down")

    fetcher = TableFetcher.create(failing, limit=10)
    with pytest.raises(TransportError):
        await fetcher.refresh()
    assert isinstance(fetcher.error, TransportError)


@pytest.mark.asyncio
async def test_close_ignores_in_flight_result():
    backend = _GatedBackend()
    fetcher = TableFetcher.create(backend.fetch, limit=10)

    task = asyncio.create_task(fetcher.refresh())
    await _settle()
    fetcher.close()
    backend.resolve(0, _envelope("late"))

    assert await task is False
    assert fetcher.data == []
    assert fetcher.meta is None

    with pytest.raises(InvalidState):
        await fetcher.refresh()


@pytest.mark.asyncio
async def test_navigation_refetches_with_new_page():
    seen: List[Filter] = []

    async def fetch(flt: Filter) -> ResourceEnvelope:
        seen.append(flt)
        return _envelope(f"p{flt.page}", page=flt.resolved_page, total=25)

    fetcher = TableFetcher.create(fetch, limit=10)
    await fetcher.refresh()
    assert fetcher.has_next_page is True
    assert fetcher.has_previous_page is False

    await fetcher.next_page()
    await fetcher.next_page()
    assert fetcher.ctx.page == 3
    assert fetcher.has_next_page is False

    with pytest.raises(OutOfRange):
        await fetcher.next_page()
    assert fetcher.ctx.page == 3
    assert len(seen) == 3

    await fetcher.sort_by("deployedAt", "desc")
    assert seen[-1].sort == {"deployedAt": "desc"}
    assert seen[-1].page == 1


@pytest.mark.asyncio
async def test_non_strict_fetcher_normalises_context():
    seen: List[Filter] = []

    async def fetch(flt: Filter) -> ResourceEnvelope:
        seen.append(flt)
        return _envelope("x")

    fetcher = TableFetcher.create(fetch, limit=10, strict=False)
    fetcher.ctx.sort = "name"

    await fetcher.refresh()
    assert seen[0].sort is None
    assert fetcher.ctx.sort is None


@pytest.mark.asyncio
async def test_strict_fetcher_fails_fast_without_fetching():
    calls: List[Filter] = []

    async def fetch(flt: Filter) -> ResourceEnvelope:
        calls.append(flt)
        return _envelope("x")

    fetcher = TableFetcher.create(fetch, limit=10)
    fetcher.ctx.order = "asc"

    with pytest.raises(InvalidState):
        await fetcher.refresh()
    assert calls == []
    assert fetcher.generation == 0


@pytest.mark.asyncio
async def test_failed_page_turn_keeps_cursor_on_loaded_page():
    pages: List[int] = []

    async def fetch(flt: Filter) -> ResourceEnvelope:
        pages.append(flt.resolved_page)
        if flt.resolved_page > 1:
            raise TransportError("gateway timeout", status_code=504)
        return _envelope("first", page=1, total=25)

    fetcher = TableFetcher.create(fetch, limit=10)
    await fetcher.refresh()

    with pytest.raises(TransportError):
        await fetcher.next_page()
    assert pages == [1, 2]
    assert fetcher.ctx.page == 1
    assert fetcher.meta.page == 1
    assert fetcher.data == [{"tag": "first"}]
    assert isinstance(fetcher.error, TransportError)

    with pytest.raises(TransportError):
        await fetcher.go_to_page(3)
    assert fetcher.ctx.page == 1
    assert fetcher.has_next_page is True
