# Verso Console MCP Server
# File: table.py
# Version: v1

"""Table view controller state, pagination and fetch coordination.

A :class:`TableFetcherContext` belongs to exactly one list/table view. It is
turned into a :class:`~verso_console_mcp.models.Filter` right before each
fetch. :class:`TableFetcher` runs those fetches and keeps only the result of
the most recent one (last-request-wins), tracked by a generation counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from .errors import InvalidState, OutOfRange
from .filters import build_filter, check_sort_consistency
from .models import SORT_ORDERS, Filter, ResourceEnvelope, ResponseMetadata, SortOrder

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[Filter], Awaitable[ResourceEnvelope[T]]]


@dataclass
class TableFetcherContext:
    """Mutable query state of one table view.

    ``sort`` and ``order`` are either both set or both ``None``.
    """

    limit: int
    q: Optional[Dict[str, str]] = None
    qs: Optional[str] = None
    page: int = 1
    sort: Optional[str] = None
    order: Optional[SortOrder] = None

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise ValueError(f"limit must be a positive integer, got {self.limit!r}.")

    # -- mutations driven by user interaction ------------------------------

    def search(self, qs: Optional[str]) -> None:
        """Set the free-text query; an empty string clears it."""
        self.qs = qs or None
        self.page = 1

    def set_field(self, name: str, value: str) -> None:
        q = dict(self.q or {})
        q[name] = value
        self.q = q
        self.page = 1

    def clear_field(self, name: str) -> None:
        if not self.q or name not in self.q:
            return
        q = dict(self.q)
        q.pop(name)
        self.q = q or None
        self.page = 1

    def sort_by(self, sort: Optional[str], order: Optional[SortOrder] = "asc") -> None:
        """Sort by one column, or clear sorting with ``sort_by(None)``."""
        if sort is None:
            self.sort = None
            self.order = None
        else:
            if order not in SORT_ORDERS:
                raise ValueError(f"order must be 'asc' or 'desc', got {order!r}.")
            self.sort = sort
            self.order = order
        self.page = 1

    def set_limit(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}.")
        self.limit = limit
        self.page = 1

    def normalize(self) -> bool:
        """Clear a half-set sort/order pair. Returns True if anything changed."""
        if check_sort_consistency(self):
            return False
        logger.warning(
            "Clearing inconsistent sort state (sort=%r, order=%r).", self.sort, self.order
        )
        self.sort = None
        self.order = None
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "q": dict(self.q) if self.q is not None else None,
            "qs": self.qs,
            "page": self.page,
            "limit": self.limit,
            "sort": self.sort,
            "order": self.order,
        }


# ---------------------------------------------------------------------------
# Pagination navigation
# ---------------------------------------------------------------------------


def has_next_page(meta: ResponseMetadata, limit: int) -> bool:
    return meta.page * limit < meta.total


def has_previous_page(meta: ResponseMetadata) -> bool:
    return meta.page > 1


def check_page(page: int, limit: int, meta: Optional[ResponseMetadata]) -> None:
    """Raise :class:`OutOfRange` unless ``page`` is reachable.

    Page 1 is always reachable, even for an empty result. Without metadata
    nothing beyond page 1 is known to exist.
    """
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise OutOfRange(f"Page must be a positive integer, got {page!r}.")
    if page == 1:
        return
    total = meta.total if meta is not None else 0
    if (page - 1) * limit >= total:
        raise OutOfRange(
            f"Page {page} is past the end of the result set "
            f"(total={total}, limit={limit})."
        )


def go_to_page(ctx: TableFetcherContext, page: int, meta: Optional[ResponseMetadata]) -> None:
    """Move ``ctx`` to ``page``; on :class:`OutOfRange` ``ctx`` is unchanged."""
    check_page(page, ctx.limit, meta)
    ctx.page = page


def next_page(ctx: TableFetcherContext, meta: Optional[ResponseMetadata]) -> None:
    go_to_page(ctx, ctx.page + 1, meta)


def previous_page(ctx: TableFetcherContext, meta: Optional[ResponseMetadata]) -> None:
    go_to_page(ctx, ctx.page - 1, meta)


# ---------------------------------------------------------------------------
# Fetch coordination
# ---------------------------------------------------------------------------


@dataclass
class TableFetcher(Generic[T]):
    """Drives fetches for one table view.

    Only the result of the most recently started fetch is applied to
    ``data`` / ``meta`` / ``error``; older ones are dropped when they resolve.
    After :meth:`close` every in-flight result is dropped as well.
    """

    fetch: FetchFn
    ctx: TableFetcherContext
    strict: bool = True

    data: List[T] = field(default_factory=list)
    meta: Optional[ResponseMetadata] = None
    error: Optional[Exception] = None
    closed: bool = False
    last_filter: Optional[Filter] = None
    _generation: int = field(default=0, init=False, repr=False)

    @classmethod
    def create(cls, fetch: FetchFn, limit: int, strict: bool = True) -> "TableFetcher[T]":
        return cls(fetch=fetch, ctx=TableFetcherContext(limit=limit), strict=strict)

    @property
    def generation(self) -> int:
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return not self.closed and generation == self._generation

    async def refresh(self) -> bool:
        """Fetch with the current context.

        Returns True if the result was applied, False if it went stale while
        in flight. Errors of a current fetch are stored on ``error`` and
        re-raised; errors of a stale fetch are dropped.
        """
        if self.closed:
            raise InvalidState("Cannot fetch on a closed table view.")

        if not self.strict:
            self.ctx.normalize()

        flt = build_filter(self.ctx, strict=self.strict)
        self.last_filter = flt

        self._generation += 1
        generation = self._generation

        try:
            envelope = await self.fetch(flt)
        except Exception as exc:
            if not self._is_current(generation):
                logger.debug("Dropping error from stale fetch #%d: %s", generation, exc)
                return False
            self.error = exc
            raise

        if not self._is_current(generation):
            logger.debug(
                "Dropping stale fetch #%d (current #%d, closed=%s).",
                generation,
                self._generation,
                self.closed,
            )
            return False

        self.data = list(envelope.data)
        self.meta = envelope.meta
        self.error = None
        return True

    def close(self) -> None:
        """Discard the view; any in-flight result will be ignored."""
        self.closed = True

    # -- pagination state ---------------------------------------------------

    @property
    def has_next_page(self) -> bool:
        return self.meta is not None and has_next_page(self.meta, self.ctx.limit)

    @property
    def has_previous_page(self) -> bool:
        return self.meta is not None and has_previous_page(self.meta)

    # -- interactions: mutate, then refetch --------------------------------

    async def search(self, qs: Optional[str]) -> bool:
        self.ctx.search(qs)
        return await self.refresh()

    async def filter_by(self, name: str, value: Optional[str]) -> bool:
        if value is None:
            self.ctx.clear_field(name)
        else:
            self.ctx.set_field(name, value)
        return await self.refresh()

    async def sort_by(self, sort: Optional[str], order: Optional[SortOrder] = "asc") -> bool:
        self.ctx.sort_by(sort, order)
        return await self.refresh()

    async def _turn_page(self, move: Callable[[], None]) -> bool:
        """Move the page cursor and refetch.

        If the fetch fails while still current, the cursor goes back to the
        page whose rows are still in ``data``.
        """
        previous = self.ctx.page
        move()
        try:
            return await self.refresh()
        except Exception:
            self.ctx.page = previous
            raise

    async def go_to_page(self, page: int) -> bool:
        return await self._turn_page(lambda: go_to_page(self.ctx, page, self.meta))

    async def next_page(self) -> bool:
        return await self._turn_page(lambda: next_page(self.ctx, self.meta))

    async def previous_page(self) -> bool:
        return await self._turn_page(lambda: previous_page(self.ctx, self.meta))
