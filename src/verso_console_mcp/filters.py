# Verso Console MCP Server
# File: filters.py
# Version: v1

"""Filter building and the query-parameter wire codec.

Wire names:

- ``q[<field>]``  structured query entry
- ``qs``          free-text query
- ``l``           limit
- ``p``           page
- ``o[<field>]``  sort direction, repeated in precedence order
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import httpx

from .errors import InvalidFilter, InvalidState
from .models import SORT_ORDERS, Filter

if TYPE_CHECKING:
    from .table import TableFetcherContext

logger = logging.getLogger(__name__)

WireParams = List[Tuple[str, str]]
ParamsInput = Union[str, httpx.QueryParams, Mapping[str, Any], Iterable[Tuple[str, Any]]]


def check_sort_consistency(ctx: "TableFetcherContext") -> bool:
    """True when ``sort`` and ``order`` are both set or both unset."""
    return (ctx.sort is None) == (ctx.order is None)


def build_filter(ctx: "TableFetcherContext", strict: bool = True) -> Filter:
    """Translate a table context into a request Filter.

    Pure: the context is never modified and equal contexts give equal
    Filters. A context with only one of ``sort`` / ``order`` set raises
    :class:`InvalidState` when ``strict``; otherwise both are treated as
    cleared.
    """
    sort: Optional[Dict[str, Any]] = None
    if not check_sort_consistency(ctx):
        if strict:
            raise InvalidState(
                f"Table context has sort={ctx.sort!r} but order={ctx.order!r}; "
                "both must be set or both unset."
            )
        logger.warning(
            "Ignoring inconsistent sort state (sort=%r, order=%r).", ctx.sort, ctx.order
        )
    elif ctx.sort is not None:
        sort = {ctx.sort: ctx.order}

    return Filter(
        structured_query=dict(ctx.q) if ctx.q is not None else None,
        free_text_query=ctx.qs,
        limit=ctx.limit,
        page=ctx.page,
        sort=sort,
    )


def encode_filter(flt: Filter) -> WireParams:
    """Serialise a Filter into ordered query-parameter pairs."""
    params: WireParams = []
    for key, value in (flt.structured_query or {}).items():
        params.append((f"q[{key}]", value))
    if flt.free_text_query is not None:
        params.append(("qs", flt.free_text_query))
    if flt.limit is not None:
        params.append(("l", str(flt.limit)))
    if flt.page is not None:
        params.append(("p", str(flt.page)))
    for key, direction in (flt.sort or {}).items():
        params.append((f"o[{key}]", direction))
    return params


def _bracket_key(name: str, prefix: str) -> Optional[str]:
    """Return ``field`` for ``prefix[field]``, else None."""
    head = f"{prefix}["
    if name.startswith(head) and name.endswith("]") and len(name) > len(head) + 1:
        return name[len(head):-1]
    return None


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise InvalidFilter(f"Query parameter '{name}' must be an integer, got {raw!r}.") from None
    if value < 1:
        raise InvalidFilter(f"Query parameter '{name}' must be positive, got {value}.")
    return value


def _iter_pairs(params: ParamsInput) -> Iterable[Tuple[str, Any]]:
    if isinstance(params, str):
        return httpx.QueryParams(params.lstrip("?")).multi_items()
    if isinstance(params, httpx.QueryParams):
        return params.multi_items()
    if isinstance(params, Mapping):
        return params.items()
    return params


def decode_filter(params: ParamsInput) -> Filter:
    """Rebuild a Filter from query parameters.

    Accepts a raw query string, ``httpx.QueryParams``, a mapping or an
    iterable of pairs. Parameters outside the Filter vocabulary are ignored.
    """
    structured: Dict[str, str] = {}
    sort: Dict[str, Any] = {}
    free_text: Optional[str] = None
    limit: Optional[int] = None
    page: Optional[int] = None

    for name, raw in _iter_pairs(params):
        value = str(raw)
        if name == "qs":
            free_text = value
        elif name == "l":
            limit = _parse_positive_int(name, value)
        elif name == "p":
            page = _parse_positive_int(name, value)
        elif (field_name := _bracket_key(name, "q")) is not None:
            structured[field_name] = value
        elif (field_name := _bracket_key(name, "o")) is not None:
            direction = value.strip().lower()
            if direction not in SORT_ORDERS:
                raise InvalidFilter(
                    f"Sort direction for '{field_name}' must be 'asc' or 'desc', got {value!r}."
                )
            sort[field_name] = direction

    return Filter(
        structured_query=structured or None,
        free_text_query=free_text,
        limit=limit,
        page=page,
        sort=sort or None,
    )
