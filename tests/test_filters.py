# Verso Console MCP Server
# File: tests/test_filters.py
# Version: v1

"""Tests for the Filter builder and the query-parameter codec."""

from __future__ import annotations

import httpx
import pytest

from verso_console_mcp.errors import InvalidFilter, InvalidState
from verso_console_mcp.filters import build_filter, decode_filter, encode_filter
from verso_console_mcp.models import Filter
from verso_console_mcp.table import TableFetcherContext


# ---------------------------------------------------------------------------
# build_filter
# ---------------------------------------------------------------------------


def test_unsorted_context_has_no_sort() -> None:
    ctx = TableFetcherContext(limit=10, q={"installation": "acme-prod"}, qs="billing")
    flt = build_filter(ctx)

    assert flt.sort is None
    assert flt.structured_query == {"installation": "acme-prod"}
    assert flt.free_text_query == "billing"
    assert flt.limit == 10
    assert flt.page == 1


def test_scalar_sort_becomes_single_entry_mapping() -> None:
    ctx = TableFetcherContext(limit=10, sort="name", order="desc")
    assert build_filter(ctx).sort == {"name": "desc"}


def test_defaults_map_to_absent_fields() -> None:
    flt = build_filter(TableFetcherContext(limit=25))
    assert flt == Filter(limit=25, page=1)
    assert flt.structured_query is None
    assert flt.free_text_query is None


def test_build_filter_is_idempotent_and_pure() -> None:
    ctx = TableFetcherContext(
        limit=20, q={"status": "active"}, qs="api", page=3, sort="deployedAt", order="asc"
    )
    before = ctx.to_dict()

    first = build_filter(ctx)
    second = build_filter(ctx)

    assert first == second
    assert encode_filter(first) == encode_filter(second)
    assert ctx.to_dict() == before


def test_build_filter_copies_query_mapping() -> None:
    ctx = TableFetcherContext(limit=5, q={"status": "active"})
    flt = build_filter(ctx)
    ctx.q["status"] = "retired"
    assert flt.structured_query == {"status": "active"}


@pytest.mark.parametrize(
    "sort, order",
    [("name", None), (None, "asc")],
)
def test_half_set_sort_is_invalid_state(sort, order) -> None:
    ctx = TableFetcherContext(limit=10)
    ctx.sort = sort
    ctx.order = order

    with pytest.raises(InvalidState):
        build_filter(ctx)


def test_half_set_sort_is_dropped_when_not_strict() -> None:
    ctx = TableFetcherContext(limit=10)
    ctx.sort = "name"

    flt = build_filter(ctx, strict=False)

    assert flt.sort is None
    # The builder never touches the context.
    assert ctx.sort == "name"


def test_end_to_end_context_to_filter() -> None:
    ctx = TableFetcherContext(
        q={"status": "active"}, qs=None, page=1, limit=20, sort="deployedAt", order="desc"
    )
    assert build_filter(ctx) == Filter(
        structured_query={"status": "active"},
        limit=20,
        page=1,
        sort={"deployedAt": "desc"},
    )


# ---------------------------------------------------------------------------
# Filter validation
# ---------------------------------------------------------------------------


def test_empty_filter_is_valid() -> None:
    flt = Filter()
    assert flt.resolved_page == 1
    assert encode_filter(flt) == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0},
        {"page": -1},
        {"page": True},
        {"limit": "10"},
        {"sort": {"name": "up"}},
        {"structured_query": {"status": 1}},
        {"structured_query": {"": "active"}},
        {"sort": {"": "asc"}},
    ],
)
def test_invalid_filters_are_rejected(kwargs) -> None:
    with pytest.raises(InvalidFilter):
        Filter(**kwargs)


def test_sort_precedence_is_part_of_equality() -> None:
    by_name = Filter(sort={"name": "asc", "deployedAt": "desc"})
    by_date = Filter(sort={"deployedAt": "desc", "name": "asc"})

    assert by_name != by_date
    assert by_name == Filter(sort={"name": "asc", "deployedAt": "desc"})
    assert Filter(sort={}) == Filter()


def test_empty_mappings_normalise_to_none() -> None:
    assert Filter(structured_query={}, sort={}) == Filter()


# ---------------------------------------------------------------------------
# Wire codec
# ---------------------------------------------------------------------------


def test_encode_uses_wire_names_in_order() -> None:
    flt = Filter(
        structured_query={"status": "active"},
        free_text_query="api",
        limit=20,
        page=2,
        sort={"deployedAt": "desc", "id": "asc"},
    )

    assert encode_filter(flt) == [
        ("q[status]", "active"),
        ("qs", "api"),
        ("l", "20"),
        ("p", "2"),
        ("o[deployedAt]", "desc"),
        ("o[id]", "asc"),
    ]


def test_decode_keeps_sort_precedence() -> None:
    flt = decode_filter("o[version]=asc&o[deployedAt]=desc&l=5")
    assert list(flt.sort) == ["version", "deployedAt"]
    assert flt.limit == 5


@pytest.mark.parametrize(
    "flt",
    [
        Filter(),
        Filter(page=4),
        Filter(free_text_query=""),
        Filter(free_text_query="foo & bar=baz"),
        Filter(structured_query={"installation.code": "acme-prod", "state": "done"}),
        Filter(
            structured_query={"status": "active"},
            free_text_query="release 1.2",
            limit=50,
            page=3,
            sort={"deployedAt": "desc", "version": "asc"},
        ),
    ],
)
def test_round_trip_through_http_query_string(flt) -> None:
    request = httpx.Request("GET", "https://verso.example.com/api/deployments", params=encode_filter(flt))
    decoded = decode_filter(request.url.params)

    assert decoded == flt
    assert list((decoded.sort or {}).items()) == list((flt.sort or {}).items())


def test_decode_accepts_mapping_and_ignores_unknown_params() -> None:
    flt = decode_filter({"q[service]": "7", "p": "2", "utm_source": "mail"})
    assert flt == Filter(structured_query={"service": "7"}, page=2)


def test_decode_raw_query_string_unescapes_values() -> None:
    flt = decode_filter("?q%5Binstallation.code%5D=acme-prod&qs=foo+%26+bar&qs2=&p=2")

    assert flt.structured_query == {"installation.code": "acme-prod"}
    assert flt.free_text_query == "foo & bar"
    assert flt.page == 2


@pytest.mark.parametrize("query", ["l=abc", "p=0", "o[name]=sideways"])
def test_decode_rejects_malformed_values(query) -> None:
    with pytest.raises(InvalidFilter):
        decode_filter(query)
