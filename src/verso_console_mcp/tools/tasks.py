# Verso Console MCP Server
# File: tools/tasks.py
# Version: v1
#
# NOTE: This module is the single place where we define the logic that is
# exposed as MCP tools. The stdio transport simply calls
# `register_tools(server)` to wire these up.

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional

from ..client import ConsulClient, VersoClient
from ..config import VersoConfig
from ..errors import VersoError
from ..filters import encode_filter
from ..models import Filter, ResourceEnvelope
from ..resources import RESOURCES, encode_record, get_resource
from ..table import TableFetcher, TableFetcherContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers (env flags, error shape, caps)
# ---------------------------------------------------------------------------


def _env_flag(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _make_error(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Small, LLM-friendly error shape used by tools and diagnostics."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return err


def _error_result(exc: Exception, **details: Any) -> Dict[str, Any]:
    code = getattr(exc, "code", "INVALID_ARGUMENT")
    return {
        "status": "error",
        "summary": f"Request failed: {exc}",
        "error": _make_error(code, str(exc), details or None),
    }


def _cap_int(value: int, cap: int, min_value: int = 1) -> tuple[int, bool]:
    """Clamp an integer to [min_value, cap]. Returns (effective, cap_applied)."""
    try:
        v = int(value)
    except Exception:
        v = min_value

    if v < min_value:
        v = min_value
        return v, True

    if cap > 0 and v > cap:
        return cap, True

    return v, False


# ---------------------------------------------------------------------------
# In-memory backend (mock mode)
# ---------------------------------------------------------------------------

_MISSING = object()


def _lookup(item: Dict[str, Any], path: str) -> Any:
    """Resolve a dotted field path such as ``installation.code``."""
    current: Any = item
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _scalars(value: Any) -> List[Any]:
    if isinstance(value, dict):
        out: List[Any] = []
        for v in value.values():
            out.extend(_scalars(v))
        return out
    if isinstance(value, list):
        out = []
        for v in value:
            out.extend(_scalars(v))
        return out
    return [value]


def _matches_structured(item: Dict[str, Any], query: Dict[str, str]) -> bool:
    for path, expected in query.items():
        value = _lookup(item, path)
        if value is _MISSING or value is None or str(value) != expected:
            return False
    return True


def _matches_text(item: Dict[str, Any], text: str) -> bool:
    needle = text.lower()
    return any(
        v is not None and needle in str(v).lower() for v in _scalars(item)
    )


def _sort_key(value: Any) -> tuple:
    """Key that orders any mix of JSON values; numbers sort before strings."""
    if isinstance(value, (bool, int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, json.dumps(value, sort_keys=True, default=str))


def _sort_items(items: List[Dict[str, Any]], sort: Dict[str, str]) -> List[Dict[str, Any]]:
    """Multi-key stable sort; the first key in ``sort`` is the primary key.

    Nulls and missing values always sort last.
    """
    out = list(items)
    for path, direction in reversed(list(sort.items())):
        present = [i for i in out if _lookup(i, path) not in (None, _MISSING)]
        absent = [i for i in out if _lookup(i, path) in (None, _MISSING)]
        present.sort(
            key=lambda i: _sort_key(_lookup(i, path)), reverse=(direction == "desc")
        )
        out = present + absent
    return out


def _mock_deployments() -> List[Dict[str, Any]]:
    installations = ["acme-prod", "acme-stage", "globex-prod"]
    rows: List[Dict[str, Any]] = []
    for n in range(1, 13):
        rows.append(
            {
                "id": n,
                "deployedAt": f"2024-03-{n:02d}T10:00:00Z",
                "version": f"1.{n // 4}.{n % 4}",
                "service": (n % 3) + 1,
                "installation": installations[n % 3],
                "status": "active" if n % 4 else "rolled_back",
            }
        )
    # Backend did not record the deployed version for this one.
    rows.append(
        {
            "id": None,
            "deployedAt": "2024-03-13T08:30:00Z",
            "version": None,
            "service": None,
            "installation": "acme-prod",
            "status": "unknown",
        }
    )
    return rows


class MockVersoClient:
    """Small in-memory stand-in for VersoClient.

    Activated when VERSO_MOCK_MODE is truthy. It applies Filters itself:
    structured query entries are exact string matches on (dotted) field paths,
    the free-text query is a case-insensitive substring match on any value,
    and both combine with AND or OR according to ``config.query_combination``.
    """

    def __init__(self, config: Optional[VersoConfig] = None) -> None:
        self.config = config or VersoConfig.from_env()

        self._data: Dict[str, List[Dict[str, Any]]] = {
            "deployments": _mock_deployments(),
            "services": [
                {"id": 1, "deployedAt": "2024-03-12T10:00:00Z", "version": "1.3.0", "service": 1},
                {"id": 2, "deployedAt": "2024-03-10T10:00:00Z", "version": "1.2.2", "service": 2},
                {"id": 3, "deployedAt": "2024-03-11T10:00:00Z", "version": None, "service": 3},
            ],
            "installations": [
                {"value": "acme-prod", "label": "ACME Production"},
                {"value": "acme-stage", "label": "ACME Staging"},
                {"value": "globex-prod", "label": "Globex Production"},
                {"value": None, "label": None},
            ],
            "customizations": [
                {
                    "id": 101,
                    "code": "ACME-INV-01",
                    "name": "Invoice layout",
                    "createdAt": "2023-11-02T09:00:00Z",
                    "updatedAt": "2024-01-15T12:00:00Z",
                    "notes": None,
                    "state": {"code": "done"},
                    "epic": None,
                    "category": "billing",
                    "product": {"id": 7, "name": "Ledger"},
                    "deadline": "2024-02-01",
                    "updates": [],
                    "old_code": None,
                    "installation": {"code": "acme-prod"},
                },
                {
                    "id": 102,
                    "code": "GLX-EXP-02",
                    "name": "Export to SFTP",
                    "createdAt": "2024-01-20T09:00:00Z",
                    "updatedAt": "2024-02-28T16:45:00Z",
                    "notes": "Waiting for customer keys.",
                    "state": {"code": "in_progress"},
                    "epic": "EXP",
                    "category": "integration",
                    "product": None,
                    "deadline": None,
                    "updates": [{"at": "2024-02-28", "text": "keys requested"}],
                    "old_code": "EXP-2",
                    "installation": {"code": "globex-prod"},
                },
            ],
            "releases": [
                {"id": 1, "name": "2024.1", "services": [1, 2]},
                {"id": 2, "name": "2024.2", "services": [1, 2, 3], "hotfix": True},
            ],
            "features": [
                {"key": "new-dashboard", "enabled": True},
                {"key": "bulk-export", "enabled": False, "owner": "integration"},
            ],
        }

        self._services: Dict[tuple[str, str, str], Dict[str, Any]] = {
            ("acme-prod", "billing", "dc1"): {
                "ID": "billing-1",
                "Service": "billing",
                "Address": "10.0.1.15",
                "Port": 8080,
                "Datacenter": "dc1",
                "Tags": ["acme-prod", "v1.3.0"],
            },
        }

    async def ping(self) -> bool:
        return True

    def _select(self, kind: str, flt: Filter) -> List[Dict[str, Any]]:
        items = list(self._data.get(kind, []))

        q = flt.structured_query
        text = flt.free_text_query
        if q and text:
            if self.config.query_combination == "or":
                items = [i for i in items if _matches_structured(i, q) or _matches_text(i, text)]
            else:
                items = [i for i in items if _matches_structured(i, q) and _matches_text(i, text)]
        elif q:
            items = [i for i in items if _matches_structured(i, q)]
        elif text:
            items = [i for i in items if _matches_text(i, text)]

        if flt.sort:
            items = _sort_items(items, flt.sort)
        return items

    async def query(self, kind: str, flt: Optional[Filter] = None) -> ResourceEnvelope[Any]:
        resource = get_resource(kind)
        flt = flt or Filter()

        items = self._select(resource.name, flt)
        limit = flt.limit or self.config.default_limit
        page = flt.resolved_page
        start = (page - 1) * limit

        payload = {
            "data": items[start:start + limit],
            "meta": {"pagination": {"page": page, "total": len(items)}},
        }
        return ResourceEnvelope.from_payload(payload, resource.decode)

    async def get_service(self, id: str, installation: str, service: str, dc: str) -> Any:
        found = self._services.get((installation, service, dc))
        if found is None:
            return {}
        return dict(found, RequestedID=id)


def _make_client(cfg: Optional[VersoConfig] = None) -> VersoClient:
    """Create a VersoClient from environment variables.

    If VERSO_MOCK_MODE is truthy, the in-process mock backend is returned
    instead of a real HTTP client.

    Note: Callers invoke this with *no arguments* so unit tests can replace
    _make_client with a no-arg lambda.
    """
    cfg = cfg or VersoConfig.from_env()

    if cfg.mock_mode or _env_flag("VERSO_MOCK_MODE", False):
        return MockVersoClient(config=cfg)  # type: ignore[return-value]

    return VersoClient(config=cfg)


def _make_consul_client(cfg: Optional[VersoConfig] = None) -> ConsulClient:
    cfg = cfg or VersoConfig.from_env()

    if cfg.mock_mode or _env_flag("VERSO_MOCK_MODE", False):
        return MockVersoClient(config=cfg)  # type: ignore[return-value]

    return ConsulClient(config=cfg)


# ---------------------------------------------------------------------------
# Core async tasks (library-style)
# ---------------------------------------------------------------------------


async def ping() -> Dict[str, Any]:
    client = _make_client()
    ok = await client.ping()
    return {"ok": bool(ok)}


async def list_resource(
    kind: str,
    q: Optional[Dict[str, str]] = None,
    qs: Optional[str] = None,
    limit: Optional[int] = None,
    page: int = 1,
    sort: Optional[str] = None,
    order: Optional[str] = None,
) -> Dict[str, Any]:
    """Fetch one page of a resource collection from table-view style arguments."""
    cfg = VersoConfig.from_env()

    requested_limit = limit if limit is not None else cfg.default_limit
    effective_limit, cap_applied = _cap_int(requested_limit, cfg.max_limit, min_value=1)

    try:
        resource = get_resource(kind)
        client = _make_client()

        async def fetch(flt: Filter) -> ResourceEnvelope[Any]:
            return await client.query(resource.name, flt)

        ctx = TableFetcherContext(
            limit=effective_limit,
            q=dict(q) if q else None,
            qs=qs or None,
            page=page,
            sort=sort or None,
            order=order or None,  # type: ignore[arg-type]
        )
        fetcher: TableFetcher[Any] = TableFetcher(fetch=fetch, ctx=ctx, strict=cfg.strict_state)
        await fetcher.refresh()
    except (VersoError, ValueError) as exc:
        logger.warning("list_resource(%s) failed: %s", kind, exc)
        return _error_result(exc, kind=kind)

    meta = fetcher.meta
    items = [encode_record(item) for item in fetcher.data]

    return {
        "status": "ok",
        "summary": (
            f"Found {meta.total} {resource.name}; page {meta.page} "
            f"shows {len(items)}."
        ),
        "data": items,
        "meta": {
            "kind": resource.name,
            "pagination": {"page": meta.page, "total": meta.total},
            "has_next_page": fetcher.has_next_page,
            "has_previous_page": fetcher.has_previous_page,
            "filter": dict(encode_filter(fetcher.last_filter)),
            "context": fetcher.ctx.to_dict(),
            "requested_limit": requested_limit,
            "effective_limit": effective_limit,
            "cap_limit": cfg.max_limit,
            "cap_applied": bool(cap_applied),
        },
    }


async def get_consul_service(id: str, installation: str, service: str, dc: str) -> Dict[str, Any]:
    try:
        client = _make_consul_client()
        result = await client.get_service(
            id=id, installation=installation, service=service, dc=dc
        )
    except VersoError as exc:
        logger.warning("Consul lookup for %s/%s/%s failed: %s", installation, service, dc, exc)
        return _error_result(exc, service=service, installation=installation, dc=dc)

    return {
        "status": "ok",
        "summary": f"Consul lookup for service '{service}' in {installation}/{dc}.",
        "data": result,
        "meta": {"id": id, "installation": installation, "service": service, "dc": dc},
    }


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def _collect_config_info() -> Dict[str, Any]:
    """Snapshot of the effective configuration."""
    cfg = VersoConfig.from_env()
    return {
        "base_url": cfg.base_url,
        "consul_url": cfg.consul_url,
        "mock_mode": bool(cfg.mock_mode or _env_flag("VERSO_MOCK_MODE", False)),
        "verify_tls": bool(cfg.verify_tls),
        "timeout_seconds": cfg.timeout_seconds,
        "limits": {
            "default_limit": cfg.default_limit,
            "max_limit": cfg.max_limit,
        },
        "query_combination": cfg.query_combination,
        "strict_state": cfg.strict_state,
    }


async def diagnostics() -> Dict[str, Any]:
    started = time.time()
    config_info = _collect_config_info()

    checks: List[Dict[str, Any]] = []
    overall_ok = True

    # Client init
    t0 = time.time()
    try:
        client = _make_client()
        checks.append(
            {"name": "client_init", "ok": True, "error": None, "elapsed_ms": int((time.time() - t0) * 1000)}
        )
    except Exception as exc:  # pragma: no cover
        checks.append(
            {
                "name": "client_init",
                "ok": False,
                "error": _make_error("CONFIG_ERROR", str(exc)),
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )
        return {
            "ok": False,
            "mock_mode": config_info["mock_mode"],
            "config": config_info,
            "checks": checks,
            "meta": {"elapsed_ms": int((time.time() - started) * 1000)},
        }

    # Ping
    t0 = time.time()
    ok_ping = await client.ping()
    checks.append(
        {
            "name": "ping",
            "ok": bool(ok_ping),
            "error": None if ok_ping else _make_error("CONFIG_ERROR", "No Verso base URL configured."),
            "elapsed_ms": int((time.time() - t0) * 1000),
        }
    )
    overall_ok = overall_ok and bool(ok_ping)

    # One single-item query per resource kind
    for name in RESOURCES:
        t0 = time.time()
        try:
            envelope = await client.query(name, Filter(limit=1))
            checks.append(
                {
                    "name": f"query_{name}",
                    "ok": True,
                    "total": envelope.meta.total,
                    "error": None,
                    "elapsed_ms": int((time.time() - t0) * 1000),
                }
            )
        except VersoError as exc:
            overall_ok = False
            checks.append(
                {
                    "name": f"query_{name}",
                    "ok": False,
                    "error": _make_error(exc.code, str(exc)),
                    "elapsed_ms": int((time.time() - t0) * 1000),
                }
            )

    return {
        "ok": overall_ok,
        "mock_mode": config_info["mock_mode"],
        "config": config_info,
        "checks": checks,
        "meta": {"elapsed_ms": int((time.time() - started) * 1000)},
    }


# ---------------------------------------------------------------------------
# MCP tool registration
# ---------------------------------------------------------------------------


def _make_list_tool(kind: str):
    async def list_tool(
        q: Optional[Dict[str, str]] = None,
        qs: Optional[str] = None,
        limit: Optional[int] = None,
        page: int = 1,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await list_resource(
            kind, q=q, qs=qs, limit=limit, page=page, sort=sort, order=order
        )

    list_tool.__name__ = f"mcp_list_{kind}"
    return list_tool


def register_tools(server: Any) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(name="verso_ping", description="Basic health check for the Verso Console MCP server.")
    async def mcp_ping() -> Dict[str, Any]:
        return await ping()

    for kind in RESOURCES:
        server.tool(
            name=f"verso_list_{kind}",
            description=(
                f"List Verso {kind} one page at a time. q: exact field matches, "
                "qs: free text, page/limit: paging, sort + order ('asc'/'desc'): one sort column."
            ),
        )(_make_list_tool(kind))

    @server.tool(
        name="consul_get_service",
        description="Look up a service in Consul by service id, installation, service name and datacenter.",
    )
    async def mcp_consul_get_service(id: str, installation: str, service: str, dc: str) -> Dict[str, Any]:
        return await get_consul_service(id=id, installation=installation, service=service, dc=dc)

    @server.tool(
        name="verso_diagnostics",
        description="Run health checks against the Verso backend (one small query per resource kind).",
    )
    async def mcp_diagnostics() -> Dict[str, Any]:
        return await diagnostics()
