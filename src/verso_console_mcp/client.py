# Verso Console MCP Server
# File: client.py
# Version: v1
"""High-level async clients for the Verso and Consul HTTP APIs.

Implements:

- get_deployments() / get_releases() / get_services() / get_installations()
  / get_customizations() / get_features(), all via the generic query()
- ConsulClient.get_service() for the service/installation/datacenter lookup

Every collection call takes a Filter, sends it as query parameters and
decodes the ``{"data": [...], "meta": {"pagination": {...}}}`` envelope.
No retries and no caching happen at this layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import httpx
from httpx import HTTPStatusError, RequestError

from .config import VersoConfig
from .errors import SchemaError, TransportError
from .filters import encode_filter
from .models import (
    Customization,
    Deployment,
    Filter,
    Installation,
    OpenRecord,
    ResourceEnvelope,
    Service,
)
from .resources import ResourceKind, get_resource

logger = logging.getLogger(__name__)

Params = Union[Dict[str, Any], Sequence[Tuple[str, str]]]


async def _get_json(
    config: VersoConfig,
    url: str,
    params: Optional[Params],
    what: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """GET ``url`` and return the decoded JSON body.

    Network failures and non-2xx answers raise TransportError, a body that is
    not JSON raises SchemaError.
    """
    headers = {"Accept": "application/json"}

    async with httpx.AsyncClient(
        timeout=float(config.timeout_seconds),
        verify=config.verify_tls,
        transport=transport,
    ) as http_client:
        try:
            response = await http_client.get(url, headers=headers, params=params or None)
        except RequestError as exc:
            raise TransportError(
                f"Error calling {what} at '{url}': {exc}", url=url
            ) from exc

        try:
            response.raise_for_status()
        except HTTPStatusError as exc:
            status = response.status_code
            body_preview = response.text[:500]
            raise TransportError(
                f"Failed to fetch {what} from '{url}' (HTTP {status}). "
                f"Response snippet: {body_preview}",
                url=url,
                status_code=status,
            ) from exc

    try:
        return response.json()
    except ValueError as exc:
        raise SchemaError(
            f"Response from '{url}' for {what} is not valid JSON: "
            f"{response.text[:200]!r}"
        ) from exc


@dataclass
class VersoClient:
    """Wrapper around the Verso collection endpoints."""

    config: VersoConfig
    transport: Optional[httpx.AsyncBaseTransport] = None

    # ------------------------------------------------------------------
    # Basic health
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """Lightweight health check: is a base URL configured?"""
        return bool(self.config.base_url)

    # ------------------------------------------------------------------
    # Generic collection query
    # ------------------------------------------------------------------

    async def query(
        self,
        kind: Union[str, ResourceKind],
        flt: Optional[Filter] = None,
    ) -> ResourceEnvelope[Any]:
        """Run ``flt`` against one resource kind and decode the envelope.

        The decoded ``meta.page`` must equal the Filter's resolved page and
        ``data`` may not exceed the requested limit; otherwise the payload is
        rejected with SchemaError.
        """
        resource = get_resource(kind) if isinstance(kind, str) else kind
        flt = flt or Filter()

        if not self.config.base_url:
            raise TransportError(
                "VERSO_BASE_URL is not set. "
                f"Please configure it before querying {resource.name}."
            )

        url = f"{self.config.base_url.rstrip('/')}{resource.path}"
        params = encode_filter(flt)
        logger.debug("GET %s params=%s", url, params)

        payload = await _get_json(
            self.config, url, params, f"Verso {resource.name}", transport=self.transport
        )

        try:
            envelope = ResourceEnvelope.from_payload(payload, resource.decode)
        except SchemaError as exc:
            raise SchemaError(f"Invalid {resource.name} payload from '{url}': {exc}") from exc

        if envelope.meta.page != flt.resolved_page:
            raise SchemaError(
                f"{resource.name}: response page {envelope.meta.page} does not match "
                f"requested page {flt.resolved_page}."
            )
        if flt.limit is not None and len(envelope.data) > flt.limit:
            raise SchemaError(
                f"{resource.name}: response has {len(envelope.data)} items, "
                f"more than the requested limit {flt.limit}."
            )

        return envelope

    # ------------------------------------------------------------------
    # Per-kind shortcuts
    # ------------------------------------------------------------------

    async def get_deployments(self, flt: Optional[Filter] = None) -> ResourceEnvelope[Deployment]:
        return await self.query("deployments", flt)

    async def get_releases(self, flt: Optional[Filter] = None) -> ResourceEnvelope[OpenRecord]:
        return await self.query("releases", flt)

    async def get_services(self, flt: Optional[Filter] = None) -> ResourceEnvelope[Service]:
        return await self.query("services", flt)

    async def get_installations(
        self, flt: Optional[Filter] = None
    ) -> ResourceEnvelope[Installation]:
        return await self.query("installations", flt)

    async def get_customizations(
        self, flt: Optional[Filter] = None
    ) -> ResourceEnvelope[Customization]:
        return await self.query("customizations", flt)

    async def get_features(self, flt: Optional[Filter] = None) -> ResourceEnvelope[OpenRecord]:
        return await self.query("features", flt)


@dataclass
class ConsulClient:
    """Service lookup by service id, installation, service name and datacenter.

    The result shape is not part of any contract and is returned as decoded.
    """

    config: VersoConfig
    transport: Optional[httpx.AsyncBaseTransport] = None

    async def get_service(self, id: str, installation: str, service: str, dc: str) -> Any:
        if not self.config.consul_url:
            raise TransportError(
                "CONSUL_BASE_URL (or VERSO_BASE_URL) is not set. "
                "Please configure it before calling get_service()."
            )

        url = f"{self.config.consul_url.rstrip('/')}/api/consul/service"
        params: List[Tuple[str, str]] = [
            ("id", str(id)),
            ("installation", str(installation)),
            ("service", str(service)),
            ("dc", str(dc)),
        ]
        return await _get_json(
            self.config, url, params, f"Consul service '{service}'", transport=self.transport
        )
