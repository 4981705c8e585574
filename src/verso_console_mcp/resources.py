# Verso Console MCP Server
# File: resources.py
# Version: v1

"""Registry of Verso resource kinds.

All kinds share the same contract (Filter in, envelope out); they differ
only in the endpoint path and in how a single item is decoded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict

from .models import (
    Customization,
    Deployment,
    Installation,
    Service,
    decode_open_record,
)


@dataclass(frozen=True)
class ResourceKind:
    name: str
    path: str
    decode: Callable[[Any], Any]


def encode_record(item: Any) -> Dict[str, Any]:
    """Wire-shaped dict for a decoded record (open records pass through)."""
    to_dict = getattr(item, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(item)


RESOURCES: Dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (
        ResourceKind("deployments", "/api/deployments", Deployment.from_payload),
        ResourceKind("releases", "/api/releases", decode_open_record),
        ResourceKind("services", "/api/services", Service.from_payload),
        ResourceKind("installations", "/api/installations", Installation.from_payload),
        ResourceKind("customizations", "/api/customizations", Customization.from_payload),
        ResourceKind("features", "/api/features", decode_open_record),
    )
}


def get_resource(name: str) -> ResourceKind:
    try:
        return RESOURCES[name]
    except KeyError:
        raise ValueError(
            f"Unknown resource kind '{name}'. Expected one of: {', '.join(RESOURCES)}."
        ) from None
