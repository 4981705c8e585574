# Verso Console MCP Server
# File: __init__.py
# Version: v1

"""Top-level package for the Verso Console MCP Server."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]


def _resolve_version() -> str:
    """Resolve installed distribution version from package metadata."""
    try:
        return version("verso-console-mcp")
    except PackageNotFoundError:
        # Running from a source tree without installed metadata.
        return "0.1.0"


__version__ = _resolve_version()
