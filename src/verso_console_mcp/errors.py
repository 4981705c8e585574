# Verso Console MCP Server
# File: errors.py
# Version: v1

"""Error taxonomy shared by the client, the filter codec and table views.

None of these are retried automatically; they are reported to the caller.
"""

from __future__ import annotations

from typing import Optional


class VersoError(RuntimeError):
    """Base class for all errors raised by this package."""

    code = "VERSO_ERROR"


class TransportError(VersoError):
    """The backend could not be reached or answered with a non-2xx status."""

    code = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SchemaError(VersoError):
    """A backend payload does not match the expected resource shape."""

    code = "SCHEMA_ERROR"


class InvalidState(VersoError):
    """A table context violates the sort/order co-nullity invariant."""

    code = "INVALID_STATE"


class OutOfRange(VersoError):
    """Pagination navigation past the first or last page."""

    code = "OUT_OF_RANGE"


class InvalidFilter(VersoError, ValueError):
    """A Filter (or its wire form) is structurally invalid."""

    code = "INVALID_FILTER"
