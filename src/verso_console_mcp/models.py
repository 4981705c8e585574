# Verso Console MCP Server
# File: models.py
# Version: v1

"""Domain models for the Verso resource query contract.

Request side: :class:`Filter`. Response side: :class:`ResponseMetadata`
wrapped together with decoded records in a :class:`ResourceEnvelope`.

Record fields that the backend may legitimately not know are ``Optional``.
Those keys are still required in the payload: ``null`` decodes to ``None``
and is written back as ``null``, while a missing key is a :class:`SchemaError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Literal, Optional, TypeVar

from .errors import InvalidFilter, SchemaError

SortOrder = Literal["asc", "desc"]
SORT_ORDERS = ("asc", "desc")

# Loosely specified payloads (releases, features) stay open records.
OpenRecord = Dict[str, Any]

T = TypeVar("T")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------


@dataclass
class Filter:
    """Request-side descriptor for a filtered, paginated, sorted query.

    Every field is optional. ``sort`` is an ordered mapping: the first key is
    the primary sort key. Empty mappings are normalised to ``None`` since they
    carry no constraint and have no wire representation.
    """

    structured_query: Optional[Dict[str, str]] = None
    free_text_query: Optional[str] = None
    limit: Optional[int] = None
    page: Optional[int] = None
    sort: Optional[Dict[str, SortOrder]] = None

    def __post_init__(self) -> None:
        if self.structured_query is not None:
            if not isinstance(self.structured_query, dict):
                raise InvalidFilter("structured_query must be a mapping of str to str.")
            for key, value in self.structured_query.items():
                if not isinstance(key, str) or not key or not isinstance(value, str):
                    raise InvalidFilter(
                        "structured_query entries must map non-empty field names to "
                        f"strings, got {key!r}: {value!r}."
                    )
            self.structured_query = dict(self.structured_query) or None

        if self.free_text_query is not None and not isinstance(self.free_text_query, str):
            raise InvalidFilter("free_text_query must be a string.")

        for name in ("limit", "page"):
            value = getattr(self, name)
            if value is None:
                continue
            if not _is_int(value) or value < 1:
                raise InvalidFilter(f"{name} must be a positive integer, got {value!r}.")

        if self.sort is not None:
            if not isinstance(self.sort, dict):
                raise InvalidFilter("sort must be a mapping of field name to 'asc'/'desc'.")
            for key, direction in self.sort.items():
                if not isinstance(key, str) or not key or direction not in SORT_ORDERS:
                    raise InvalidFilter(
                        f"Invalid sort entry {key!r}: {direction!r}; expected 'asc' or 'desc'."
                    )
            self.sort = dict(self.sort) or None

    @property
    def resolved_page(self) -> int:
        return self.page or 1

    def __eq__(self, other: object) -> bool:
        # Sort key order is precedence, so it takes part in equality.
        if not isinstance(other, Filter):
            return NotImplemented
        return (
            self.structured_query == other.structured_query
            and self.free_text_query == other.free_text_query
            and self.limit == other.limit
            and self.page == other.page
            and list((self.sort or {}).items()) == list((other.sort or {}).items())
        )


# ---------------------------------------------------------------------------
# Response side
# ---------------------------------------------------------------------------


@dataclass
class ResponseMetadata:
    """Pagination envelope present on every collection response."""

    page: int
    total: int

    @classmethod
    def from_payload(cls, meta: Any) -> "ResponseMetadata":
        """Decode the wire shape ``{"pagination": {"page": .., "total": ..}}``."""
        if not isinstance(meta, dict):
            raise SchemaError(f"Response 'meta' must be an object, got {type(meta).__name__}.")
        pagination = meta.get("pagination")
        if not isinstance(pagination, dict):
            raise SchemaError("Response 'meta.pagination' is missing or not an object.")

        page = pagination.get("page")
        total = pagination.get("total")
        if not _is_int(page) or page < 1:
            raise SchemaError(f"meta.pagination.page must be a positive integer, got {page!r}.")
        if not _is_int(total) or total < 0:
            raise SchemaError(
                f"meta.pagination.total must be a non-negative integer, got {total!r}."
            )
        return cls(page=page, total=total)

    def to_dict(self) -> Dict[str, Any]:
        return {"pagination": {"page": self.page, "total": self.total}}


@dataclass
class ResourceEnvelope(Generic[T]):
    """Result data paired with pagination metadata."""

    data: List[T]
    meta: ResponseMetadata

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        decode_item: Callable[[Any], T],
    ) -> "ResourceEnvelope[T]":
        if not isinstance(payload, dict):
            raise SchemaError(
                f"Expected a JSON object envelope, got {type(payload).__name__}."
            )
        if "data" not in payload or not isinstance(payload["data"], list):
            raise SchemaError("Envelope 'data' is missing or not a list.")
        if "meta" not in payload:
            raise SchemaError("Envelope 'meta' is missing.")

        meta = ResponseMetadata.from_payload(payload["meta"])
        data = [decode_item(item) for item in payload["data"]]
        return cls(data=data, meta=meta)


# ---------------------------------------------------------------------------
# Record decoding helpers
# ---------------------------------------------------------------------------


def _require_object(item: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(item, dict):
        raise SchemaError(f"{kind} item must be a JSON object, got {type(item).__name__}.")
    return item


def _required(item: Dict[str, Any], key: str, kind: str) -> Any:
    if key not in item:
        raise SchemaError(f"{kind} item is missing required field '{key}'.")
    return item[key]


def _int_or_none(item: Dict[str, Any], key: str, kind: str) -> Optional[int]:
    value = _required(item, key, kind)
    if value is not None and not _is_int(value):
        raise SchemaError(f"{kind}.{key} must be an integer or null, got {value!r}.")
    return value


def _str_or_none(item: Dict[str, Any], key: str, kind: str) -> Optional[str]:
    value = _required(item, key, kind)
    if value is not None and not isinstance(value, str):
        raise SchemaError(f"{kind}.{key} must be a string or null, got {value!r}.")
    return value


def _str(item: Dict[str, Any], key: str, kind: str) -> str:
    value = _required(item, key, kind)
    if not isinstance(value, str):
        raise SchemaError(f"{kind}.{key} must be a string, got {value!r}.")
    return value


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class Deployment:
    """A single deployment of a service version to an installation."""

    id: Optional[int]
    deployed_at: str
    version: Optional[str]
    service: Optional[int]
    installation: str

    # Raw JSON payload from the API, for debugging / advanced use.
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_payload(cls, item: Any) -> "Deployment":
        obj = _require_object(item, "Deployment")
        return cls(
            id=_int_or_none(obj, "id", "Deployment"),
            deployed_at=_str(obj, "deployedAt", "Deployment"),
            version=_str_or_none(obj, "version", "Deployment"),
            service=_int_or_none(obj, "service", "Deployment"),
            installation=_str(obj, "installation", "Deployment"),
            raw=obj,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deployedAt": self.deployed_at,
            "version": self.version,
            "service": self.service,
            "installation": self.installation,
        }


@dataclass
class Service:
    """A service as last deployed."""

    id: Optional[int]
    deployed_at: str
    version: Optional[str]
    service: Optional[int]

    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_payload(cls, item: Any) -> "Service":
        obj = _require_object(item, "Service")
        return cls(
            id=_int_or_none(obj, "id", "Service"),
            deployed_at=_str(obj, "deployedAt", "Service"),
            version=_str_or_none(obj, "version", "Service"),
            service=_int_or_none(obj, "service", "Service"),
            raw=obj,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deployedAt": self.deployed_at,
            "version": self.version,
            "service": self.service,
        }


@dataclass
class Installation:
    """An installation as a value/label option pair."""

    value: Optional[str]
    label: Optional[str]

    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_payload(cls, item: Any) -> "Installation":
        obj = _require_object(item, "Installation")
        return cls(
            value=_str_or_none(obj, "value", "Installation"),
            label=_str_or_none(obj, "label", "Installation"),
            raw=obj,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label}


@dataclass
class CustomizationInstallation:
    code: str


@dataclass
class Customization:
    """A customer customization.

    ``state``, ``epic``, ``category``, ``product``, ``deadline``, ``updates``
    and ``old_code`` hold whatever JSON value the backend sends.
    """

    id: Optional[int]
    code: Optional[str]
    name: Optional[str]
    created_at: str
    updated_at: str
    notes: Optional[str]
    state: Any
    epic: Any
    category: Any
    product: Any
    deadline: Any
    updates: Any
    old_code: Any
    installation: CustomizationInstallation

    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    _LOOSE_FIELDS = ("state", "epic", "category", "product", "deadline", "updates", "old_code")

    @classmethod
    def from_payload(cls, item: Any) -> "Customization":
        kind = "Customization"
        obj = _require_object(item, kind)

        installation = _required(obj, "installation", kind)
        if not isinstance(installation, dict):
            raise SchemaError(f"{kind}.installation must be an object, got {installation!r}.")

        loose = {name: _required(obj, name, kind) for name in cls._LOOSE_FIELDS}

        return cls(
            id=_int_or_none(obj, "id", kind),
            code=_str_or_none(obj, "code", kind),
            name=_str_or_none(obj, "name", kind),
            created_at=_str(obj, "createdAt", kind),
            updated_at=_str(obj, "updatedAt", kind),
            notes=_str_or_none(obj, "notes", kind),
            installation=CustomizationInstallation(
                code=_str(installation, "code", f"{kind}.installation")
            ),
            raw=obj,
            **loose,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "notes": self.notes,
        }
        for name in self._LOOSE_FIELDS:
            out[name] = getattr(self, name)
        out["installation"] = {"code": self.installation.code}
        return out


def decode_open_record(item: Any) -> OpenRecord:
    """Releases and features: any JSON object, passed through unchanged."""
    return dict(_require_object(item, "Record"))
