# Verso Console MCP Server
# File: config.py
# Version: v1

"""Configuration loading for the Verso Console MCP Server."""

from __future__ import annotations

from dataclasses import dataclass
import os

QUERY_COMBINATIONS = ("and", "or")


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_choice_env(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass
class VersoConfig:
    """Settings for talking to the Verso backend and the Consul lookup.

    ``query_combination`` decides how an in-process backend combines a
    structured query with a free-text query (``and`` / ``or``). Remote
    backends apply their own rule; the value is reported in diagnostics.
    """

    base_url: str | None
    consul_url: str | None
    mock_mode: bool

    verify_tls: bool = True
    timeout_seconds: int = 30

    # Page size guardrails
    default_limit: int = 20
    max_limit: int = 500

    query_combination: str = "and"
    strict_state: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "VersoConfig":
        """Create configuration from environment variables."""
        base_url = os.getenv("VERSO_BASE_URL") or None
        consul_url = os.getenv("CONSUL_BASE_URL") or base_url

        mock_mode = _parse_bool_env("VERSO_MOCK_MODE", default=False)
        verify_tls = _parse_bool_env("VERSO_VERIFY_TLS", default=True)
        strict_state = _parse_bool_env("VERSO_STRICT_STATE", default=True)

        timeout_seconds = _parse_int_env(
            "VERSO_TIMEOUT_SECONDS", default=30, min_value=1, max_value=600
        )
        default_limit = _parse_int_env(
            "VERSO_DEFAULT_LIMIT", default=20, min_value=1, max_value=1000
        )
        max_limit = _parse_int_env(
            "VERSO_MAX_LIMIT", default=500, min_value=1, max_value=10000
        )

        query_combination = _parse_choice_env(
            "VERSO_QUERY_COMBINATION", QUERY_COMBINATIONS, default="and"
        )
        log_level = (os.getenv("VERSO_LOG_LEVEL") or "WARNING").strip().upper()

        return cls(
            base_url=base_url,
            consul_url=consul_url,
            mock_mode=mock_mode,
            verify_tls=verify_tls,
            timeout_seconds=timeout_seconds,
            default_limit=default_limit,
            max_limit=max_limit,
            query_combination=query_combination,
            strict_state=strict_state,
            log_level=log_level,
        )
