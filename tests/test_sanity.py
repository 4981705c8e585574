# Verso Console MCP Server
# File: tests/test_sanity.py
# Version: v1

"""Basic sanity tests for configuration and client wiring."""

from verso_console_mcp.config import VersoConfig
from verso_console_mcp.client import VersoClient


def test_config_from_env_minimal(monkeypatch) -> None:
    monkeypatch.delenv("VERSO_BASE_URL", raising=False)
    monkeypatch.delenv("CONSUL_BASE_URL", raising=False)
    config = VersoConfig.from_env()
    assert config is not None
    assert config.base_url is None
    assert config.default_limit == 20
    assert config.query_combination == "and"
    assert config.strict_state is True


def test_config_clamps_and_falls_back(monkeypatch) -> None:
    monkeypatch.setenv("VERSO_BASE_URL", "https://verso.example.com")
    monkeypatch.delenv("CONSUL_BASE_URL", raising=False)
    monkeypatch.setenv("VERSO_MAX_LIMIT", "999999")
    monkeypatch.setenv("VERSO_DEFAULT_LIMIT", "not-a-number")
    monkeypatch.setenv("VERSO_QUERY_COMBINATION", "XOR")

    config = VersoConfig.from_env()
    assert config.max_limit == 10000
    assert config.default_limit == 20
    assert config.query_combination == "and"
    # Consul lookup defaults to the Verso host.
    assert config.consul_url == "https://verso.example.com"


def test_client_ping_runs() -> None:
    config = VersoConfig.from_env()
    client = VersoClient(config=config)

    # ping should always return a boolean
    # even if no base URL is configured yet.
    import asyncio

    result = asyncio.run(client.ping())
    assert isinstance(result, bool)
