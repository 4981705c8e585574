# Verso Console MCP Server
# File: transports/stdio_server.py
# Version: v1

"""STDIO entrypoint for the Verso Console MCP server.

This is the script behind the ``verso-console-mcp`` console command.

It:

- configures logging on stderr (stdout carries the MCP protocol),
- creates a FastMCP server,
- registers the Verso and Consul tools, and
- runs the built-in stdio transport.
"""

from __future__ import annotations

import logging
import sys

from mcp.server.fastmcp import FastMCP

from ..config import VersoConfig
from ..tools import register_tools


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    cfg = VersoConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    mcp = FastMCP("verso-console-mcp")

    # Resource listings (deployments, releases, ...), Consul lookup, diagnostics.
    register_tools(mcp)

    # Let FastMCP handle stdio + event loop setup.
    mcp.run()


if __name__ == "__main__":
    main()
