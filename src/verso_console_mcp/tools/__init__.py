# Verso Console MCP Server
# File: tools/__init__.py
# Version: v1

"""MCP tool definitions for the Verso Console MCP Server."""

from __future__ import annotations

from .tasks import register_tools

__all__ = ["register_tools"]
