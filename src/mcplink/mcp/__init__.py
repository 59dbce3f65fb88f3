"""
MCP runtime - connect to MCP servers and call their tools.

`mcplink.mcp.manager.ConnectionManager` is the entry point; it is not
re-exported here because it depends on `mcplink.tools`, which itself imports
from this package.
"""

from __future__ import annotations

from mcplink.mcp.connection import MCPClient
from mcplink.mcp.errors import (
    CallCanceledError,
    ConfigurationError,
    MCPLinkError,
    NotConnectedError,
    UnknownEndpointError,
)
from mcplink.mcp.transport import select_transport
from mcplink.mcp.types import CallResult, OperationInfo

__all__ = [
    "CallCanceledError",
    "CallResult",
    "ConfigurationError",
    "MCPClient",
    "MCPLinkError",
    "NotConnectedError",
    "OperationInfo",
    "UnknownEndpointError",
    "select_transport",
]
