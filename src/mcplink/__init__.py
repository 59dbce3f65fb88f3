"""
mcplink - MCP client bridge.

Connects to configured MCP servers (stdio, streamable HTTP or SSE), discovers
their tools and re-exposes them as uniformly named, trust-filtered tools for
an agent runtime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"
__author__ = "mcplink Team"

if TYPE_CHECKING:
    from mcplink.core.app import MCPLinkApp as MCPLinkApp

__all__ = ["MCPLinkApp", "__version__"]


def __getattr__(name: str):
    # Lazy import so `import mcplink.security.trust` stays free of the mcp SDK.
    if name == "MCPLinkApp":
        from mcplink.core.app import MCPLinkApp  # local import

        return MCPLinkApp
    raise AttributeError(name)
