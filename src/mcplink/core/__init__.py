"""Core - application lifecycle."""

from mcplink.core.app import MCPLinkApp

__all__ = ["MCPLinkApp"]
