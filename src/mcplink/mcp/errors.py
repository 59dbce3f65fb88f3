"""MCP client errors."""

from __future__ import annotations


class MCPLinkError(RuntimeError):
    """Base class for errors raised by the MCP bridge."""


class ConfigurationError(MCPLinkError):
    """An endpoint lacks a field required by its selected transport."""

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f'Server "{endpoint}": {message}')


class NotConnectedError(MCPLinkError):
    """An operation was attempted on an endpoint without a live session."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f'MCP server "{endpoint}" is not connected')


class CallCanceledError(MCPLinkError):
    """The caller cancelled an in-flight tool call."""

    def __init__(self, endpoint: str, tool_name: str) -> None:
        self.endpoint = endpoint
        self.tool_name = tool_name
        super().__init__(f'Call to "{tool_name}" on MCP server "{endpoint}" was canceled')


class UnknownEndpointError(MCPLinkError, KeyError):
    """No endpoint with the given name is configured (or it is disabled)."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Unknown MCP server: {endpoint}")

    def __str__(self) -> str:
        # KeyError would repr() the message otherwise.
        return str(self.args[0])
