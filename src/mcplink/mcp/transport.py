"""
Transport selection and construction for MCP endpoints.

Supports:
  - stdio: JSON-RPC over the pipes of a spawned subprocess (local)
  - http:  streamable HTTP (remote)
  - sse:   legacy server-sent events (remote)
"""

from __future__ import annotations

import os
from contextlib import AsyncExitStack
from typing import Any, Tuple

from loguru import logger
from mcp import StdioServerParameters, stdio_client
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

from mcplink.config.models import EndpointConfig, TransportKind
from mcplink.mcp.errors import ConfigurationError


def select_transport(config: EndpointConfig) -> TransportKind:
    """
    Pick the transport for an endpoint.

    An explicit (non-auto) tag wins; otherwise a spawn command means stdio,
    a URL means streamable HTTP, and stdio is the fallback. Call this once per
    connect attempt so config edits are always honored.
    """
    if config.transport != TransportKind.AUTO:
        return config.transport
    if config.command:
        return TransportKind.STDIO
    if config.url:
        return TransportKind.HTTP
    return TransportKind.STDIO


async def open_transport(
    stack: AsyncExitStack,
    name: str,
    config: EndpointConfig,
    kind: TransportKind,
) -> Tuple[Any, Any]:
    """
    Enter the transport context on `stack` and return (read_stream, write_stream).

    Raises:
        ConfigurationError: if `config` lacks what `kind` needs.
    """
    if kind == TransportKind.STDIO:
        if not config.command:
            raise ConfigurationError(name, 'stdio transport requires "command"')
        logger.info(f"Spawning MCP server '{name}': {config.command} {' '.join(config.args)}")
        params = StdioServerParameters(
            command=config.command,
            args=list(config.args),
            env={**os.environ, **config.env},
        )
        read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
        return read_stream, write_stream

    if kind == TransportKind.HTTP:
        if not config.url:
            raise ConfigurationError(name, 'http transport requires "url"')
        logger.info(f"Opening streamable HTTP transport for '{name}': {config.url}")
        read_stream, write_stream, _session_id = await stack.enter_async_context(
            streamablehttp_client(config.url, headers=dict(config.headers) or None)
        )
        return read_stream, write_stream

    if kind == TransportKind.SSE:
        if not config.url:
            raise ConfigurationError(name, 'sse transport requires "url"')
        logger.info(f"Opening SSE transport for '{name}': {config.url}")
        read_stream, write_stream = await stack.enter_async_context(
            sse_client(config.url, headers=dict(config.headers) or None)
        )
        return read_stream, write_stream

    raise ConfigurationError(name, f'unknown transport "{kind}"')
