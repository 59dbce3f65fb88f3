"""
MCPBridgedTool - expose an MCP server tool as an agent tool.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from loguru import logger

from mcplink.config.models import EndpointConfig, ToolFilter
from mcplink.mcp.types import CallResult, ImageBlock, OperationInfo, TextBlock
from mcplink.security.trust import apply_trust_policy
from mcplink.tools.base import BaseTool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from mcplink.mcp.connection import MCPClient


def normalize_tool_name(name: str) -> str:
    s = (name or "").strip().lower()
    s = re.sub(r"[^a-z0-9_]+", "_", s).strip("_")
    return s or "tool"


def qualified_tool_name(endpoint: str, operation: str) -> str:
    return f"mcp_{normalize_tool_name(endpoint)}_{normalize_tool_name(operation)}"


def passes_filter(name: str, tool_filter: Optional[ToolFilter]) -> bool:
    return tool_filter is None or tool_filter.passes(name)


def ensure_object_schema(schema: Any) -> Dict[str, Any]:
    if not isinstance(schema, dict):
        return {"type": "object", "properties": {}}
    result = dict(schema)
    if not result.get("type"):
        result["type"] = "object"
    return result


def convert_result(result: CallResult, config: EndpointConfig) -> ToolResult:
    """Apply the endpoint's trust policy and convert to the agent-facing shape."""
    secured = apply_trust_policy(result, config.trust, config.max_result_chars)
    content: List[Dict[str, Any]] = []

    for block in secured.content:
        if isinstance(block, TextBlock):
            content.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            content.append({"type": "image", "data": block.data, "mimeType": block.mime_type})
        else:
            content.append({"type": "text", "text": json.dumps(asdict(block), indent=2, default=str)})

    if secured.is_error:
        error_text = "\n".join(c["text"] for c in content if c["type"] == "text")
        return ToolResult(
            content=[{"type": "text", "text": f"[MCP Error] {error_text or 'Unknown error'}"}],
            details={"error": True, "serverError": True},
        )

    if not content:
        content.append({"type": "text", "text": "(empty result)"})

    return ToolResult(content=content, details={"mcpResult": True})


class MCPBridgedTool(BaseTool):
    def __init__(
        self,
        *,
        client: "MCPClient",
        operation: OperationInfo,
        config: EndpointConfig,
        name: Optional[str] = None,
    ) -> None:
        self._client = client
        self._operation = operation
        self._config = config

        endpoint = operation.endpoint
        self._definition = ToolDefinition(
            name=name or qualified_tool_name(endpoint, operation.name),
            label=operation.name,
            description=f"[MCP: {endpoint}] "
            + (operation.description or f'Tool "{operation.name}" from MCP server "{endpoint}"'),
            parameters=ensure_object_schema(operation.input_schema),
            endpoint=endpoint,
        )

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    @property
    def endpoint(self) -> str:
        return self._operation.endpoint

    @property
    def mcp_tool_name(self) -> str:
        return self._operation.name

    async def invoke(self, args: Dict[str, Any], cancel: Optional[asyncio.Event] = None) -> ToolResult:
        """
        Call the MCP tool and return a trust-filtered result.

        Remote errors come back as an error-flagged result. Raises
        NotConnectedError / CallCanceledError for local failures.
        """
        result = await self._client.call_operation(self._operation.name, dict(args or {}), cancel)
        if result.is_error:
            logger.debug(f"MCP tool {self.name} reported an error")
        return convert_result(result, self._config)


def create_bridged_tools(
    client: "MCPClient",
    operations: List[OperationInfo],
    config: EndpointConfig,
    *,
    taken: Optional[Set[str]] = None,
) -> List[MCPBridgedTool]:
    """
    Build bridged tools for one endpoint's filtered operations.

    `taken` holds names already handed out in this listing; colliding names get
    a numeric suffix so every returned name is unique. Suffixes are handed out
    in listing order, so they are only stable while the same endpoints stay
    connected: if the endpoint that holds the base name drops out, the next
    listing gives that name to the other one.
    """
    taken = set() if taken is None else taken
    tools: List[MCPBridgedTool] = []

    for operation in operations:
        if not passes_filter(operation.name, config.tool_filter):
            continue

        base = qualified_tool_name(operation.endpoint, operation.name)
        name = base
        n = 2
        while name in taken:
            name = f"{base}_{n}"
            n += 1
        if name != base:
            logger.warning(f"MCP tool name collision: '{operation.name}' on '{operation.endpoint}' exposed as {name}")
        taken.add(name)

        tools.append(MCPBridgedTool(client=client, operation=operation, config=config, name=name))

    return tools
