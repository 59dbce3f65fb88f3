"""Tools module - bridged MCP tools and the tool registry."""

from mcplink.tools.base import BaseTool, ToolDefinition, ToolResult
from mcplink.tools.mcp_tool import MCPBridgedTool, create_bridged_tools
from mcplink.tools.registry import ToolRegistry

__all__ = [
    "BaseTool",
    "MCPBridgedTool",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "create_bridged_tools",
]
