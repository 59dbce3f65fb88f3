"""
Tool Registry - one place to list and call every bridged MCP tool.
"""

import asyncio
import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

from mcplink.tools.base import BaseTool, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from mcplink.mcp.manager import ConnectionManager


class ToolRegistry:
    """
    Central registry for MCP tools.

    Features:
    - Eager initialization (connect everything, then list)
    - Cached listing on every later request (never connects)
    - Execution by qualified tool name
    - OpenAI function-calling schema export
    """

    def __init__(self, manager: "ConnectionManager"):
        """
        Initialize tool registry.

        Args:
            manager: Connection manager owning the MCP endpoints
        """
        self._manager = manager
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Connect all endpoints and report what was discovered."""
        logger.info("Initializing tool registry...")
        tools = await self._manager.get_all_tools()
        self._initialized = True
        logger.success(f"Tool registry initialized with {len(tools)} tools")

    async def shutdown(self) -> None:
        """Shutdown tool registry."""
        logger.info("Shutting down tool registry...")
        await self._manager.disconnect_all()
        self._initialized = False
        logger.info("Tool registry shutdown complete")

    def _tools(self) -> Dict[str, BaseTool]:
        return {t.name: t for t in self._manager.get_cached_tools()}

    def get_tool(self, name: str) -> Optional[BaseTool]:
        """Get a tool by name."""
        return self._tools().get(self._normalize_tool_name(name))

    def list_tools(self) -> List[ToolDefinition]:
        """List definitions of every tool on a connected endpoint."""
        return [t.definition for t in self._manager.get_cached_tools()]

    async def execute(
        self,
        name: str,
        params: Any = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> ToolResult:
        """
        Execute a tool.

        Args:
            name: Qualified tool name
            params: Execution parameters (dict or JSON string)
            cancel: Optional event that aborts the call when set

        Returns:
            Tool result (error-flagged when the remote tool failed)

        Raises:
            ValueError: if no connected endpoint exposes `name`
        """
        tool = self.get_tool(name)
        if not tool:
            raise ValueError(f"Tool not found: {name}")

        args = self._normalize_tool_args(params)
        error = tool.validate_params(args)
        if error:
            return ToolResult.error(error)

        return await tool.invoke(args, cancel)

    @staticmethod
    def _normalize_tool_name(name: Any) -> str:
        """Normalize tool name, stripping known prefixes."""
        if not name:
            return ""
        name_str = str(name).strip()
        for prefix in ("functions.", "tools.", "tool."):
            if name_str.startswith(prefix):
                return name_str[len(prefix):]
        return name_str

    @staticmethod
    def _normalize_tool_args(args: Any) -> Dict[str, Any]:
        """Normalize tool arguments to a dict."""
        if args is None:
            return {}
        if isinstance(args, str):
            try:
                parsed = json.loads(args)
                return parsed if isinstance(parsed, dict) else {"input": parsed}
            except Exception:
                return {"input": args}
        if isinstance(args, dict):
            return args
        return {"input": args}

    def get_openai_tools(self) -> List[Dict[str, Any]]:
        """
        Convert registered tools to OpenAI tool schema.

        Returns:
            List of OpenAI-compatible tool schemas
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": d.name,
                    "description": d.description,
                    "parameters": d.parameters,
                },
            }
            for d in self.list_tools()
        ]
