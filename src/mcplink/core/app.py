"""
Application shell for mcplink.

Owns the configuration, the connection manager and the tool registry for the
lifetime of the process; nothing here is a module-level singleton.
"""

from typing import Optional

from loguru import logger

from mcplink.config.manager import ConfigManager
from mcplink.mcp.manager import ConnectionManager, MCPTimeouts
from mcplink.tools.registry import ToolRegistry


class MCPLinkApp:
    """
    Coordinates configuration, MCP connections and the tool registry.

    Usage:
        async with MCPLinkApp("config.yaml") as app:
            tools = app.tools.list_tools()
            result = await app.tools.execute("mcp_fs_read_file", {"path": "/tmp/x"})
    """

    def __init__(self, config_path: Optional[str] = None, *, timeouts: Optional[MCPTimeouts] = None):
        """Initialize the application with optional config path."""
        self._config_path = config_path
        self._timeouts = timeouts
        self._running = False

        self.config: Optional[ConfigManager] = None
        self.manager: Optional[ConnectionManager] = None
        self.tools: Optional[ToolRegistry] = None

        logger.info("mcplink application instance created")

    @property
    def running(self) -> bool:
        return self._running

    async def startup(self, *, connect: bool = True) -> None:
        """Load configuration, build the manager and (optionally) connect everything."""
        logger.info("Starting mcplink...")

        self.config = ConfigManager(self._config_path)
        await self.config.load()

        bridge_config = self.config.bridge_config()
        self.manager = ConnectionManager(bridge_config, timeouts=self._timeouts)
        self.tools = ToolRegistry(self.manager)

        if not self.manager.has_endpoints:
            logger.warning("No MCP servers configured")
        elif connect:
            await self.tools.initialize()

        self._running = True
        logger.info(f"mcplink started with {len(self.manager.endpoint_names)} MCP server(s)")

    async def shutdown(self) -> None:
        """Disconnect every MCP server."""
        if not self._running:
            return
        logger.info("Shutting down mcplink...")
        try:
            if self.tools is not None:
                await self.tools.shutdown()
        finally:
            self._running = False
            logger.info("mcplink shutdown complete")

    async def __aenter__(self) -> "MCPLinkApp":
        await self.startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()
