import asyncio
import sys
from pathlib import Path

import pytest

from mcplink.config.models import parse_config
from mcplink.mcp.manager import ConnectionManager, ConnectionState, MCPTimeouts
from mcplink.tools.registry import ToolRegistry

SERVER_SCRIPT = Path(__file__).resolve().parent / "fixtures" / "fake_mcp_server.py"


def _config(trust="untrusted"):
    return parse_config(
        {
            "defaults": {"retries": 0},
            "servers": {
                "fake": {
                    "command": sys.executable,
                    "args": [str(SERVER_SCRIPT)],
                    "trust": trust,
                },
            },
        }
    )


@pytest.mark.asyncio
async def test_stdio_server_lists_and_calls_tools():
    manager = ConnectionManager(_config(), timeouts=MCPTimeouts(connect_seconds=30))
    registry = ToolRegistry(manager)
    try:
        await asyncio.wait_for(registry.initialize(), timeout=60)

        status = manager.get_endpoint_status("fake")
        assert status.state == ConnectionState.CONNECTED, status.error
        assert status.transport == "stdio"

        names = {d.name for d in registry.list_tools()}
        assert {"mcp_fake_echo_tool", "mcp_fake_add", "mcp_fake_page"} <= names

        res = await registry.execute("mcp_fake_add", {"a": 2, "b": 3})
        assert not res.is_error
        assert res.text.startswith("[MCP: untrusted source")
        assert "5" in res.text

        res = await registry.execute("mcp_fake_echo_tool", {"text": "hi"})
        assert "echo: hi" in res.text

        assert await manager.check_health("fake") is True
    finally:
        await registry.shutdown()

    assert manager.get_endpoint_status("fake").state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_stdio_server_output_is_sanitized():
    manager = ConnectionManager(_config(trust="sanitize"), timeouts=MCPTimeouts(connect_seconds=30))
    try:
        await asyncio.wait_for(manager.connect_endpoint("fake"), timeout=60)
        tool = next(t for t in manager.get_cached_tools() if t.mcp_tool_name == "page")
        res = await tool.invoke({})
        assert "<" not in res.text.split("\n\n", 1)[1]
        assert "alert" not in res.text
        assert "hello" in res.text
    finally:
        await manager.disconnect_all()
