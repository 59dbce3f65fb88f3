"""
ConnectionManager - lifecycle, retry and status for a set of MCP endpoints.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from mcplink.config.models import BridgeConfig, EndpointConfig
from mcplink.mcp.connection import MCPClient
from mcplink.mcp.errors import NotConnectedError, UnknownEndpointError
from mcplink.mcp.transport import select_transport
from mcplink.mcp.types import OperationInfo
from mcplink.tools.mcp_tool import MCPBridgedTool, create_bridged_tools


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class MCPTimeouts:
    connect_seconds: float = 30.0
    backoff_base_seconds: float = 1.0


@dataclass
class ManagedEndpoint:
    name: str
    config: EndpointConfig
    client: Optional[MCPClient] = None
    state: ConnectionState = ConnectionState.DISCONNECTED
    last_error: Optional[str] = None
    operations: List[OperationInfo] = field(default_factory=list)
    last_health_check: Optional[float] = None
    connect_task: Optional[asyncio.Task] = None


@dataclass(frozen=True)
class EndpointStatus:
    name: str
    state: ConnectionState
    transport: str
    tool_count: int
    tools: Tuple[str, ...]
    error: Optional[str] = None
    last_health_check: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "transport": self.transport,
            "toolCount": self.tool_count,
            "tools": list(self.tools),
            "error": self.error,
            "lastHealthCheck": self.last_health_check,
        }


ClientFactory = Callable[..., MCPClient]


class ConnectionManager:
    """
    Owns every configured endpoint and its live client.

    - Connects lazily or eagerly, with exponential backoff between attempts
    - Concurrent connects to one endpoint share a single attempt
    - Bridged tools are only ever built from connected endpoints
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        timeouts: Optional[MCPTimeouts] = None,
        client_factory: ClientFactory = MCPClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._timeouts = timeouts or MCPTimeouts()
        self._client_factory = client_factory
        self._sleep = sleep
        self._endpoints: Dict[str, ManagedEndpoint] = {
            name: ManagedEndpoint(name=name, config=cfg) for name, cfg in config.enabled_servers.items()
        }

    @property
    def has_endpoints(self) -> bool:
        return bool(self._endpoints)

    @property
    def endpoint_names(self) -> List[str]:
        return list(self._endpoints.keys())

    def _get(self, name: str) -> ManagedEndpoint:
        endpoint = self._endpoints.get(name)
        if endpoint is None:
            raise UnknownEndpointError(name)
        return endpoint

    def _set_state(self, endpoint: ManagedEndpoint, state: ConnectionState, error: Optional[str] = None) -> None:
        if endpoint.state != state:
            logger.debug(f"MCP '{endpoint.name}': {endpoint.state.value} -> {state.value}")
        endpoint.state = state
        if error is not None:
            endpoint.last_error = error

    # --- Connect ---

    async def connect_endpoint(self, name: str) -> None:
        """
        Connect an endpoint and discover its tools.

        Returns immediately when already connected; joins an attempt already
        in flight instead of starting a second one.

        Raises:
            UnknownEndpointError: if `name` is not a configured, enabled endpoint.
            Exception: the last attempt's failure once retries are exhausted.
        """
        endpoint = self._get(name)
        if endpoint.state == ConnectionState.CONNECTED:
            return
        await self._join_connect(endpoint, ConnectionState.CONNECTING)

    async def restart_endpoint(self, name: str) -> None:
        """Tear down whatever is live and connect again (state `reconnecting`)."""
        endpoint = self._get(name)
        if endpoint.connect_task is not None:
            await self._join_connect(endpoint, ConnectionState.RECONNECTING)
            return
        await self._teardown(endpoint)
        await self._join_connect(endpoint, ConnectionState.RECONNECTING)

    async def _join_connect(self, endpoint: ManagedEndpoint, attempt_state: ConnectionState) -> None:
        task = endpoint.connect_task
        if task is None:
            self._set_state(endpoint, attempt_state)
            task = asyncio.create_task(self._run_connect(endpoint, attempt_state), name=f"mcp-connect:{endpoint.name}")
            task.add_done_callback(_consume_task_exception)
            endpoint.connect_task = task

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise NotConnectedError(endpoint.name) from None
            raise

    async def _run_connect(self, endpoint: ManagedEndpoint, attempt_state: ConnectionState) -> None:
        try:
            client, operations = await self._connect_with_retries(endpoint, attempt_state)
        except asyncio.CancelledError:
            endpoint.connect_task = None
            self._set_state(endpoint, ConnectionState.DISCONNECTED)
            raise
        except Exception as e:
            endpoint.connect_task = None
            self._set_state(endpoint, ConnectionState.ERROR, str(e) or type(e).__name__)
            raise

        endpoint.connect_task = None
        endpoint.client = client
        endpoint.operations = operations
        endpoint.last_health_check = time.time()
        endpoint.last_error = None
        self._set_state(endpoint, ConnectionState.CONNECTED)
        logger.success(f"Connected to MCP server '{endpoint.name}' - {len(operations)} tool(s) available")

    async def _connect_with_retries(
        self, endpoint: ManagedEndpoint, attempt_state: ConnectionState
    ) -> Tuple[MCPClient, List[OperationInfo]]:
        retries = self._config.defaults.retries
        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=self._timeouts.backoff_base_seconds, exp_base=2),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                index = attempt.retry_state.attempt_number - 1
                self._set_state(endpoint, attempt_state)
                suffix = f" (retry {index}/{retries})" if index > 0 else ""
                logger.info(f"Connecting to MCP server '{endpoint.name}'{suffix}...")
                try:
                    return await asyncio.wait_for(
                        self._attempt_connect(endpoint),
                        timeout=float(self._timeouts.connect_seconds),
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Connecting to '{endpoint.name}' timed out after {self._timeouts.connect_seconds}s"
                    )
                    raise
                except Exception as e:
                    logger.warning(f"Failed to connect to MCP server '{endpoint.name}': {e}")
                    raise
        raise AssertionError("unreachable")  # pragma: no cover

    async def _attempt_connect(self, endpoint: ManagedEndpoint) -> Tuple[MCPClient, List[OperationInfo]]:
        client: Optional[MCPClient] = None

        def _on_error(exc: BaseException) -> None:
            self._handle_client_error(endpoint, client, exc)

        client = self._client_factory(endpoint.name, endpoint.config, on_error=_on_error)
        try:
            await client.connect()
            operations = await client.list_operations()
        except BaseException:
            await _quiet_disconnect(client)
            raise
        return client, operations

    def _handle_client_error(self, endpoint: ManagedEndpoint, client: Optional[MCPClient], exc: BaseException) -> None:
        if client is None or endpoint.client is not client:
            return
        logger.warning(f"Error from MCP server '{endpoint.name}': {exc}")
        endpoint.client = None
        endpoint.operations = []
        self._set_state(endpoint, ConnectionState.ERROR, str(exc) or type(exc).__name__)

    async def connect_all(self) -> Dict[str, str]:
        """Connect every endpoint concurrently; returns {name: error} for the failures."""
        names = list(self._endpoints.keys())
        results = await asyncio.gather(*(self.connect_endpoint(n) for n in names), return_exceptions=True)

        failures: Dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                message = str(result) or type(result).__name__
                failures[name] = message
                logger.error(f"MCP server '{name}' failed to connect: {message}")
        return failures

    # --- Disconnect ---

    async def disconnect_endpoint(self, name: str) -> None:
        endpoint = self._endpoints.get(name)
        if endpoint is None:
            return
        await self._teardown(endpoint)
        logger.info(f"Disconnected from MCP server '{name}'")

    async def _teardown(self, endpoint: ManagedEndpoint) -> None:
        task = endpoint.connect_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except BaseException as e:
                logger.debug(f"Aborted connect to '{endpoint.name}': {type(e).__name__}")

        client = endpoint.client
        endpoint.client = None
        endpoint.operations = []
        endpoint.connect_task = None
        if client is not None:
            await _quiet_disconnect(client)
        self._set_state(endpoint, ConnectionState.DISCONNECTED)

    async def disconnect_all(self) -> None:
        await asyncio.gather(
            *(self.disconnect_endpoint(n) for n in list(self._endpoints.keys())),
            return_exceptions=True,
        )

    async def __aenter__(self) -> "ConnectionManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect_all()

    # --- Health ---

    async def check_health(self, name: str) -> bool:
        """Ping a connected endpoint. Never changes connection state."""
        endpoint = self._get(name)
        client = endpoint.client
        if endpoint.state != ConnectionState.CONNECTED or client is None:
            return False
        healthy = await client.health_check()
        if healthy:
            endpoint.last_health_check = time.time()
        else:
            logger.warning(f"MCP server '{name}' did not answer ping")
        return healthy

    async def check_all_health(self) -> Dict[str, bool]:
        names = list(self._endpoints.keys())
        results = await asyncio.gather(*(self.check_health(n) for n in names))
        return dict(zip(names, results))

    # --- Tools ---

    async def get_all_tools(self) -> List[MCPBridgedTool]:
        """Connect everything that is not connected yet, then return bridged tools."""
        await self.connect_all()
        return self.get_cached_tools()

    def get_cached_tools(self) -> List[MCPBridgedTool]:
        """
        Bridged tools from already-connected endpoints; never connects.

        Endpoints are listed in configuration order, which decides who gets the
        base name when two qualified names collide.
        """
        tools: List[MCPBridgedTool] = []
        taken: set = set()
        for endpoint in self._endpoints.values():
            if endpoint.state != ConnectionState.CONNECTED or endpoint.client is None:
                continue
            tools.extend(create_bridged_tools(endpoint.client, endpoint.operations, endpoint.config, taken=taken))
        return tools

    # --- Status ---

    def _status(self, endpoint: ManagedEndpoint) -> EndpointStatus:
        return EndpointStatus(
            name=endpoint.name,
            state=endpoint.state,
            transport=select_transport(endpoint.config).value,
            tool_count=len(endpoint.operations),
            tools=tuple(op.name for op in endpoint.operations),
            error=endpoint.last_error,
            last_health_check=endpoint.last_health_check,
        )

    def get_status(self) -> List[EndpointStatus]:
        return [self._status(e) for e in self._endpoints.values()]

    def get_endpoint_status(self, name: str) -> Optional[EndpointStatus]:
        endpoint = self._endpoints.get(name)
        return self._status(endpoint) if endpoint is not None else None

    def summary(self) -> Dict[str, Any]:
        servers = self.get_status()
        connected = sum(1 for s in servers if s.state == ConnectionState.CONNECTED)
        return {
            "status": "active" if connected > 0 else "inactive",
            "connected": connected,
            "total": len(servers),
            "servers": [s.to_dict() for s in servers],
        }


async def _quiet_disconnect(client: MCPClient) -> None:
    try:
        await client.disconnect()
    except Exception as e:
        logger.debug(f"MCP disconnect failed ({client.name}): {e}")


def _consume_task_exception(task: asyncio.Task) -> None:
    # Failures are re-raised to every joined caller; this only silences the
    # "exception was never retrieved" warning when all callers went away.
    if not task.cancelled():
        task.exception()
