"""
MCPClient - one MCP session over one transport.

Uses the official `mcp` Python client. The transport and the ClientSession are
entered on an AsyncExitStack inside a dedicated session task, so the task that
opened the transport is always the one that closes it, no matter which caller
asks for the disconnect.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from mcp import ClientSession
from mcp.types import Implementation

from mcplink import __version__
from mcplink.config.models import EndpointConfig, TransportKind
from mcplink.mcp.errors import CallCanceledError, NotConnectedError
from mcplink.mcp.limiter import CallLimiter
from mcplink.mcp.transport import open_transport, select_transport
from mcplink.mcp.types import CallResult, OperationInfo

# A single stdio pipe cannot interleave requests; network transports multiplex.
CONCURRENCY: Dict[TransportKind, int] = {
    TransportKind.STDIO: 1,
    TransportKind.HTTP: 4,
    TransportKind.SSE: 2,
}

SHUTDOWN_TIMEOUT_SECONDS = 5.0


class MCPClient:
    def __init__(
        self,
        name: str,
        config: EndpointConfig,
        *,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.name = name
        self.config = config
        self.transport = select_transport(config)
        self._on_error = on_error
        self._limiter = CallLimiter(CONCURRENCY.get(self.transport, 4))
        self._session: Optional[Any] = None
        self._runner: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Event] = None

    @property
    def max_concurrency(self) -> int:
        return self._limiter.limit

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def in_flight(self) -> int:
        return self._limiter.in_flight

    @property
    def queued(self) -> int:
        return self._limiter.queued

    async def connect(self) -> None:
        if self._session is not None:
            return

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        self._closing = asyncio.Event()
        self._runner = asyncio.create_task(self._run_session(ready), name=f"mcp-session:{self.name}")
        try:
            self._session = await asyncio.shield(ready)
        except BaseException:
            await self._stop_runner()
            raise

    async def _open_session(self, stack: AsyncExitStack) -> Any:
        read_stream, write_stream = await open_transport(stack, self.name, self.config, self.transport)
        session = await stack.enter_async_context(
            ClientSession(
                read_stream,
                write_stream,
                client_info=Implementation(name=f"mcplink/{self.name}", version=__version__),
            )
        )
        await session.initialize()
        return session

    async def _run_session(self, ready: asyncio.Future) -> None:
        try:
            async with AsyncExitStack() as stack:
                session = await self._open_session(stack)
                if ready.done():
                    # connect() was abandoned while we were opening.
                    return
                ready.set_result(session)
                await self._closing.wait()
        except asyncio.CancelledError:
            if not ready.done():
                ready.set_exception(NotConnectedError(self.name))
            raise
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            elif not self._closing.is_set():
                logger.warning(f"MCP session for '{self.name}' failed: {e}")
                self._drop_session()
                if self._on_error is not None:
                    self._on_error(e)
            else:
                logger.debug(f"MCP session for '{self.name}' raised while closing: {e}")
        finally:
            if not ready.done():
                ready.set_exception(NotConnectedError(self.name))

    async def _stop_runner(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is None:
            return
        if self._closing is not None:
            self._closing.set()
        try:
            await asyncio.wait_for(asyncio.shield(runner), timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.debug(f"MCP shutdown timed out ({self.name}), cancelling session task")
            runner.cancel()
            try:
                await runner
            except BaseException as e:
                logger.debug(f"MCP session task for '{self.name}' ended with {type(e).__name__}")

    def _drop_session(self) -> None:
        self._session = None
        self._limiter.reset(lambda: NotConnectedError(self.name))

    async def disconnect(self) -> None:
        try:
            await self._stop_runner()
        finally:
            self._drop_session()

    async def health_check(self) -> bool:
        if self._session is None:
            return False
        try:
            await self._session.send_ping()
            return True
        except Exception as e:
            logger.debug(f"MCP ping failed ({self.name}): {e}")
            return False

    async def list_operations(self) -> List[OperationInfo]:
        session = self._require_session()
        result = await session.list_tools()
        tools = list(getattr(result, "tools", None) or [])
        cursor = getattr(result, "nextCursor", None)
        while cursor:
            result = await session.list_tools(cursor=cursor)
            tools.extend(getattr(result, "tools", None) or [])
            cursor = getattr(result, "nextCursor", None)

        return [
            OperationInfo(
                endpoint=self.name,
                name=t.name,
                description=getattr(t, "description", None),
                input_schema=dict(getattr(t, "inputSchema", None) or {}),
            )
            for t in tools
        ]

    async def call_operation(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> CallResult:
        self._require_session()
        if cancel is not None and cancel.is_set():
            raise CallCanceledError(self.name, name)

        async with self._limiter.slot():
            session = self._require_session()
            request = asyncio.ensure_future(
                session.call_tool(
                    name,
                    arguments=dict(arguments or {}),
                    read_timeout_seconds=timedelta(milliseconds=self.config.timeout_ms),
                )
            )
            if cancel is None:
                result = await request
            else:
                result = await self._race_cancel(request, cancel, name)

        return CallResult.from_mcp(result)

    async def _race_cancel(self, request: asyncio.Future, cancel: asyncio.Event, name: str) -> Any:
        watcher = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({request, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            watcher.cancel()

        if request.done():
            return request.result()

        request.cancel()
        try:
            await request
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Cancelled MCP call {self.name}/{name} ended with {e}")
        raise CallCanceledError(self.name, name)

    def _require_session(self) -> Any:
        if self._session is None:
            raise NotConnectedError(self.name)
        return self._session
