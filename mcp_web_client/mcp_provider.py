"""MCP tool provider over SSE.

The orchestrator depends only on the four request/response operations of the
ToolProvider protocol. McpToolProvider implements them on top of an MCP
ClientSession whose SSE transport is owned by one background task, so the
connection can be opened from a request handler and closed at shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.types import Implementation
from pydantic import AnyUrl

from .errors import NotReadyError, ResourceReadError, ToolInvocationError, ToolProviderConnectionError
from .utils import first_attr, join_text

logger = logging.getLogger("mcp_web_client.mcp")

CLIENT_NAME = "mcp-client"
CLIENT_VERSION = "1.0.0"


class ToolProvider(Protocol):
    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def list_tools(self) -> Sequence[Any]: ...

    async def list_resources(self) -> Sequence[Any]: ...

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any: ...

    async def read_resource(self, uri: str) -> str: ...


class McpToolProvider:
    """ToolProvider backed by an MCP server reachable over SSE."""

    def __init__(self, server_url: str, init_timeout: float = 10.0) -> None:
        self._server_url = server_url
        self._init_timeout = init_timeout
        self._session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._closing = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Purpose: Open the SSE transport and complete the MCP handshake.
        Inputs/Outputs: No inputs; returns once the session is initialized.
        Side Effects / State: Starts the background task that owns the transport.
        Dependencies: mcp.client.sse.sse_client and mcp.ClientSession.
        Failure Modes: Unreachable server, failed handshake or no initialize reply
            within init_timeout raise ToolProviderConnectionError. Cancellation
            stops the background task and propagates.
        If Removed: No tools or resources can be reached.
        Testing Notes: Point at a closed port and expect ToolProviderConnectionError.
        """
        if self._session is not None:
            return
        self._closing = asyncio.Event()
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        runner = asyncio.create_task(self._run(ready))
        self._runner = runner
        try:
            await ready
        except asyncio.CancelledError:
            self._runner = None
            runner.cancel()
            raise
        except Exception as exc:
            self._runner = None
            raise ToolProviderConnectionError(f"Cannot connect to MCP server at {self._server_url}: {exc}") from exc
        logger.info("mcp connected url=%s", self._server_url)

    async def _run(self, ready: asyncio.Future) -> None:
        # The transport's task group must be entered and exited by the same task.
        try:
            async with sse_client(self._server_url) as (read_stream, write_stream):
                async with ClientSession(
                    read_stream,
                    write_stream,
                    client_info=Implementation(name=CLIENT_NAME, version=CLIENT_VERSION),
                ) as session:
                    try:
                        await asyncio.wait_for(session.initialize(), timeout=self._init_timeout)
                    except asyncio.TimeoutError as exc:
                        raise TimeoutError(f"no initialize reply within {self._init_timeout}s") from exc
                    if ready.done():
                        return
                    self._session = session
                    ready.set_result(None)
                    await self._closing.wait()
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
            else:
                logger.exception("mcp connection dropped url=%s", self._server_url)
        finally:
            self._session = None

    async def close(self) -> None:
        runner = self._runner
        if runner is None:
            return
        self._closing.set()
        self._runner = None
        # A runner that already ended (dropped or cancelled) has nothing to unwind.
        if not runner.done():
            await runner
        logger.info("mcp closed url=%s", self._server_url)

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise NotReadyError("MCP client is not initialized")
        return self._session

    async def list_tools(self) -> List[Any]:
        result = await self._require_session().list_tools()
        return list(result.tools)

    async def list_resources(self) -> List[Any]:
        result = await self._require_session().list_resources()
        return list(result.resources)

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """Purpose: Invoke one MCP tool and return its JSON-ready result.
        Inputs/Outputs: Inputs are the tool name and arguments; output is the dumped
            CallToolResult.
        Side Effects / State: Whatever the tool does on the server.
        Dependencies: ClientSession.call_tool.
        Failure Modes: Transport errors and results flagged isError raise
            ToolInvocationError; a missing session raises NotReadyError.
        If Removed: Tool branch and /call-tool cannot run tools.
        Testing Notes: A fake session returning isError=True must raise.
        """
        session = self._require_session()
        try:
            result = await session.call_tool(name, args or {})
        except Exception as exc:
            raise ToolInvocationError(name, str(exc) or type(exc).__name__) from exc
        if first_attr(result, "is_error", "isError"):
            message = join_text(getattr(item, "text", None) for item in result.content or [])
            raise ToolInvocationError(name, message or f"Tool {name} reported an error")
        # by_alias keeps the MCP wire names (isError, structuredContent) on every SDK release.
        return result.model_dump(mode="json", exclude_none=True, by_alias=True)

    async def read_resource(self, uri: str) -> str:
        """Purpose: Read a resource and return its text content.
        Inputs/Outputs: Input is the resource URI; output is the joined text contents.
        Side Effects / State: None locally; the server reads its backing file.
        Dependencies: ClientSession.read_resource.
        Failure Modes: Transport errors or a result without text raise ResourceReadError.
        If Removed: The resource branch cannot inject context.
        Testing Notes: Fake session with two text contents yields them joined by newline.
        """
        session = self._require_session()
        try:
            result = await session.read_resource(AnyUrl(uri))
        except Exception as exc:
            raise ResourceReadError(f"Cannot read resource {uri}: {exc}") from exc
        texts = [item.text for item in result.contents if getattr(item, "text", None) is not None]
        if not texts:
            raise ResourceReadError(f"Resource {uri} has no text content")
        return join_text(texts)
