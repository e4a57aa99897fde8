from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .catalog import ToolCatalog, resource_from_mcp, tool_from_mcp
from .errors import NotReadyError, ToolProviderConnectionError
from .mcp_provider import ToolProvider

logger = logging.getLogger("mcp_web_client.session")


class SessionBootstrap:
    """Process-scoped MCP session with single-flight initialization."""

    def __init__(self, provider: ToolProvider, catalog: ToolCatalog) -> None:
        """Purpose: Bind the tool provider and the catalog it populates.
        Inputs/Outputs: Inputs are a ToolProvider and a ToolCatalog; no return value.
        Side Effects / State: None until ensure_ready is awaited.
        Dependencies: ToolProvider protocol, ToolCatalog.
        Failure Modes: None at construction.
        If Removed: Nothing connects to the MCP server or fills the catalog.
        Testing Notes: Construct with a fake provider and assert no connect happens yet.
        """
        self._provider = provider
        self._catalog = catalog
        self._ready = False
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def provider(self) -> ToolProvider:
        if not self._ready:
            raise NotReadyError("MCP client is not initialized")
        return self._provider

    async def ensure_ready(self) -> None:
        """Purpose: Connect once and populate the catalog; later calls return at once.
        Inputs/Outputs: No inputs; returns when the session is ready.
        Side Effects / State: First call connects the provider and writes the catalog.
        Dependencies: ToolProvider.connect/list_tools/list_resources.
        Failure Modes: Raises ToolProviderConnectionError on connect or listing
            failure; a later call starts a fresh attempt. A connection that dropped
            after bootstrap is treated as not ready and re-established.
        If Removed: Requests would race to open duplicate connections.
        Testing Notes: Two concurrent calls must produce a single connect.
        """
        if self._ready:
            if self._provider.is_connected:
                return
            logger.warning("MCP connection lost; bootstrapping again")
            self._ready = False
            self._catalog.clear()
            await self._provider.close()
            if self._ready:
                return
        # Concurrent callers await the same attempt instead of starting another.
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._bootstrap())
        task = self._inflight
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._inflight is task:
                self._inflight = None

    async def _bootstrap(self) -> None:
        logger.info("Connecting to MCP server ...")
        try:
            await self._provider.connect()
        except ToolProviderConnectionError:
            raise
        except Exception as exc:
            raise ToolProviderConnectionError(f"Cannot connect to MCP server: {exc}") from exc
        try:
            await self._load_catalog()
        except Exception as exc:
            await self._provider.close()
            raise ToolProviderConnectionError(f"MCP catalog listing failed: {exc}") from exc
        self._ready = True
        logger.info("MCP client ready")

    async def _load_catalog(self) -> None:
        tools = [tool_from_mcp(tool) for tool in await self._provider.list_tools()]
        resources = [resource_from_mcp(resource) for resource in await self._provider.list_resources()]
        self._catalog.populate(tools, resources)
        logger.info(
            "mcp catalog tools=%s resources=%s",
            [tool.name for tool in tools],
            [resource.uri for resource in resources],
        )

    async def refresh(self) -> None:
        """Re-list tools and resources on the open connection."""
        if not self._ready:
            raise NotReadyError("MCP client is not initialized")
        try:
            await self._load_catalog()
        except Exception as exc:
            raise ToolProviderConnectionError(f"MCP catalog listing failed: {exc}") from exc

    async def close(self) -> None:
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
        await self._provider.close()
        self._catalog.clear()
        self._ready = False
