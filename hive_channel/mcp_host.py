"""
MCP host for the Hive plugin.

Runs the plugin standalone: registered tools are served as MCP tools over
SSE, registered services run for the lifetime of the Starlette app, and
wake requests from the event stream are counted, logged and forwarded to
an optional hook.
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Mapping, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.responses import Response
from starlette.routing import Mount, Route

from .agent_tools import HiveTool
from .host import HostService, PluginHost


logger = logging.getLogger(__name__)


SERVER_NAME = "hive"
MESSAGES_PATH = "/messages/"


def to_text(result: Any) -> str:
    """Render a tool result as text for an MCP content block."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class McpPluginHost(PluginHost):
    """PluginHost backed by an MCP low-level server."""

    def __init__(
        self,
        config: Mapping[str, Any],
        server_name: str = SERVER_NAME,
        on_wake: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize the MCP host.

        Args:
            config: Host configuration (``channels.hive`` is read by the plugin)
            server_name: MCP server name
            on_wake: Optional hook run on every wake request
        """
        self._config = config
        self._on_wake = on_wake
        self.server = Server(server_name)
        self.sse_transport = SseServerTransport(MESSAGES_PATH)

        self.channels: Dict[str, Any] = {}
        self.tools: Dict[str, HiveTool] = {}
        self.services: List[HostService] = []
        self.wake_count = 0
        self.last_wake_at: Optional[float] = None

        self._register_handlers()
        logger.info(f"MCP host initialized as '{server_name}'")

    @property
    def config(self) -> Mapping[str, Any]:
        return self._config

    def register_channel(self, channel: Any) -> None:
        self.channels[channel.id] = channel
        logger.info(f"Registered channel: {channel.id}")

    def register_tool(self, tool: HiveTool) -> None:
        if tool.name in self.tools:
            logger.warning(f"Tool {tool.name} registered twice; replacing")
        self.tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def register_service(self, service: HostService) -> None:
        self.services.append(service)
        logger.info(f"Registered service: {service.service_id}")

    def request_wake(self) -> Any:
        self.wake_count += 1
        self.last_wake_at = time.time()
        logger.info(f"Wake requested ({self.wake_count} total)")
        if self._on_wake is not None:
            return self._on_wake()
        return None

    # ========================================================================
    # MCP handlers
    # ========================================================================

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return self.list_mcp_tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
            return await self.call_tool(name, arguments)

    def list_mcp_tools(self) -> List[types.Tool]:
        """Describe the registered tools as MCP tools."""
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in self.tools.values()
        ]

    async def call_tool(self, name: str, arguments: Optional[dict]) -> List[types.TextContent]:
        """Dispatch an MCP tool call to the registered tool."""
        tool = self.tools.get(name)
        if tool is None:
            logger.error(f"Unknown tool: {name}")
            return [types.TextContent(type="text", text=f"Error: Unknown tool: {name}")]

        logger.info(f"Tool call: {name}")
        result = await tool.call(arguments or {})
        return [types.TextContent(type="text", text=to_text(result))]

    # ========================================================================
    # Service lifecycle
    # ========================================================================

    async def start_services(self) -> None:
        for service in self.services:
            try:
                await service.start()
                logger.info(f"Service started: {service.service_id}")
            except Exception as e:
                logger.error(f"Failed to start service {service.service_id}: {e}")

    async def stop_services(self) -> None:
        for service in reversed(self.services):
            try:
                await service.stop()
                logger.info(f"Service stopped: {service.service_id}")
            except Exception as e:
                logger.error(f"Error stopping service {service.service_id}: {e}")

    @asynccontextmanager
    async def lifespan(self, app: Starlette):
        await self.start_services()
        try:
            yield
        finally:
            await self.stop_services()

    # ========================================================================
    # Starlette app
    # ========================================================================

    async def handle_sse(self, request):
        """Handle SSE connections for the MCP server."""
        async with self.sse_transport.connect_sse(request.scope, request.receive, request._send) as streams:
            await self.server.run(streams[0], streams[1], self.server.create_initialization_options())
        return Response()

    def create_app(self, debug: bool = False) -> Starlette:
        return Starlette(
            debug=debug,
            routes=[
                Route("/sse", endpoint=self.handle_sse, methods=["GET"]),
                Mount(MESSAGES_PATH, app=self.sse_transport.handle_post_message),
            ],
            lifespan=self.lifespan,
        )
