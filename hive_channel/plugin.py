"""
Plugin entry point.

``register`` resolves the Hive config once and wires the channel, the agent
tools and (when streaming is enabled) the event stream service into a host.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import httpx

from .agent_tools import HiveTool, build_tools
from .channel import HiveChannel
from .config import HiveConfig, resolve_config
from .event_stream import EventStreamClient
from .host import PluginHost
from .http_client import HiveHttpClient
from .router import OutboundRouter


logger = logging.getLogger(__name__)


@dataclass
class HivePlugin:
    """Everything ``register`` handed to the host."""
    config: HiveConfig
    client: HiveHttpClient
    router: OutboundRouter
    channel: HiveChannel
    tools: List[HiveTool] = field(default_factory=list)
    service: Optional[EventStreamClient] = None


def register(
    host: PluginHost,
    environ: Optional[Mapping[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HivePlugin:
    """
    Register the Hive channel with a host.

    Args:
        host: Host providing registration and wake capabilities
        environ: Environment mapping for config fallbacks (optional)
        transport: Optional httpx transport shared by all clients (tests)

    Returns:
        The registered plugin components
    """
    config = resolve_config(host.config, environ)

    client = HiveHttpClient(config, transport=transport)
    router = OutboundRouter(client)
    channel = HiveChannel(config, router)
    host.register_channel(channel)

    tools = build_tools(client, router)
    for tool in tools:
        host.register_tool(tool)

    service = None
    if config.stream_enabled:
        service = EventStreamClient(config, host.request_wake, transport=transport)
        host.register_service(service)
    else:
        host.logger.info("Hive event stream disabled; not registering the stream service")

    host.logger.info(f"Hive channel registered with {len(tools)} tools")
    return HivePlugin(
        config=config,
        client=client,
        router=router,
        channel=channel,
        tools=tools,
        service=service,
    )
