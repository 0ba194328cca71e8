"""
Hive Channel Package

Hive (BigInformatics team mailbox, chat and swarm tasks) as a first-class
channel for an agent host: inbound event stream, outbound routing and
agent tools.
"""

from .agent_tools import HiveTool, build_tools
from .channel import HiveChannel
from .config import Config, HiveConfig, resolve_config
from .errors import (
    ConfigError,
    EventStreamError,
    HiveError,
    RequestError,
    TransportError,
    ValidationError,
)
from .event_stream import EventStreamClient, StreamState
from .host import HostService, PluginHost
from .http_client import HiveHttpClient, build_url
from .plugin import HivePlugin, register
from .router import (
    ChatContext,
    MailboxReplyContext,
    NewMailboxMessageContext,
    OutboundRouter,
    SendResult,
)

__version__ = "0.1.0"
__all__ = [
    "ChatContext",
    "Config",
    "ConfigError",
    "EventStreamClient",
    "EventStreamError",
    "HiveChannel",
    "HiveConfig",
    "HiveError",
    "HiveHttpClient",
    "HivePlugin",
    "HiveTool",
    "HostService",
    "MailboxReplyContext",
    "NewMailboxMessageContext",
    "OutboundRouter",
    "PluginHost",
    "RequestError",
    "SendResult",
    "StreamState",
    "TransportError",
    "ValidationError",
    "build_tools",
    "build_url",
    "register",
    "resolve_config",
]
