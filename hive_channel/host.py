"""
Host interface.

The plugin only depends on the handful of host capabilities declared
here; any agent host (the bundled MCP host, or a test double) provides
them by subclassing ``PluginHost``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping


class HostService(ABC):
    """Background service run by the host for the lifetime of the plugin."""

    service_id: str = "service"

    @abstractmethod
    async def start(self) -> None:
        """Schedule the service; must not block until it finishes."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the service. Must be idempotent."""
        pass


class PluginHost(ABC):
    """Capabilities the Hive plugin needs from its host."""

    @property
    @abstractmethod
    def config(self) -> Mapping[str, Any]:
        """Host configuration; the plugin reads ``channels.hive``."""
        pass

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger("hive_channel")

    @abstractmethod
    def register_channel(self, channel: Any) -> None:
        pass

    @abstractmethod
    def register_tool(self, tool: Any) -> None:
        pass

    @abstractmethod
    def register_service(self, service: HostService) -> None:
        pass

    @abstractmethod
    def request_wake(self) -> Any:
        """Signal new activity to the host. May return an awaitable."""
        pass
