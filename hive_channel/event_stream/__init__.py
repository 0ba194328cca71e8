"""
Hive Event Stream Package

This package keeps a resilient streaming connection to the Hive stream
endpoint and turns ``message`` events into a host wake trigger.

Usage:
    from hive_channel.event_stream import EventStreamClient

    client = EventStreamClient(config, on_message=host.request_wake)
    await client.start()
    ...
    await client.stop()
"""

from .event_stream_base import (
    DEFAULT_EVENT,
    EventFrame,
    EventStreamParser,
    parse_event_block,
    parse_event_frames,
)

from .event_stream_client import (
    Backoff,
    EventStreamClient,
    SERVICE_ID,
    STREAM_PATH,
    StreamState,
)


__all__ = [
    # Framing
    "DEFAULT_EVENT",
    "EventFrame",
    "EventStreamParser",
    "parse_event_block",
    "parse_event_frames",
    # Client
    "Backoff",
    "EventStreamClient",
    "SERVICE_ID",
    "STREAM_PATH",
    "StreamState",
]
