"""
Event Stream Client

This module keeps a long-lived streaming connection to the Hive stream
endpoint, decodes frames as they arrive and fires a trigger callback for
every ``message`` event. Disconnects are retried with exponential backoff
until ``stop()`` is called.

The whole session runs in one background task:

    connect -> read loop -> backoff wait -> connect -> ...

``stop()`` cancels the active connect-and-read attempt and interrupts the
backoff wait, so no reconnect is issued once a stop has been requested.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional, Set

import httpx

from ..config import HiveConfig
from ..errors import ConfigError, EventStreamError
from ..host import HostService
from ..http_client import build_url
from .event_stream_base import DEFAULT_EVENT, EventFrame, EventStreamParser


logger = logging.getLogger(__name__)


STREAM_PATH = "/api/stream"
SERVICE_ID = "hive-sse"

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0
BACKOFF_MULTIPLIER = 2.0
CONNECT_TIMEOUT = 10.0


class StreamState(Enum):
    """Stream session state."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


class Backoff:
    """
    Exponential reconnect delay.

    The first wait after a failure is ``initial``; every further consecutive
    failure doubles it up to ``maximum``. ``reset()`` goes back to
    ``initial`` after a successful connection.

    With the defaults the wait after N consecutive failures is
    ``min(1s * 2**(N - 1), 30s)``: 1, 2, 4, 8, 16, 30, 30, ...
    """

    def __init__(
        self,
        initial: float = INITIAL_BACKOFF,
        maximum: float = MAX_BACKOFF,
        multiplier: float = BACKOFF_MULTIPLIER,
    ):
        if initial <= 0 or maximum < initial:
            raise ValueError(f"Invalid backoff bounds: initial={initial}, maximum={maximum}")
        self.initial = initial
        self.maximum = maximum
        self.multiplier = multiplier
        self._current = initial

    @property
    def current(self) -> float:
        """Delay that the next wait will use."""
        return self._current

    def next_delay(self) -> float:
        """Return the delay to wait now and advance to the next one."""
        delay = self._current
        self._current = min(self._current * self.multiplier, self.maximum)
        return delay

    def reset(self) -> None:
        self._current = self.initial


class EventStreamClient(HostService):
    """
    Resilient client for the Hive event stream.

    Implements the host's background-service contract: ``start()`` schedules
    the session task and returns immediately, ``stop()`` is idempotent and
    may be called before ``start()``.
    """

    service_id = SERVICE_ID

    def __init__(
        self,
        config: HiveConfig,
        on_message: Callable[[], Any],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff: Optional[Backoff] = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: Optional[float] = None,
    ):
        """
        Initialize the event stream client.

        Args:
            config: Resolved Hive connection config
            on_message: Zero-argument trigger, sync or async, fired per
                ``message`` frame without being awaited
            transport: Optional httpx transport (used by tests)
            backoff: Optional backoff policy (defaults to 1s doubling to 30s)
            connect_timeout: Connect timeout in seconds
            read_timeout: Read timeout in seconds (None waits indefinitely)
        """
        self.config = config
        self._on_message = on_message
        self._transport = transport
        self._backoff = backoff or Backoff()
        self._timeout = httpx.Timeout(connect_timeout, read=read_timeout)

        self._state = StreamState.IDLE
        self._stop_requested = False
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._active_attempt: Optional[asyncio.Task] = None
        self._trigger_tasks: Set[asyncio.Task] = set()
        self._parser = EventStreamParser()

        self.last_event_id: Optional[str] = None
        self.reconnect_count = 0
        self.events_received = 0

    @property
    def state(self) -> StreamState:
        """Get the current session state."""
        return self._state

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def is_running(self) -> bool:
        """Check if the session task is alive."""
        return self._task is not None and not self._task.done()

    def _set_state(self, state: StreamState) -> None:
        if state is not self._state:
            logger.debug(f"Event stream state: {self._state.value} -> {state.value}")
            self._state = state

    async def start(self) -> None:
        """Schedule the stream session and return without waiting for it."""
        if self._state is StreamState.STOPPED:
            logger.warning("Event stream already stopped; not restarting")
            return

        if not self.config.stream_enabled:
            logger.info("Event stream disabled by configuration")
            return

        if self.is_running:
            logger.debug("Event stream already running")
            return

        self._task = asyncio.create_task(self._run(), name=f"{self.service_id}-session")
        logger.info(f"Event stream starting for {self.config.base_url}")

    async def stop(self) -> None:
        """Stop the session, cancelling any in-flight connection."""
        self._stop_requested = True
        self._stop_event.set()

        attempt = self._active_attempt
        self._active_attempt = None
        if attempt is not None and not attempt.done():
            attempt.cancel()

        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        self._set_state(StreamState.STOPPED)

    async def _run(self) -> None:
        """Session loop: connect, read, back off, repeat."""
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                verify=self.config.verify_tls,
                transport=self._transport,
            ) as http:
                while not self._stop_requested:
                    attempt = asyncio.create_task(self._connect_and_read(http))
                    self._active_attempt = attempt

                    try:
                        await attempt
                        logger.info("Event stream closed by server")
                    except asyncio.CancelledError:
                        if not self._stop_requested:
                            raise
                    except ConfigError as e:
                        logger.error(f"Event stream cannot connect: {e}")
                        break
                    except (httpx.HTTPError, EventStreamError) as e:
                        logger.warning(f"Event stream disconnected: {e}")
                    except Exception:
                        logger.exception("Unexpected event stream failure")
                    finally:
                        if self._active_attempt is attempt:
                            self._active_attempt = None

                    if self._stop_requested:
                        break

                    self._set_state(StreamState.DISCONNECTED)
                    delay = self._backoff.next_delay()
                    self.reconnect_count += 1
                    logger.info(f"Reconnecting event stream in {delay:.1f}s (attempt {self.reconnect_count})")

                    if await self._wait_for_stop(delay):
                        break
        finally:
            self._parser.reset()
            self._set_state(StreamState.STOPPED)
            logger.info("Event stream stopped")

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep for the backoff delay; return True early if stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return self._stop_requested

    async def _connect_and_read(self, http: httpx.AsyncClient) -> None:
        """One connection attempt: handshake, then read until the stream ends."""
        self._set_state(StreamState.CONNECTING)
        token = self.config.require_token()

        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        url = build_url(self.config.base_url, STREAM_PATH)
        logger.debug(f"Connecting to {url}")

        # The stream endpoint takes the token as a query parameter
        async with http.stream("GET", url, params={"token": token}, headers=headers) as response:
            if not response.is_success:
                raise EventStreamError("Stream handshake failed", status_code=response.status_code)

            self._set_state(StreamState.CONNECTED)
            self._backoff.reset()
            self._parser.reset()
            logger.info("Event stream connected")

            async for chunk in response.aiter_text():
                for frame in self._parser.feed(chunk):
                    self._dispatch(frame)

    def _dispatch(self, frame: EventFrame) -> None:
        self.events_received += 1
        if frame.id:
            self.last_event_id = frame.id

        if frame.event != DEFAULT_EVENT:
            logger.debug(f"Ignoring '{frame.event}' event")
            return

        self._fire_trigger()

    def _fire_trigger(self) -> None:
        """Invoke the trigger without awaiting it; failures are only logged."""
        try:
            result = self._on_message()
        except Exception:
            logger.exception("Event stream trigger failed")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._trigger_tasks.add(task)
            task.add_done_callback(self._on_trigger_done)

    def _on_trigger_done(self, task: asyncio.Future) -> None:
        self._trigger_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Event stream trigger failed", exc_info=exc)


__all__ = [
    "Backoff",
    "EventStreamClient",
    "SERVICE_ID",
    "STREAM_PATH",
    "StreamState",
]
