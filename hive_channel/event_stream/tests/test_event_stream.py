"""
Test suite for the Hive event stream.

Covers frame decoding, the backoff policy and the stream client's
lifecycle: connect, dispatch, reconnect and stop.
"""

import asyncio

import httpx
import pytest

from hive_channel.config import HiveConfig
from hive_channel.event_stream import (
    Backoff,
    EventFrame,
    EventStreamClient,
    EventStreamParser,
    StreamState,
    parse_event_block,
    parse_event_frames,
)


# ============================================================================
# Helpers
# ============================================================================

SSE_HEADERS = {"content-type": "text/event-stream; charset=utf-8"}


def make_config(**overrides) -> HiveConfig:
    values = {"base_url": "https://hive.test/api", "token": "secret"}
    values.update(overrides)
    return HiveConfig(**values)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


async def hold_open():
    """Block like a quiet, still-open stream."""
    await asyncio.Event().wait()


class RecordingBackoff(Backoff):
    """Backoff that remembers every delay it handed out."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.delays = []

    def next_delay(self) -> float:
        delay = super().next_delay()
        self.delays.append(delay)
        return delay


@pytest.fixture
def sample_stream():
    """A stream mixing CRLF and LF endings, comments and multi-line data."""
    return (
        ": connected\r\n\r\n"
        "event: message\r\ndata: {\"id\": 1}\r\n\r\n"
        "event: typing\ndata: alice\n\n"
        "id: 7\ndata: first\ndata:second\ndata:  third\n\n"
        "event: ping\n\n"
        "data: tail"
    )


# ============================================================================
# Frame parsing Tests
# ============================================================================

class TestParseEventFrames:
    """Tests for parse_event_frames and parse_event_block."""

    def test_decodes_frames_in_order(self, sample_stream):
        frames, remainder = parse_event_frames(sample_stream)

        assert frames == [
            EventFrame(data='{"id": 1}', event="message"),
            EventFrame(data="alice", event="typing"),
            EventFrame(data="first\nsecond\n third", event="message", id="7"),
        ]
        assert remainder == "data: tail"

    def test_split_at_any_offset_matches_single_read(self, sample_stream):
        expected, expected_remainder = parse_event_frames(sample_stream)

        for offset in range(len(sample_stream) + 1):
            parser = EventStreamParser()
            frames = parser.feed(sample_stream[:offset])
            frames += parser.feed(sample_stream[offset:])

            assert frames == expected, f"split at {offset}"
            assert parser._buffer == expected_remainder

    def test_comment_only_block_yields_no_frame(self):
        frames, remainder = parse_event_frames(": keepalive\n: still here\n\n")

        assert frames == []
        assert remainder == ""

    def test_event_without_data_yields_no_frame(self):
        assert parse_event_block("event: message") is None

    def test_multiple_data_lines_join_with_newline(self):
        frame = parse_event_block("data: a\ndata: b\ndata: c")

        assert frame.data == "a\nb\nc"

    def test_only_one_leading_space_is_stripped(self):
        frame = parse_event_block("data:   indented")

        assert frame.data == "  indented"

    def test_event_name_defaults_to_message(self):
        frame = parse_event_block("data: hello")

        assert frame.event == "message"
        assert frame.id is None

    def test_event_name_is_trimmed(self):
        frame = parse_event_block("event:   mailbox  \ndata: x")

        assert frame.event == "mailbox"

    def test_unknown_lines_are_ignored(self):
        frame = parse_event_block("retry: 5000\nfoo\ndata: x")

        assert frame == EventFrame(data="x")

    def test_empty_data_line_still_counts(self):
        frame = parse_event_block("data:")

        assert frame == EventFrame(data="")

    def test_incomplete_block_is_kept(self):
        frames, remainder = parse_event_frames("event: message\ndata: partial\n")

        assert frames == []
        assert remainder == "event: message\ndata: partial\n"


class TestEventStreamParser:
    """Tests for the incremental parser."""

    def test_frame_split_across_reads(self):
        parser = EventStreamParser()

        assert parser.feed("data: hel") == []
        assert parser.has_buffered_data() is True

        frames = parser.feed("lo\n\n")
        assert frames == [EventFrame(data="hello")]
        assert parser.has_buffered_data() is False

    def test_crlf_boundary_split_across_reads(self):
        parser = EventStreamParser()

        assert parser.feed("data: x\r\n\r") == []
        assert parser.feed("\n") == [EventFrame(data="x")]

    def test_reset(self):
        parser = EventStreamParser()
        parser.feed("data: partial")

        parser.reset()

        assert parser.has_buffered_data() is False
        assert parser.feed("\n\n") == []


# ============================================================================
# Backoff Tests
# ============================================================================

class TestBackoff:
    """Tests for the reconnect backoff policy."""

    def test_doubles_up_to_ceiling(self):
        backoff = Backoff()

        delays = [backoff.next_delay() for _ in range(8)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0]

    def test_reset_returns_to_floor(self):
        backoff = Backoff()
        for _ in range(4):
            backoff.next_delay()

        backoff.reset()

        assert backoff.current == 1.0
        assert backoff.next_delay() == 1.0

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            Backoff(initial=5.0, maximum=1.0)


# ============================================================================
# EventStreamClient Tests
# ============================================================================

class TestEventStreamClient:
    """Tests for the stream client lifecycle."""

    @pytest.mark.asyncio
    async def test_message_frames_fire_trigger(self):
        requests = []
        wakes = []

        async def body():
            yield b"event: message\ndata: {\"id\": 1}\n\n"
            yield b": heartbeat\n\n"
            yield b"event: typing\ndata: bob\n\n"
            yield b"data: sec"
            yield b"ond\n\n"
            await hold_open()

        def handler(request):
            requests.append(request)
            return httpx.Response(200, headers=SSE_HEADERS, content=body())

        client = EventStreamClient(
            make_config(), lambda: wakes.append(1), transport=httpx.MockTransport(handler)
        )
        await client.start()
        await wait_until(lambda: len(wakes) == 2)

        assert client.state is StreamState.CONNECTED
        assert client.events_received == 3

        await client.stop()

        assert client.state is StreamState.STOPPED
        assert len(requests) == 1
        assert requests[0].url.path == "/api/stream"
        assert requests[0].url.params["token"] == "secret"
        assert requests[0].headers["accept"] == "text/event-stream"

    @pytest.mark.asyncio
    async def test_start_returns_before_connecting(self):
        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, content=hold_open_body())

        async def hold_open_body():
            await hold_open()
            yield b""

        client = EventStreamClient(make_config(), lambda: None, transport=httpx.MockTransport(handler))
        await client.start()

        assert client.is_running is True
        assert client.state is StreamState.IDLE

        await client.stop()

    @pytest.mark.asyncio
    async def test_stop_while_blocked_on_read(self):
        requests = []

        async def body():
            yield b"data: hello\n\n"
            await hold_open()

        def handler(request):
            requests.append(request)
            return httpx.Response(200, headers=SSE_HEADERS, content=body())

        wakes = []
        client = EventStreamClient(
            make_config(), lambda: wakes.append(1), transport=httpx.MockTransport(handler)
        )
        await client.start()
        await wait_until(lambda: wakes)

        await asyncio.wait_for(client.stop(), timeout=1.0)
        await asyncio.sleep(0.05)

        assert client.state is StreamState.STOPPED
        assert client.is_running is False
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_stop_interrupts_backoff_wait(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(503, text="unavailable")

        client = EventStreamClient(
            make_config(),
            lambda: None,
            transport=httpx.MockTransport(handler),
            backoff=Backoff(initial=10.0, maximum=30.0),
        )
        await client.start()
        await wait_until(lambda: client.state is StreamState.DISCONNECTED)

        await asyncio.wait_for(client.stop(), timeout=1.0)

        assert client.state is StreamState.STOPPED
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_backoff_grows_and_resets_after_success(self):
        calls = []

        async def short_stream():
            yield b"data: hi\n\n"

        def handler(request):
            calls.append(request)
            if len(calls) == 3:
                return httpx.Response(200, headers=SSE_HEADERS, content=short_stream())
            return httpx.Response(500, json={"error": "boom"})

        backoff = RecordingBackoff(initial=0.01, maximum=0.04)
        client = EventStreamClient(
            make_config(), lambda: None, transport=httpx.MockTransport(handler), backoff=backoff
        )
        await client.start()
        await wait_until(lambda: len(backoff.delays) >= 5)
        await client.stop()

        # fail, fail, connect then end (reset), fail, fail
        assert backoff.delays[:5] == [0.01, 0.02, 0.01, 0.02, 0.04]
        assert client.reconnect_count >= 5

    @pytest.mark.asyncio
    async def test_read_error_mid_stream_reconnects(self):
        calls = []
        wakes = []

        async def broken_stream():
            yield b"data: hello\n\n"
            raise httpx.ReadError("connection reset")

        async def quiet_stream():
            await hold_open()
            yield b""

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(500, text="warming up")
            if len(calls) == 2:
                return httpx.Response(200, headers=SSE_HEADERS, content=broken_stream())
            return httpx.Response(200, headers=SSE_HEADERS, content=quiet_stream())

        backoff = RecordingBackoff(initial=0.01, maximum=0.04)
        client = EventStreamClient(
            make_config(),
            lambda: wakes.append(1),
            transport=httpx.MockTransport(handler),
            backoff=backoff,
        )
        await client.start()
        await wait_until(lambda: len(calls) == 3 and client.state is StreamState.CONNECTED)

        # failed handshake, then the read error after a successful connect
        assert backoff.delays == [0.01, 0.01]
        assert client.reconnect_count == 2
        assert wakes == [1]

        await client.stop()

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = EventStreamClient(
            make_config(),
            lambda: None,
            transport=httpx.MockTransport(handler),
            backoff=Backoff(initial=0.01, maximum=0.02),
        )
        await client.start()
        await wait_until(lambda: len(calls) >= 3)
        await client.stop()

        assert client.state is StreamState.STOPPED

    @pytest.mark.asyncio
    async def test_last_event_id_sent_on_reconnect(self):
        requests = []

        async def first():
            yield b"id: 42\ndata: hello\n\n"

        async def second():
            await hold_open()
            yield b""

        def handler(request):
            requests.append(request)
            return httpx.Response(200, headers=SSE_HEADERS, content=first() if len(requests) == 1 else second())

        client = EventStreamClient(
            make_config(),
            lambda: None,
            transport=httpx.MockTransport(handler),
            backoff=Backoff(initial=0.01, maximum=0.02),
        )
        await client.start()
        await wait_until(lambda: len(requests) == 2)
        await client.stop()

        assert "last-event-id" not in requests[0].headers
        assert requests[1].headers["last-event-id"] == "42"

    @pytest.mark.asyncio
    async def test_missing_token_stops_without_connecting(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        client = EventStreamClient(
            make_config(token=""), lambda: None, transport=httpx.MockTransport(handler)
        )
        await client.start()
        await wait_until(lambda: client.state is StreamState.STOPPED)

        assert requests == []
        assert client.is_running is False

    @pytest.mark.asyncio
    async def test_disabled_stream_stays_idle(self):
        def handler(request):
            raise AssertionError("must not connect")

        client = EventStreamClient(
            make_config(stream_enabled=False), lambda: None, transport=httpx.MockTransport(handler)
        )
        await client.start()

        assert client.state is StreamState.IDLE
        assert client.is_running is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent_and_safe_before_start(self):
        client = EventStreamClient(make_config(), lambda: None)

        await client.stop()
        await client.stop()
        await client.start()

        assert client.state is StreamState.STOPPED
        assert client.is_running is False

    @pytest.mark.asyncio
    async def test_trigger_failures_do_not_end_session(self):
        async def body():
            yield b"data: one\n\n"
            yield b"data: two\n\n"
            await hold_open()

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, content=body())

        calls = []

        async def failing_trigger():
            calls.append(1)
            raise RuntimeError("host unavailable")

        client = EventStreamClient(
            make_config(), failing_trigger, transport=httpx.MockTransport(handler)
        )
        await client.start()
        await wait_until(lambda: len(calls) == 2)

        assert client.state is StreamState.CONNECTED
        assert client.reconnect_count == 0

        await client.stop()

    @pytest.mark.asyncio
    async def test_sync_trigger_failure_is_isolated(self):
        async def body():
            yield b"data: one\n\n"
            yield b"data: two\n\n"
            await hold_open()

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, content=body())

        calls = []

        def failing_trigger():
            calls.append(1)
            raise RuntimeError("boom")

        client = EventStreamClient(
            make_config(), failing_trigger, transport=httpx.MockTransport(handler)
        )
        await client.start()
        await wait_until(lambda: len(calls) == 2)

        assert client.state is StreamState.CONNECTED

        await client.stop()
