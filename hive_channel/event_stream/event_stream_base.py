"""
Event Stream Framing

This module decodes the line-oriented event-stream protocol served by the
Hive stream endpoint. Frames are separated by a blank line; within a frame,
``event:`` names the event, ``data:`` lines carry the payload and ``id:``
carries the event id. Comment lines start with ``:``.

Reads from the network never line up with frame boundaries, so decoding is
incremental: complete frames are consumed and the remainder is kept for the
next read.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


logger = logging.getLogger(__name__)


DEFAULT_EVENT = "message"

# One blank line, LF or CRLF line endings
FRAME_BOUNDARY = re.compile(r"\r?\n\r?\n")
LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class EventFrame:
    """One decoded frame of the event stream."""

    data: str
    event: str = DEFAULT_EVENT
    id: Optional[str] = None


def parse_event_block(block: str) -> Optional[EventFrame]:
    """
    Decode a single frame block (without its terminating blank line).

    Args:
        block: Raw block text

    Returns:
        The decoded frame, or None if the block carried no data lines
    """
    event = DEFAULT_EVENT
    event_id = None
    data_lines: List[str] = []

    for line in LINE_SPLIT.split(block):
        if not line or line.startswith(":"):
            continue

        if line.startswith("event:"):
            event = line[len("event:"):].strip() or DEFAULT_EVENT
        elif line.startswith("data:"):
            value = line[len("data:"):]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
        elif line.startswith("id:"):
            event_id = line[len("id:"):].strip()

    # heartbeat / comment-only blocks
    if not data_lines:
        return None

    return EventFrame(data="\n".join(data_lines), event=event, id=event_id)


def parse_event_frames(buffer: str) -> Tuple[List[EventFrame], str]:
    """
    Decode every complete frame in an accumulated buffer.

    Args:
        buffer: Text received so far

    Returns:
        Tuple of (frames in stream order, unconsumed remainder)
    """
    frames: List[EventFrame] = []
    position = 0

    while True:
        match = FRAME_BOUNDARY.search(buffer, position)
        if match is None:
            break

        frame = parse_event_block(buffer[position:match.start()])
        if frame is not None:
            frames.append(frame)
        position = match.end()

    return frames, buffer[position:]


class EventStreamParser:
    """
    Incremental parser for the event stream.

    Feed decoded text as it arrives; each call returns the frames completed
    by that chunk.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, text: str) -> List[EventFrame]:
        """
        Feed text to the parser and return completed frames.

        Args:
            text: Newly received text

        Returns:
            List of decoded frames
        """
        frames, self._buffer = parse_event_frames(self._buffer + text)
        return frames

    def reset(self) -> None:
        """Drop any partially received frame."""
        if self._buffer:
            logger.debug(f"Discarding {len(self._buffer)} buffered characters")
        self._buffer = ""

    def has_buffered_data(self) -> bool:
        """Check if there's buffered data waiting for more input."""
        return bool(self._buffer)


__all__ = [
    "DEFAULT_EVENT",
    "EventFrame",
    "EventStreamParser",
    "parse_event_block",
    "parse_event_frames",
]
