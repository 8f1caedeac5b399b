"""
LiveMark Broadcast Channels.

Server-Sent Events streams that carry change notifications to browsers.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import AsyncIterator
from enum import Enum
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from utils.errors import ChannelClosedError
from utils.logger import LoggerMixin


class BroadcastMessage(str, Enum):
    """Messages pushed to subscribers. None carries a payload."""

    CONNECTED = "connected"
    RELOAD = "reload"
    KEEPALIVE = "keepalive"


def format_frame(message: BroadcastMessage) -> str:
    """
    Frame a message for the text/event-stream wire format.

    Keepalives are SSE comments, which EventSource consumers ignore.
    """
    if message is BroadcastMessage.KEEPALIVE:
        return ": keepalive\n\n"
    return f"data: {message.value}\n\n"


class Channel(Protocol):
    """What the registry needs from a subscriber connection."""

    def send(self, message: BroadcastMessage) -> None: ...

    def ping(self) -> None: ...

    def close(self) -> None: ...


class SSEChannel(LoggerMixin):
    """
    One browser's push connection.

    Frames are buffered in a bounded queue that the HTTP response drains
    via frames(). A full queue means the client stopped reading, which
    is reported as ChannelClosedError just like an explicit close.
    Compared and hashed by identity.
    """

    def __init__(self, path: Path, max_queue: int = 64) -> None:
        """
        Initialize the channel.

        Args:
            path: Canonical path this channel is subscribed to
            max_queue: Frames buffered before the client counts as gone
        """
        self.client_id = uuid4().hex
        self.path = path
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_queue)
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed

    @property
    def backlog(self) -> int:
        """Number of frames waiting to be written."""
        return self._queue.qsize()

    def _put(self, frame: str) -> None:
        if self._closed:
            raise ChannelClosedError(f"Channel {self.client_id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as e:
            raise ChannelClosedError(
                f"Channel {self.client_id} is not draining ({self._queue.maxsize} frames queued)"
            ) from e

    def send(self, message: BroadcastMessage) -> None:
        """
        Queue a message for delivery.

        Raises:
            ChannelClosedError: If the channel is closed or its client stalled
        """
        self._put(format_frame(message))

    def ping(self) -> None:
        """Queue a keepalive comment frame."""
        self._put(format_frame(BroadcastMessage.KEEPALIVE))

    def close(self) -> None:
        """Close the channel and end its frame stream."""
        if self._closed:
            return
        self._closed = True

        # Drop undelivered frames so the end-of-stream marker always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        self.log.debug("channel_closed", client_id=self.client_id, path=self.path)

    async def frames(self) -> AsyncIterator[bytes]:
        """
        Yield encoded frames until the channel is closed.

        Used as the body iterator of the streaming HTTP response.
        """
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame.encode("utf-8")

    def __repr__(self) -> str:
        return f"SSEChannel(client_id={self.client_id!r}, path={str(self.path)!r})"
