"""
LiveMark Event Stream Routes.

Server-Sent Events push channel for live reload.
Requires Python 3.11+.
"""

from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from api.dependencies import get_watcher_settings, require_registry, resolve_target
from utils.config import WatcherSettings
from utils.logger import get_logger
from watcher.channel import SSEChannel
from watcher.registry import WatchRegistry

router = APIRouter()
logger = get_logger("api.events")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Keepalives are queued on each channel by KeepaliveTicker; the response's
# own pinger only runs as a fallback far beyond the ticker interval
RESPONSE_PING_S = 24 * 60 * 60


def keepalive_event() -> ServerSentEvent:
    """Fallback ping in the same comment format as channel keepalives."""
    return ServerSentEvent(comment="keepalive", sep="\n")


def open_channel(registry: WatchRegistry, path: Path, max_queue: int = 64) -> SSEChannel:
    """
    Create a channel for a file and subscribe it.

    The connected message is queued before this returns, so it is the
    first frame the client reads.
    """
    channel = SSEChannel(path, max_queue=max_queue)
    registry.subscribe(path, channel)
    logger.info("channel_opened", client_id=channel.client_id, path=path)
    return channel


async def event_stream(registry: WatchRegistry, channel: SSEChannel) -> AsyncIterator[bytes]:
    """
    Stream a channel's frames until either side closes it.

    Client disconnects and server shutdown cancel this generator; the
    subscription is released on every exit path.
    """
    try:
        async for frame in channel.frames():
            yield frame
    finally:
        release_channel(registry, channel)


def release_channel(registry: WatchRegistry, channel: SSEChannel) -> None:
    """Unsubscribe and close a channel. Safe to call more than once."""
    if channel.closed and channel not in registry.channels():
        return
    registry.disconnect(channel)
    logger.info("channel_released", client_id=channel.client_id, path=channel.path)


async def _release_after_response(registry: WatchRegistry, channel: SSEChannel) -> None:
    # Runs on the event loop once the response ends, even if the body
    # iterator was cancelled before its first step
    release_channel(registry, channel)


@router.get("/events")
async def events(
    path: Path = Depends(resolve_target),
    registry: WatchRegistry = Depends(require_registry),
    watcher_settings: WatcherSettings = Depends(get_watcher_settings),
) -> EventSourceResponse:
    """
    Push channel for one file.

    Clients receive:
    - ``data: connected`` once subscribed
    - ``data: reload`` whenever the file content changes
    - ``: keepalive`` comments while idle

    The stream ends when the client disconnects or the server is told
    to exit, so uvicorn's graceful shutdown never waits on open viewers.
    """
    channel = open_channel(registry, path, max_queue=watcher_settings.channel_queue_size)
    return EventSourceResponse(
        event_stream(registry, channel),
        headers=SSE_HEADERS,
        background=BackgroundTask(_release_after_response, registry, channel),
        ping=RESPONSE_PING_S,
        sep="\n",
        ping_message_factory=keepalive_event,
    )
