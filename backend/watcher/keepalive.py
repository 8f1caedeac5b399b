"""
LiveMark Keepalive Ticker.

Pings every open channel so idle push connections survive proxies.
Requires Python 3.11+.
"""

import asyncio

from utils.errors import ChannelClosedError
from utils.logger import LoggerMixin
from watcher.registry import WatchRegistry


class KeepaliveTicker(LoggerMixin):
    """
    Process-wide periodic ping of all subscribed channels.

    A ping that cannot be written is handled exactly like a client
    disconnect: the channel is unsubscribed and closed.
    """

    def __init__(self, registry: WatchRegistry, interval_s: float = 30.0) -> None:
        """
        Initialize the ticker.

        Args:
            registry: Registry whose channels are pinged
            interval_s: Seconds between pings
        """
        self._registry = registry
        self._interval = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Check if the ticker task is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the ticker on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="livemark-keepalive")
        self.log.info("keepalive_started", interval_s=self._interval)

    async def stop(self) -> None:
        """Cancel the ticker and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.log.info("keepalive_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()

    def tick(self) -> int:
        """
        Ping every channel once.

        Returns:
            Number of channels that accepted the ping
        """
        pinged = 0
        dropped = 0
        for channel in self._registry.channels():
            try:
                channel.ping()
                pinged += 1
            except ChannelClosedError as e:
                self.log.warning("keepalive_failed", error=str(e))
                self._registry.disconnect(channel)
                dropped += 1

        self.log.debug("keepalive_tick", pinged=pinged, dropped=dropped)
        return pinged
