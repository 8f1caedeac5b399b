"""
LiveMark Debouncer.

Collapses bursts of raw file system events into single change events.
Requires Python 3.11+.
"""

import asyncio
import inspect
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from utils.logger import LoggerMixin


class Debouncer(LoggerMixin):
    """
    Debounces raw file events per file and filters metadata-only churn.

    The first raw signal for a file starts a timer; further signals for
    the same file are ignored until it fires. On fire the file is
    re-stat'ed and the callback runs only if its modification time is
    strictly newer than the last one seen, so editors that save through
    a temp file and a rename produce exactly one change event.

    All state is touched on the event loop thread. Watchdog observer
    threads must go through signal_threadsafe().
    """

    def __init__(
        self,
        delay_ms: int = 200,
        callback: Callable[[Path], Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period in milliseconds before a change is emitted
            callback: Function called with the path of a changed file
            loop: Event loop that owns the timers
        """
        self._delay = delay_ms / 1000.0
        self._callback = callback
        self._loop = loop
        self._pending: dict[Path, asyncio.TimerHandle] = {}
        self._last_seen: dict[Path, int] = {}
        self._lock = threading.Lock()

    def set_callback(self, callback: Callable[[Path], Any]) -> None:
        """Set or update the callback function."""
        self._callback = callback

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop that owns the timers."""
        self._loop = loop

    def ensure_event_loop(self) -> None:
        """Adopt the running event loop if none was set explicitly."""
        if self._loop is not None:
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

    @property
    def delay(self) -> float:
        """Debounce window in seconds."""
        return self._delay

    def prime(self, path: Path) -> int:
        """
        Record the current modification time of a newly watched file.

        Returns:
            The recorded mtime in nanoseconds (0 if the file cannot be stat'ed)
        """
        try:
            mtime = os.stat(path).st_mtime_ns
        except OSError:
            mtime = 0
        with self._lock:
            self._last_seen[path] = mtime
        return mtime

    def forget(self, path: Path) -> None:
        """Drop the mtime record for a file. A pending timer still fires."""
        with self._lock:
            self._last_seen.pop(path, None)

    def last_seen(self, path: Path) -> int | None:
        """Get the last modification time seen for a file."""
        with self._lock:
            return self._last_seen.get(path)

    def signal(self, path: Path) -> None:
        """
        Register a raw change signal for a file.

        Must be called on the event loop thread.

        Args:
            path: Canonical path of the file that changed
        """
        loop = self._loop or asyncio.get_running_loop()
        with self._lock:
            if path in self._pending:
                return
            self._pending[path] = loop.call_later(self._delay, self._fire, path)

    def signal_threadsafe(self, path: Path) -> None:
        """Forward a raw signal from a watcher thread to the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self.log.warning("debouncer_without_loop", path=path)
            return
        loop.call_soon_threadsafe(self.signal, path)

    def _fire(self, path: Path) -> None:
        """Re-stat a file after its quiet period and emit if it changed."""
        with self._lock:
            self._pending.pop(path, None)
            last = self._last_seen.get(path)

        if last is None:
            # Nobody watches this file any more
            return

        try:
            mtime = os.stat(path).st_mtime_ns
        except OSError as e:
            # Deleted or mid atomic-save; it may come back
            self.log.debug("debounced_stat_failed", path=path, error=str(e))
            return

        if mtime <= last:
            self.log.debug("debounced_without_change", path=path)
            return

        with self._lock:
            self._last_seen[path] = mtime

        self.log.debug("file_changed", path=path, mtime_ns=mtime)
        self._emit(path)

    def _emit(self, path: Path) -> None:
        """Hand a changed path to the callback."""
        if self._callback is None:
            return
        try:
            if inspect.iscoroutinefunction(self._callback):
                loop = self._loop or asyncio.get_running_loop()
                loop.create_task(self._callback(path))
            else:
                self._callback(path)
        except Exception as e:
            self.log.error("debounce_callback_failed", path=path, error=str(e))

    def flush(self) -> list[Path]:
        """
        Fire every pending timer immediately.

        Returns:
            Paths that had a pending timer
        """
        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()

        for path, handle in pending:
            handle.cancel()
            self._fire(path)

        return [path for path, _ in pending]

    def clear(self) -> None:
        """Cancel all pending timers without emitting."""
        with self._lock:
            for handle in self._pending.values():
                handle.cancel()
            self._pending.clear()

    @property
    def pending_count(self) -> int:
        """Get number of files with a pending timer."""
        with self._lock:
            return len(self._pending)

    @property
    def pending_paths(self) -> list[Path]:
        """Get list of paths with a pending timer."""
        with self._lock:
            return list(self._pending.keys())
