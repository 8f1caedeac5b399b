"""
LiveMark Watch Registry.

Tracks which channels view which files and owns the OS watch per file.
Requires Python 3.11+.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path

from utils.errors import ChannelClosedError, ResourceExhaustedError, WatchStartError
from utils.logger import LoggerMixin
from watcher.channel import BroadcastMessage, Channel
from watcher.debouncer import Debouncer
from watcher.file_watcher import WatchHandle, WatchStarter, start_file_watch


@dataclass(eq=False)
class WatchEntry:
    """
    Per-file registry state.

    An entry without a handle is degraded: its subscribers stay
    connected but receive no reloads until a later subscription
    manages to start the watch.
    """

    path: Path
    subscribers: set[Channel] = field(default_factory=set)
    handle: WatchHandle | None = None

    @property
    def is_watching(self) -> bool:
        """Whether an OS watch is live for this entry."""
        return self.handle is not None


class WatchRegistry(LoggerMixin):
    """
    Single source of truth for "who is watching what".

    Keeps exactly one OS watch per file regardless of the number of
    subscribers, fans change events out to them and tears the watch
    down with the last subscriber. An entry exists iff it has at least
    one subscriber.

    Every public method runs under one re-entrant lock and never
    awaits, so subscribe, unsubscribe and notify cannot interleave.
    """

    def __init__(
        self,
        debouncer: Debouncer | None = None,
        start_watch: WatchStarter | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            debouncer: Debouncer feeding notify(); one is created if omitted
            start_watch: Factory for OS watches (tests pass a double)
        """
        self._debouncer = debouncer or Debouncer()
        self._debouncer.set_callback(self.notify)
        self._start_watch = start_watch or start_file_watch
        self._entries: dict[Path, WatchEntry] = {}
        self._channel_paths: dict[Channel, Path] = {}
        self._lock = threading.RLock()

    @property
    def debouncer(self) -> Debouncer:
        """The debouncer feeding this registry."""
        return self._debouncer

    def subscribe(self, path: Path, channel: Channel) -> BroadcastMessage:
        """
        Subscribe a channel to a file and confirm with a connected message.

        Args:
            path: Canonical path (already validated by the path guard)
            channel: The subscriber's push channel

        Returns:
            The connected message that was delivered on the channel

        Raises:
            ResourceExhaustedError: If no watch could be allocated for a new entry
            ChannelClosedError: If the channel failed before confirmation
        """
        self._debouncer.ensure_event_loop()

        with self._lock:
            previous = self._channel_paths.get(channel)
            if previous is not None and previous != path:
                self.unsubscribe(previous, channel)

            entry = self._entries.get(path)
            created = entry is None
            if entry is None:
                entry = WatchEntry(path=path)
                self._entries[path] = entry
                self._debouncer.prime(path)

            if entry.handle is None:
                try:
                    self._start(entry)
                except ResourceExhaustedError:
                    if created:
                        del self._entries[path]
                        self._debouncer.forget(path)
                    raise

            entry.subscribers.add(channel)
            self._channel_paths[channel] = path

            try:
                channel.send(BroadcastMessage.CONNECTED)
            except ChannelClosedError:
                self.unsubscribe(path, channel)
                raise

            self.log.info(
                "channel_subscribed",
                path=path,
                subscribers=len(entry.subscribers),
                watching=entry.is_watching,
            )
            return BroadcastMessage.CONNECTED

    def _start(self, entry: WatchEntry) -> None:
        """Try to start the OS watch for an entry; degrade on failure."""
        try:
            entry.handle = self._start_watch(entry.path, self._debouncer.signal_threadsafe)
        except WatchStartError as e:
            self.log.warning("watch_start_failed", path=entry.path, reason=e.reason)

    def unsubscribe(self, path: Path, channel: Channel) -> None:
        """
        Remove a channel from a file's subscribers.

        Stops the watch and drops the entry when the last subscriber
        leaves. Unknown paths and channels are ignored.
        """
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or channel not in entry.subscribers:
                return

            entry.subscribers.discard(channel)
            if self._channel_paths.get(channel) == path:
                del self._channel_paths[channel]

            self.log.info(
                "channel_unsubscribed",
                path=path,
                subscribers=len(entry.subscribers),
            )

            if not entry.subscribers:
                self._remove(entry)

    def _remove(self, entry: WatchEntry) -> None:
        """Release an entry's watch and forget it."""
        del self._entries[entry.path]
        self._debouncer.forget(entry.path)

        handle, entry.handle = entry.handle, None
        if handle is not None:
            try:
                handle.stop()
            except Exception as e:
                self.log.error("watch_stop_failed", path=entry.path, error=str(e))

    def disconnect(self, channel: Channel) -> None:
        """Unsubscribe a channel from whatever file it views and close it."""
        with self._lock:
            path = self._channel_paths.get(channel)
            if path is not None:
                self.unsubscribe(path, channel)
        channel.close()

    def notify(self, path: Path) -> int:
        """
        Push a reload message to every subscriber of a file.

        A channel whose write fails is disconnected once the fan-out is
        done; the remaining subscribers still receive the message.

        Returns:
            Number of channels the message was delivered to
        """
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return 0

            delivered = 0
            failed: list[Channel] = []
            for channel in list(entry.subscribers):
                try:
                    channel.send(BroadcastMessage.RELOAD)
                    delivered += 1
                except Exception as e:
                    self.log.warning("channel_write_failed", path=path, error=str(e))
                    failed.append(channel)

            for channel in failed:
                self.disconnect(channel)

            self.log.info("reload_broadcast", path=path, delivered=delivered, dropped=len(failed))
            return delivered

    def shutdown(self) -> None:
        """Stop every watch and close every channel."""
        with self._lock:
            entries = list(self._entries.values())
            for entry in entries:
                channels = list(entry.subscribers)
                entry.subscribers.clear()
                self._remove(entry)
                for channel in channels:
                    channel.close()
            self._channel_paths.clear()
            self._debouncer.clear()

        self.log.info("registry_shutdown", closed_entries=len(entries))

    def subscriber_count(self, path: Path) -> int:
        """Get the number of subscribers for a file."""
        with self._lock:
            entry = self._entries.get(path)
            return len(entry.subscribers) if entry else 0

    def is_watching(self, path: Path) -> bool:
        """Check whether a live OS watch exists for a file."""
        with self._lock:
            entry = self._entries.get(path)
            return entry is not None and entry.is_watching

    def last_modified_ns(self, path: Path) -> int | None:
        """Get the last modification time the debouncer saw for a file."""
        return self._debouncer.last_seen(path)

    def watched_paths(self) -> frozenset[Path]:
        """Get all files with at least one subscriber."""
        with self._lock:
            return frozenset(self._entries)

    def channels(self) -> list[Channel]:
        """Snapshot of every subscribed channel."""
        with self._lock:
            return list(self._channel_paths)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
