"""
LiveMark File Watcher.

Cross-platform single-file monitoring using watchdog.
Requires Python 3.11+.
"""

import errno
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from utils.config import get_settings
from utils.errors import ResourceExhaustedError, WatchStartError
from utils.logger import LoggerMixin

# Errors that mean the process is out of watch resources, not that
# this one file is unwatchable.
_EXHAUSTION_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE, errno.ENOSPC, errno.ENOMEM})


class WatchHandle(Protocol):
    """A live OS-level watch that can be released."""

    def stop(self) -> None: ...


# Starts a watch for a path and calls the callback (from any thread) on raw events
WatchStarter = Callable[[Path, Callable[[Path], None]], WatchHandle]


def _decode(path: str | bytes) -> str:
    """Normalize watchdog event paths to str."""
    if isinstance(path, bytes):
        return path.decode()
    return path


class SingleFileHandler(FileSystemEventHandler, LoggerMixin):
    """
    Handles directory events and forwards those that touch one file.

    The parent directory is watched rather than the file itself, so a
    save that replaces the file's inode (write a temp file, rename it over
    the watched path) is still reported.
    """

    def __init__(self, path: Path, on_event: Callable[[Path], None]) -> None:
        """
        Initialize the file handler.

        Args:
            path: Canonical path of the watched file
            on_event: Called with the watched path for every raw event
        """
        super().__init__()
        self._path = path
        self._target = str(path)
        self._on_event = on_event

    def _matches(self, path: str | bytes) -> bool:
        return _decode(path) == self._target

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        """Handle file creation (e.g. recreate after delete)."""
        if isinstance(event, DirCreatedEvent) or not self._matches(event.src_path):
            return
        self._on_event(self._path)

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        """Handle file modification."""
        if isinstance(event, DirModifiedEvent) or not self._matches(event.src_path):
            return
        self._on_event(self._path)

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        """Handle file deletion."""
        if isinstance(event, DirDeletedEvent) or not self._matches(event.src_path):
            return
        self._on_event(self._path)

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        """Handle renames onto or away from the watched file."""
        if isinstance(event, DirMovedEvent):
            return
        if self._matches(event.src_path) or self._matches(event.dest_path):
            self._on_event(self._path)


class FileWatcher(LoggerMixin):
    """
    Watches one file for changes.

    Owns a dedicated watchdog observer scheduled on the file's parent
    directory (non-recursive). Raw events are passed straight to the
    callback on the observer thread; debouncing happens downstream.
    """

    def __init__(
        self,
        path: Path,
        on_event: Callable[[Path], None],
        stop_timeout: float | None = None,
    ) -> None:
        """
        Initialize the file watcher.

        Args:
            path: Canonical path of the file to watch
            on_event: Callback for raw events, invoked on the observer thread
            stop_timeout: Seconds to wait for the observer thread on stop
        """
        settings = get_settings()

        self._path = path
        self._handler = SingleFileHandler(path, on_event)
        self._stop_timeout = stop_timeout or settings.watcher.stop_timeout_s
        self._observer: Any | None = None
        self._running = False

    @property
    def path(self) -> Path:
        """Path of the watched file."""
        return self._path

    def start(self) -> None:
        """
        Start watching the file.

        Raises:
            WatchStartError: If the file or its directory cannot be watched
            ResourceExhaustedError: If the OS refuses another watch
        """
        if self._running:
            return

        if not self._path.is_file():
            raise WatchStartError(self._path, "file not found")

        observer = Observer()
        try:
            observer.schedule(
                self._handler,
                str(self._path.parent),
                recursive=False,
            )
            observer.start()
        except OSError as e:
            if e.errno in _EXHAUSTION_ERRNOS:
                raise ResourceExhaustedError(self._path, e.strerror or str(e)) from e
            raise WatchStartError(self._path, e.strerror or str(e)) from e

        self._observer = observer
        self._running = True
        self.log.info("watch_started", path=self._path)

    def stop(self) -> None:
        """Stop watching the file."""
        if not self._running:
            return

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=self._stop_timeout)
            self._observer = None

        self._running = False
        self.log.info("watch_stopped", path=self._path)

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def __enter__(self) -> "FileWatcher":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()


def start_file_watch(path: Path, on_event: Callable[[Path], None]) -> FileWatcher:
    """
    Start a watchdog-backed watch for a single file.

    Args:
        path: Canonical path of the file
        on_event: Callback for raw events (called from the observer thread)

    Returns:
        The running FileWatcher
    """
    watcher = FileWatcher(path, on_event)
    watcher.start()
    return watcher
