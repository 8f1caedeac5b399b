"""
LiveMark File Watcher Package.

Per-file watches, debouncing and subscriber fan-out.
Requires Python 3.11+.
"""

from watcher.channel import BroadcastMessage, Channel, SSEChannel, format_frame
from watcher.debouncer import Debouncer
from watcher.file_watcher import FileWatcher, start_file_watch
from watcher.keepalive import KeepaliveTicker
from watcher.path_guard import require_file, validate_path
from watcher.registry import WatchEntry, WatchRegistry

__all__ = [
    "BroadcastMessage",
    "Channel",
    "SSEChannel",
    "format_frame",
    "Debouncer",
    "FileWatcher",
    "start_file_watch",
    "KeepaliveTicker",
    "require_file",
    "validate_path",
    "WatchEntry",
    "WatchRegistry",
]
