"""
LiveMark Error Hierarchy.

All LiveMark-specific errors inherit from LiveMarkError for easy catching.
Requires Python 3.11+.
"""

from pathlib import Path


class LiveMarkError(Exception):
    """Base error for all LiveMark operations."""


class InvalidPathError(LiveMarkError):
    """A requested path is outside the root or does not name a regular file."""

    def __init__(self, raw_path: str, reason: str, *, forbidden: bool = False) -> None:
        super().__init__(f"{reason}: {raw_path}")
        self.raw_path = raw_path
        self.reason = reason
        self.forbidden = forbidden


class WatchStartError(LiveMarkError):
    """The OS-level watch for a file could not be established."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot watch {path}: {reason}")
        self.path = path
        self.reason = reason


class ResourceExhaustedError(LiveMarkError):
    """The process ran out of watch descriptors or file handles."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Out of watch resources for {path}: {reason}")
        self.path = path
        self.reason = reason


class StaleReadError(LiveMarkError):
    """A file vanished between a change notification and the content re-fetch."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Error reading file: {reason}")
        self.path = path
        self.reason = reason


class ChannelClosedError(LiveMarkError):
    """A push channel can no longer accept messages."""
