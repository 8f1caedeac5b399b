"""
LiveMark Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

from pathlib import Path

import pytest

from fakes import BASE_MTIME_NS, DEBOUNCE_MS, FakeWatchFactory, touch
from watcher.debouncer import Debouncer
from watcher.registry import WatchRegistry


@pytest.fixture
def sample_markdown() -> str:
    """Sample document content."""
    return "# Notes\n\nSome *markdown* text.\n"


@pytest.fixture
def text_file(tmp_path: Path, sample_markdown: str) -> Path:
    """A markdown file with a pinned, old modification time."""
    path = tmp_path / "notes.md"
    path.write_text(sample_markdown)
    touch(path, BASE_MTIME_NS)
    return path.resolve()


@pytest.fixture
def watch_factory() -> FakeWatchFactory:
    """Counting stand-in for OS watches."""
    return FakeWatchFactory()


@pytest.fixture
def debouncer() -> Debouncer:
    """Debouncer with a short window."""
    return Debouncer(delay_ms=DEBOUNCE_MS)


@pytest.fixture
def registry(debouncer: Debouncer, watch_factory: FakeWatchFactory) -> WatchRegistry:
    """Registry wired to the fake watch factory."""
    return WatchRegistry(debouncer=debouncer, start_watch=watch_factory)
