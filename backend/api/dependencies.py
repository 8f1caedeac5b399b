"""
LiveMark API Dependencies.

Shared dependencies for FastAPI routes.
Requires Python 3.11+.
"""

from pathlib import Path
from typing import Any

from fastapi import Depends, HTTPException, Query

from utils.config import ServerSettings, WatcherSettings, get_settings
from watcher.path_guard import require_file
from watcher.registry import WatchRegistry


# Shared state - populated by main.py lifespan
_state: dict[str, Any] = {}


def set_registry(registry: WatchRegistry | None) -> None:
    """Set the shared watch registry instance."""
    _state["registry"] = registry


def get_registry() -> WatchRegistry | None:
    """Get the shared watch registry instance."""
    return _state.get("registry")


def require_registry() -> WatchRegistry:
    """
    Dependency that requires a running watch registry.

    Raises HTTPException if the application has not started.
    """
    registry = get_registry()
    if registry is None:
        raise HTTPException(
            status_code=503,
            detail="File watching unavailable",
        )
    return registry


def get_server_settings() -> ServerSettings:
    """Server settings, overridable in tests."""
    return get_settings().server


def get_watcher_settings() -> WatcherSettings:
    """Watcher settings, overridable in tests."""
    return get_settings().watcher


def resolve_target(
    path: str | None = Query(default=None, description="Absolute path of the file"),
    server: ServerSettings = Depends(get_server_settings),
) -> Path:
    """
    Dependency that turns the ``path`` query parameter into a servable file.

    Falls back to the configured default file when no path is given.

    Raises:
        InvalidPathError: If the path escapes the root or is not a regular file
    """
    if path is None:
        if server.default_file is None:
            raise HTTPException(status_code=400, detail="No file specified")
        path = str(server.default_file)

    # Query parameters arrive already URL-decoded
    return require_file(path, server.root, url_encoded=False)
