"""
LiveMark Path Guard.

Canonicalizes requested file paths and enforces root confinement.
Requires Python 3.11+.
"""

import os
from pathlib import Path
from urllib.parse import unquote

from utils.errors import InvalidPathError


def canonicalize(raw_path: str, *, url_encoded: bool = True) -> Path | None:
    """
    Resolve a raw path string to an absolute, symlink-free path.

    Args:
        raw_path: Path as received from the client
        url_encoded: Whether the string still carries URL escapes

    Returns:
        The canonical path, or None if the input cannot name a file
    """
    if url_encoded:
        raw_path = unquote(raw_path)
    if not raw_path or "\x00" in raw_path:
        return None

    try:
        return Path(raw_path).expanduser().resolve()
    except (OSError, RuntimeError):
        # RuntimeError: symlink loop on older interpreters
        return None


def is_within(path: Path, root: Path) -> bool:
    """Check that a canonical path equals root or lies below it."""
    path_str = str(path)
    root_str = str(root)
    if path_str == root_str:
        return True
    if not root_str.endswith(os.sep):
        root_str += os.sep
    return path_str.startswith(root_str)


def validate_path(
    raw_path: str,
    root: Path | str | None = None,
    *,
    url_encoded: bool = True,
) -> Path | None:
    """
    Validate a requested path against an optional confinement root.

    The prefix check runs on the resolved path, so ``..`` segments and
    symlinks cannot escape the root. Existence is not checked here.

    Args:
        raw_path: Path as received from the client
        root: Directory the path must stay within, if any
        url_encoded: Whether raw_path still carries URL escapes

    Returns:
        Canonical path, or None if the path is rejected
    """
    path = canonicalize(raw_path, url_encoded=url_encoded)
    if path is None:
        return None

    if root is None:
        return path

    canonical_root = Path(root).expanduser().resolve()
    if not is_within(path, canonical_root):
        return None
    return path


def require_file(
    raw_path: str,
    root: Path | str | None = None,
    *,
    url_encoded: bool = True,
) -> Path:
    """
    Validate a path and confirm it names an existing regular file.

    Raises:
        InvalidPathError: If the path is rejected or is not a regular file
    """
    path = validate_path(raw_path, root, url_encoded=url_encoded)
    if path is None:
        raise InvalidPathError(raw_path, "Access denied", forbidden=True)
    if not path.is_file():
        raise InvalidPathError(raw_path, "File not found")
    return path
