"""
LiveMark File Routes.

Serves the current text of a watched file.
Requires Python 3.11+.
"""

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from api.dependencies import resolve_target
from utils.errors import StaleReadError

router = APIRouter()


def read_file_text(path: Path) -> str:
    """
    Read a validated file as UTF-8 text.

    Raises:
        StaleReadError: If the file vanished or became unreadable after validation
    """
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise StaleReadError(path, e.strerror or str(e)) from e


@router.get("/file", response_class=PlainTextResponse)
async def get_file(path: Path = Depends(resolve_target)) -> PlainTextResponse:
    """Return the file's current content. Never cached."""
    return PlainTextResponse(
        read_file_text(path),
        headers={"Cache-Control": "no-cache"},
    )
