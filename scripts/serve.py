#!/usr/bin/env python3
"""
LiveMark Server Script.

Serves a text file in the browser and reloads it whenever it changes.
Requires Python 3.11+.

Usage:
    python scripts/serve.py /path/to/file.md
    python scripts/serve.py --port 8080 --root ~/docs ~/docs/notes.md
"""

import argparse
import os
import sys
import threading
import webbrowser
from pathlib import Path
from urllib.parse import quote

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Local file viewer with live reload",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # View a file
    python scripts/serve.py README.md

    # Custom port, only allow files under ~/docs
    python scripts/serve.py --port 8080 --root ~/docs ~/docs/notes.md
        """,
    )

    parser.add_argument(
        "file",
        type=Path,
        nargs="?",
        help="File to open (any file under --root can be viewed via ?path=)",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=3000, help="Bind port")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Only allow files under this directory",
    )
    parser.add_argument(
        "--open",
        action="store_true",
        help="Open the viewer in the default browser",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default="console",
        help="Log output format",
    )

    args = parser.parse_args()

    if args.file is None and args.root is None:
        print("Error: no file specified. Usage: serve.py <file.md>", file=sys.stderr)
        sys.exit(1)

    file_path = args.file.expanduser().resolve() if args.file else None
    if file_path is not None and not file_path.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        sys.exit(1)

    # Settings are read from the environment when the app module loads
    os.environ["SERVER_HOST"] = args.host
    os.environ["SERVER_PORT"] = str(args.port)
    os.environ["LOG_FORMAT"] = args.log_format
    if file_path is not None:
        os.environ["SERVER_DEFAULT_FILE"] = str(file_path)
    if args.root is not None:
        os.environ["SERVER_ROOT"] = str(args.root.expanduser().resolve())

    import uvicorn

    from api.main import app
    from utils.logger import get_logger

    logger = get_logger("serve")
    url = f"http://{args.host}:{args.port}/"
    if file_path is not None:
        url += f"?path={quote(str(file_path), safe='')}"

    logger.info("viewer_ready", url=url, file=file_path, root=args.root)

    if args.open:
        # Give uvicorn a moment to bind before the browser asks for the page
        threading.Timer(1.0, webbrowser.open, args=(url,)).start()

    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")


if __name__ == "__main__":
    main()
