"""
LiveMark Viewer Routes.

Minimal HTML shell that shows a file and follows its changes.
Requires Python 3.11+.
"""

import html
import json
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from api.dependencies import resolve_target

router = APIRouter()


# Loads the file, then re-fetches it on every reload event while keeping
# the scroll position. EventSource reconnects on its own after errors.
_LIVE_RELOAD_SCRIPT = """\
<script data-livemark>
(function() {
  var target = %(path)s;
  var query = '?path=' + encodeURIComponent(target);
  var content = document.getElementById('content');
  var status = document.getElementById('status');

  function load(label) {
    return fetch('/api/file' + query, {cache: 'no-store'})
      .then(function(res) {
        return res.text().then(function(text) {
          if (!res.ok) { status.textContent = text; return; }
          var scrollTop = document.scrollingElement.scrollTop;
          content.textContent = text;
          document.scrollingElement.scrollTop = scrollTop;
          status.textContent = label + ' ' + new Date().toLocaleTimeString();
        });
      })
      .catch(function(err) { console.error('Reload failed:', err); });
  }

  window.addEventListener('load', function() { load('Loaded'); });

  var events = new EventSource('/api/events' + query);
  events.onmessage = function(event) {
    if (event.data === 'reload') load('Auto-refreshed');
  };
  events.onerror = function() {
    console.log('Event stream lost, reconnecting...');
  };
})();
</script>
"""

_PAGE = """\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>%(title)s</title>
<style>
body { margin: 0; font-family: ui-sans-serif, system-ui, sans-serif; }
header { position: sticky; top: 0; padding: 0.5rem 1rem; background: #f4f4f4;
         border-bottom: 1px solid #ddd; font-size: 0.85rem; color: #555; }
pre { margin: 0; padding: 1rem; white-space: pre-wrap; word-break: break-word;
      font-family: ui-monospace, monospace; }
</style>
</head>
<body>
<header><strong>%(title)s</strong> <span id="status"></span></header>
<pre id="content"></pre>
</body>
</html>
"""


def render_viewer(path: Path) -> str:
    """Build the viewer page for a file with the live-reload script injected."""
    page = _PAGE % {"title": html.escape(path.name)}
    # json.dumps output is a valid JS string literal; "</" is split so the
    # path cannot close the script element
    script = _LIVE_RELOAD_SCRIPT % {"path": json.dumps(str(path)).replace("</", "<\\/")}
    return page.replace("</body>", script + "</body>", 1)


@router.get("/", response_class=HTMLResponse)
async def viewer(path: Path = Depends(resolve_target)) -> HTMLResponse:
    """Viewer page for a file."""
    return HTMLResponse(render_viewer(path), headers={"Cache-Control": "no-cache"})
