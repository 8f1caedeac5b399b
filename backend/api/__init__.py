"""
LiveMark API Package.

FastAPI viewer, file and event-stream endpoints.
Requires Python 3.11+.
"""

# Import app lazily to avoid circular imports
# Use: from api.main import app
