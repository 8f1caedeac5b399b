"""
LiveMark API Routes.

Requires Python 3.11+.
"""
