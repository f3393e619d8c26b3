"""
Shared FastAPI dependencies that are not tied to one route module.
"""

from seatify.core.clock import Clock, utc_now


def get_clock() -> Clock:
    """Time source for request handlers; overridden in tests."""
    return utc_now
