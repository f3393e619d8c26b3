"""
Time source shared by services that reason about wall-clock time.

Services take a `clock` callable instead of calling datetime.now() directly,
so tests and the scheduler can pin "now".
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns `moment`."""
    return lambda: moment
