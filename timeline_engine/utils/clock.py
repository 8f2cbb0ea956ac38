"""
Practice timezone and default clock.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

PRACTICE_TIMEZONE_NAME = "Asia/Kolkata"
PRACTICE_TIMEZONE = ZoneInfo(PRACTICE_TIMEZONE_NAME)


def now_local() -> datetime:
    """Current time in the practice timezone."""
    return datetime.now(PRACTICE_TIMEZONE)
