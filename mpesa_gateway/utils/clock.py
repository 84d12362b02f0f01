"""
Clock abstraction

Everything that depends on the current time (token expiry, rate-limit
windows, request timestamps) reads it through a clock object so tests can
move time forward without sleeping.
"""

import time
from datetime import datetime


class SystemClock:
    """Wall-clock time"""

    def time(self) -> float:
        """Seconds since the epoch"""
        return time.time()

    def now(self) -> datetime:
        """Local datetime, used for Daraja request timestamps"""
        return datetime.now()


system_clock = SystemClock()
