"""Wall-clock barrier used to line phases up with the hourly directory sync."""

import logging
import time
from datetime import datetime, timedelta
from typing import Callable

log = logging.getLogger(__name__)


class ScheduleBarrier:
    """
    Blocks until the clock reaches a given minute of the hour.

    ``grace_seconds`` only affects logging: waking more than that past the
    target logs a drift warning. It never moves the target or extends the wait.
    """

    def __init__(self,
                 clock: Callable[[], datetime] = datetime.now,
                 sleep: Callable[[float], None] = time.sleep,
                 grace_seconds: float = 5.0):
        self._clock = clock
        self._sleep = sleep
        self.grace_seconds = grace_seconds

    @staticmethod
    def next_occurrence(target_minute: int, now: datetime) -> datetime:
        """The first HH:target_minute:00 at or after now."""
        target = now.replace(minute=target_minute, second=0, microsecond=0)
        if target < now:
            target += timedelta(hours=1)
        return target

    def wait_until_minute(self, target_minute: int) -> float:
        """
        Sleep until the wall clock reaches :target_minute:00.

        Already past the target this hour (even by a few seconds) means
        waiting for the same minute of the next hour.

        Returns:
            Seconds spent sleeping
        """
        if not 0 <= target_minute <= 59:
            raise ValueError(f"target_minute must be 0-59, got {target_minute}")

        now = self._clock()
        target = self.next_occurrence(target_minute, now)
        log.info(f"Waiting until {target:%H:%M:%S} ({(target - now).total_seconds():.0f}s)")

        waited = 0.0
        while True:
            remaining = (target - now).total_seconds()
            if remaining <= 0:
                if -remaining > self.grace_seconds:
                    log.warning(f"Reached {target:%H:%M} {-remaining:.0f}s late")
                return waited
            self._sleep(remaining)
            waited += remaining
            now = self._clock()
