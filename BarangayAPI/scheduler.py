"""
In-process scheduler for the lifecycle sweeps.

A daemon thread wakes up every check interval and runs the housekeeping job
once per clock hour. Every run, timer-driven or on demand, holds the same lock,
so a sweep always finishes before the next one starts.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Tuple

from .config import SWEEP_CHECK_INTERVAL_SECONDS, SWEEP_RUN_MINUTE
from .housekeeping import HousekeepingResult, run_housekeeping
from .utils import local_now

logger = logging.getLogger(__name__)


class SweepScheduler:
    def __init__(
        self,
        job: Callable[[Optional[datetime]], HousekeepingResult] = run_housekeeping,
        check_interval: float = SWEEP_CHECK_INTERVAL_SECONDS,
        run_minute: int = SWEEP_RUN_MINUTE,
        clock: Callable[[], datetime] = local_now,
    ):
        self.job = job
        self.check_interval = check_interval
        self.run_minute = run_minute
        self.clock = clock
        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_run_hour: Optional[Tuple] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_now(self, now: Optional[datetime] = None) -> HousekeepingResult:
        """
        Run the job immediately, waiting for any sweep already in progress.

        Args:
            now (datetime, optional): Time to evaluate rules at.

        Returns:
            HousekeepingResult: The job's result.
        """
        with self._run_lock:
            return self.job(now)

    def is_due(self, now: datetime) -> bool:
        hour_key = (now.date(), now.hour)
        return now.minute >= self.run_minute and hour_key != self._last_run_hour

    def tick(self) -> Optional[HousekeepingResult]:
        """Run the job if this hour's sweep has not happened yet."""
        now = self.clock()
        if not self.is_due(now):
            return None
        self._last_run_hour = (now.date(), now.hour)
        try:
            result = self.run_now(now)
        except Exception:
            logger.exception("Scheduled sweep at %s failed", now.isoformat())
            return None
        logger.info("Scheduled sweep at %s finished: %s", now.isoformat(), result)
        return result

    def _loop(self) -> None:
        logger.info(
            "Sweep scheduler started; checking every %ss, running hourly from minute %02d",
            self.check_interval, self.run_minute,
        )
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.check_interval)
        logger.info("Sweep scheduler stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="lifecycle-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


scheduler = SweepScheduler()
