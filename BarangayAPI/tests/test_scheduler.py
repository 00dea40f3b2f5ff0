import threading
import time
from datetime import datetime

from BarangayAPI.housekeeping import HousekeepingResult
from BarangayAPI.scheduler import SweepScheduler


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_tick_fires_once_per_hour():
    runs = []
    clock = FakeClock(datetime(2026, 10, 19, 10, 0, 5))
    scheduler = SweepScheduler(job=lambda now: runs.append(now) or HousekeepingResult(), clock=clock)

    assert scheduler.tick() is not None
    clock.now = datetime(2026, 10, 19, 10, 1)
    assert scheduler.tick() is None
    clock.now = datetime(2026, 10, 19, 10, 59)
    assert scheduler.tick() is None
    clock.now = datetime(2026, 10, 19, 11, 0, 30)
    assert scheduler.tick() is not None

    assert runs == [datetime(2026, 10, 19, 10, 0, 5), datetime(2026, 10, 19, 11, 0, 30)]


def test_tick_waits_for_run_minute():
    runs = []
    clock = FakeClock(datetime(2026, 10, 19, 10, 10))
    scheduler = SweepScheduler(job=lambda now: runs.append(now) or HousekeepingResult(), run_minute=30, clock=clock)

    assert scheduler.tick() is None
    clock.now = datetime(2026, 10, 19, 10, 31)
    assert scheduler.tick() is not None
    assert len(runs) == 1


def test_failed_job_is_logged_and_not_retried_within_the_hour(caplog):
    calls = []

    def job(now):
        calls.append(now)
        raise RuntimeError("database unreachable")

    clock = FakeClock(datetime(2026, 10, 19, 10, 0))
    scheduler = SweepScheduler(job=job, clock=clock)

    assert scheduler.tick() is None
    assert scheduler.tick() is None
    assert len(calls) == 1
    assert "Scheduled sweep" in caplog.text


def test_sweeps_never_overlap():
    active = []
    overlaps = []
    lock = threading.Lock()

    def job(now):
        with lock:
            active.append(now)
            if len(active) > 1:
                overlaps.append(now)
        time.sleep(0.05)
        with lock:
            active.remove(now)
        return HousekeepingResult()

    scheduler = SweepScheduler(job=job)
    threads = [
        threading.Thread(target=scheduler.run_now, args=(datetime(2026, 10, 19, 10, i),))
        for i in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []


def test_start_and_stop_background_thread():
    runs = []
    scheduler = SweepScheduler(
        job=lambda now: runs.append(now) or HousekeepingResult(),
        check_interval=0.01,
        clock=lambda: datetime(2026, 10, 19, 10, 0),
    )
    scheduler.start()
    try:
        assert scheduler.running
        deadline = time.time() + 2
        while not runs and time.time() < deadline:
            time.sleep(0.01)
    finally:
        scheduler.stop(timeout=2)

    assert not scheduler.running
    assert len(runs) == 1
