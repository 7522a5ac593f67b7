import threading
import time

from autoapply.errors import QuotaExceeded
from autoapply.scheduler import AutoSearchScheduler


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_twice_keeps_exactly_one_timer():
    calls: list[int] = []
    scheduler = AutoSearchScheduler(calls.append, interval_sec=999)
    scheduler.start(1)
    first_thread = scheduler._timers[1].thread
    scheduler.start(1)
    try:
        assert scheduler.active_users() == [1]
        assert _wait_for(lambda: not first_thread.is_alive())
        assert len([t for t in threading.enumerate() if t.name == "autoapply-search-1"]) == 1
    finally:
        scheduler.shutdown()


def test_stop_without_timer_is_noop():
    scheduler = AutoSearchScheduler(lambda uid: None, interval_sec=1)
    assert scheduler.stop(42) is False
    assert scheduler.active_users() == []


def test_ticks_repeat_on_schedule():
    calls: list[int] = []
    scheduler = AutoSearchScheduler(calls.append, interval_sec=0.02)
    scheduler.start(7)
    try:
        assert _wait_for(lambda: len(calls) >= 3)
        assert set(calls) == {7}
        assert scheduler.tick_count(7) >= 2
    finally:
        scheduler.shutdown()


def test_tick_failures_do_not_cancel_schedule():
    calls: list[int] = []

    def failing(uid):
        calls.append(uid)
        if len(calls) == 1:
            raise QuotaExceeded(30, 30)
        raise RuntimeError("provider hung up")

    scheduler = AutoSearchScheduler(failing, interval_sec=0.02)
    scheduler.start(3)
    try:
        assert _wait_for(lambda: len(calls) >= 3)
        assert scheduler.is_running(3)
    finally:
        scheduler.shutdown()


def test_stop_prevents_future_ticks_but_lets_inflight_finish():
    started = threading.Event()
    release = threading.Event()
    finished: list[int] = []

    def slow(uid):
        started.set()
        release.wait(2)
        finished.append(uid)

    scheduler = AutoSearchScheduler(slow, interval_sec=0.01)
    scheduler.start(5)
    assert started.wait(2)
    assert scheduler.stop(5) is True
    assert scheduler.is_running(5) is False
    release.set()
    assert _wait_for(lambda: finished == [5])
    time.sleep(0.05)
    assert finished == [5]
