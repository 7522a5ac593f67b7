"""Per-user recurring auto-search.

Each active user owns one daemon thread that sleeps for the configured
period, then runs one apply batch. Timers live in process memory only; a
restart loses them until the next session start.
"""
from __future__ import annotations

from dataclasses import dataclass
from threading import Event, RLock, Thread
from typing import Any, Callable

from autoapply.config import SCHEDULED_BATCH_SIZE
from autoapply.errors import AutoApplyError, QuotaExceeded
from autoapply.log import get_logger

log = get_logger(__name__)

TickFn = Callable[[int], Any]


@dataclass
class _UserTimer:
    user_id: int
    stop: Event
    thread: Thread
    ticks: int = 0


class AutoSearchScheduler:
    """Registry of user id → recurring timer; at most one timer per user."""

    def __init__(self, tick: TickFn, *, interval_sec: float) -> None:
        self._tick = tick
        self.interval_sec = interval_sec
        self._lock = RLock()
        self._timers: dict[int, _UserTimer] = {}

    def start(self, user_id: int) -> None:
        """Start (or restart) the timer for *user_id*; any previous timer is cancelled."""
        with self._lock:
            previous = self._timers.pop(user_id, None)
            if previous is not None:
                previous.stop.set()
            stop = Event()
            thread = Thread(
                target=self._run_loop,
                args=(user_id, stop),
                daemon=True,
                name=f"autoapply-search-{user_id}",
            )
            self._timers[user_id] = _UserTimer(user_id=user_id, stop=stop, thread=thread)
            thread.start()
        log.info(
            "Auto-search %s for user %s (every %.0fs, %d apps/day)",
            "restarted" if previous else "started", user_id, self.interval_sec, SCHEDULED_BATCH_SIZE,
        )

    def stop(self, user_id: int) -> bool:
        """Cancel future ticks for *user_id*. An in-flight tick still finishes."""
        with self._lock:
            timer = self._timers.pop(user_id, None)
        if timer is None:
            return False
        timer.stop.set()
        log.info("Auto-search stopped for user %s", user_id)
        return True

    def shutdown(self, timeout: float = 2.0) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.stop.set()
        for timer in timers:
            timer.thread.join(timeout=timeout)

    def is_running(self, user_id: int) -> bool:
        with self._lock:
            timer = self._timers.get(user_id)
            return timer is not None and timer.thread.is_alive()

    def active_users(self) -> list[int]:
        with self._lock:
            return sorted(uid for uid, t in self._timers.items() if t.thread.is_alive())

    def tick_count(self, user_id: int) -> int:
        with self._lock:
            timer = self._timers.get(user_id)
            return timer.ticks if timer else 0

    def _run_loop(self, user_id: int, stop: Event) -> None:
        while not stop.wait(timeout=self.interval_sec):
            self._run_tick(user_id)
            with self._lock:
                timer = self._timers.get(user_id)
                if timer is not None and timer.stop is stop:
                    timer.ticks += 1

    def _run_tick(self, user_id: int) -> None:
        try:
            result = self._tick(user_id)
            log.info("Auto-apply tick for user %s: %s", user_id, getattr(result, "message", result))
        except QuotaExceeded as exc:
            log.info("Auto-apply tick for user %s skipped: %s", user_id, exc.message)
        except AutoApplyError as exc:
            log.error("Auto-apply tick for user %s failed: %s", user_id, exc.message)
        except Exception:
            log.exception("Auto-apply tick for user %s crashed", user_id)
