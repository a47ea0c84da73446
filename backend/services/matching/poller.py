"""
Background matching retries for pending bookings.

There is no server-side matcher, so each pending booking gets one polling
task that asks the matching engine for a driver every ``interval`` seconds
until the booking is matched or resolved elsewhere, the task is stopped, or
``max_attempts`` is spent.

A worker thread only runs one attempt at a time. Between attempts a task sits
in a timer heap owned by a single scheduler thread, so the number of bookings
being polled is not limited by the size of the worker pool. Tasks communicate
only through the stores.
"""

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from django.db import close_old_connections

from bookings.models import BookingStatus
from services.exceptions import BookingNotFoundError, CompensationError, StoreIOError

logger = logging.getLogger(__name__)

SEARCHING = "searching"
MATCHED = "matched"
RESOLVED = "resolved"
NO_DRIVERS_AVAILABLE = "no_drivers_available"
STOPPED = "stopped"
FAILED = "failed"


class _PollTask:
    def __init__(self, key, booking_id, interval: float, max_attempts: int):
        self.key = key
        self.booking_id = booking_id
        self.interval = interval
        self.max_attempts = max_attempts
        self.attempts = 0
        self.outcome = SEARCHING
        self.stop_event = threading.Event()
        self.done = threading.Event()
        self.lock = threading.RLock()
        self.running = False


class BookingPoller:
    """
    One polling task per booking id.

    start_polling() for a booking that is already being polled is a no-op and
    stop_polling() is safe to call at any time, including after the task ended
    on its own.
    """

    def __init__(
        self,
        booking_store,
        matching_engine,
        interval_seconds: float = 10,
        max_attempts: int = 12,
        max_workers: int = 32,
    ):
        self.booking_store = booking_store
        self.matching_engine = matching_engine
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="booking-poller")
        self._lock = threading.Lock()
        self._active: Dict[str, _PollTask] = {}
        # Last finished task per booking, kept so callers can tell "no drivers" from "searching"
        self._finished: Dict[str, _PollTask] = {}

        self._timers = []
        self._timer_seq = itertools.count()
        self._wakeup = threading.Condition()
        self._closed = False
        self._scheduler = threading.Thread(
            target=self._schedule_loop, name="booking-poller-scheduler", daemon=True
        )
        self._scheduler.start()

    def start_polling(self, booking_id, interval: Optional[float] = None, max_attempts: Optional[int] = None) -> bool:
        """Start polling for ``booking_id``. Returns False if already polling."""
        key = str(booking_id)
        task = _PollTask(
            key,
            booking_id,
            self.interval_seconds if interval is None else interval,
            self.max_attempts if max_attempts is None else max_attempts,
        )
        with self._lock:
            if key in self._active:
                logger.debug("Polling already active for booking %s; skipping duplicate start", booking_id)
                return False
            self._active[key] = task
            self._finished.pop(key, None)

        logger.info(
            "Starting polling for booking %s (every %ss, up to %s attempts)",
            booking_id, task.interval, task.max_attempts,
        )
        if not self._schedule(task, 0):
            with task.lock:
                self._finish(task, STOPPED)
        return True

    def stop_polling(self, booking_id) -> bool:
        """Cancel polling for ``booking_id``. Returns False if nothing was running."""
        key = str(booking_id)
        with self._lock:
            task = self._active.pop(key, None)
            if task is not None:
                self._finished[key] = task
        if task is None:
            return False

        task.stop_event.set()
        with task.lock:
            # A running attempt finishes the task itself once it returns
            if not task.running:
                self._finish(task, STOPPED)
        logger.info("Stopped polling for booking %s on request", booking_id)
        return True

    def is_polling(self, booking_id) -> bool:
        with self._lock:
            return str(booking_id) in self._active

    def outcome(self, booking_id) -> Optional[str]:
        """searching, no_drivers_available, stopped, failed, or None if untracked."""
        key = str(booking_id)
        with self._lock:
            if key in self._active:
                return SEARCHING
            task = self._finished.get(key)
        return task.outcome if task else None

    def forget(self, booking_id) -> None:
        with self._lock:
            self._finished.pop(str(booking_id), None)

    def wait(self, booking_id, timeout: Optional[float] = None) -> bool:
        """Block until the current task for ``booking_id`` ends. True if it ended."""
        key = str(booking_id)
        with self._lock:
            task = self._active.get(key) or self._finished.get(key)
        if task is None:
            return True
        return task.done.wait(timeout)

    def shutdown(self, wait: bool = False) -> None:
        with self._wakeup:
            self._closed = True
            self._timers.clear()
            self._wakeup.notify_all()
        with self._lock:
            tasks = list(self._active.values())
        for task in tasks:
            task.stop_event.set()
            with task.lock:
                if not task.running:
                    self._finish(task, STOPPED)
        if wait:
            self._scheduler.join()
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------- internals

    def _schedule(self, task: _PollTask, delay: float) -> bool:
        with self._wakeup:
            if self._closed:
                return False
            heapq.heappush(self._timers, (time.monotonic() + delay, next(self._timer_seq), task))
            self._wakeup.notify()
        return True

    def _schedule_loop(self):
        while True:
            with self._wakeup:
                while not self._closed and (not self._timers or self._timers[0][0] > time.monotonic()):
                    timeout = self._timers[0][0] - time.monotonic() if self._timers else None
                    self._wakeup.wait(timeout)
                if self._closed:
                    return
                _, _, task = heapq.heappop(self._timers)

            if task.stop_event.is_set():
                continue
            try:
                self._executor.submit(self._run_attempt, task)
            except RuntimeError:
                # Executor already shut down
                with task.lock:
                    self._finish(task, STOPPED)

    def _run_attempt(self, task: _PollTask):
        with task.lock:
            if task.done.is_set() or task.stop_event.is_set():
                return
            task.running = True

        outcome = None
        try:
            task.attempts += 1
            outcome = self._attempt(task)
            if outcome is None and task.attempts >= task.max_attempts:
                outcome = NO_DRIVERS_AVAILABLE
        except Exception:
            logger.exception("Polling for booking %s crashed", task.booking_id)
            outcome = FAILED
        finally:
            close_old_connections()

        with task.lock:
            task.running = False
            if outcome is None and task.stop_event.is_set():
                outcome = STOPPED
            if outcome is None and not self._schedule(task, task.interval):
                outcome = STOPPED
            if outcome is not None:
                self._finish(task, outcome)

    def _attempt(self, task: _PollTask) -> Optional[str]:
        """One polling round. Returns a final outcome, or None to keep polling."""
        booking_id = task.booking_id
        try:
            booking = self.booking_store.get(booking_id)
        except BookingNotFoundError:
            logger.warning("Polling: booking %s not found; stopping", booking_id)
            return RESOLVED
        except StoreIOError as exc:
            logger.warning("Polling: could not read booking %s (attempt %s): %s", booking_id, task.attempts, exc)
            return None

        if booking.status != BookingStatus.PENDING:
            logger.info("Booking %s is %s; stopping polling", booking_id, booking.status)
            return RESOLVED

        if task.stop_event.is_set():
            return STOPPED

        try:
            matched = self.matching_engine.try_match_first_available(booking_id)
        except StoreIOError as exc:
            logger.warning("Polling: match attempt %s for booking %s failed: %s", task.attempts, booking_id, exc)
            return None
        except CompensationError:
            logger.critical("Polling for booking %s aborted: a claimed driver was lost", booking_id)
            return FAILED

        if matched:
            return MATCHED
        logger.debug("Polling: no driver yet for booking %s (attempt %s)", booking_id, task.attempts)
        return None

    def _finish(self, task: _PollTask, outcome: str):
        """Record the final outcome once. Callers hold ``task.lock``."""
        if task.done.is_set():
            return
        task.outcome = outcome
        with self._lock:
            if self._active.get(task.key) is task:
                del self._active[task.key]
            if outcome in (MATCHED, RESOLVED):
                if self._finished.get(task.key) is task:
                    del self._finished[task.key]
            elif task.key not in self._active:
                self._finished[task.key] = task
        task.done.set()
        logger.info(
            "Polling for booking %s ended after %s attempts: %s",
            task.booking_id, task.attempts, outcome,
        )
