"""
Timer sources for the countdown and the autosave debounce.

Both schedulers expose call_later(delay, callback) returning a handle with
cancel(). ManualScheduler runs on a virtual clock that the caller advances
(Streamlit reruns, tests); ThreadingScheduler fires on threading.Timer threads.
"""
import heapq
import itertools
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ScheduledCall:
    """Cancellation token for a callback queued on a ManualScheduler."""

    def __init__(self, callback: Callable[[], None]):
        self._callback = callback
        self.cancelled = False
        self.done = False

    def cancel(self):
        self.cancelled = True

    def run(self):
        self.done = True
        self._callback()


class ManualScheduler:
    """Deterministic scheduler: nothing fires until advance() is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        handle = ScheduledCall(callback)
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, running every callback that falls due in order.
        Callbacks may schedule further calls; those run too if they are due.

        Returns:
            Number of callbacks executed
        """
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            handle.run()
            fired += 1
        self.now = target
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon threading.Timer instances."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, self._guard(callback))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _guard(callback: Callable[[], None]) -> Callable[[], None]:
        def run():
            try:
                callback()
            except Exception as e:
                # Nothing above a timer thread can handle it
                logger.error(f"Scheduled callback failed: {e}", exc_info=True)
        return run
