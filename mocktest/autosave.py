"""
Debounced autosave of an attempt's answer map.

Every mutation re-arms a quiet-period timer; only when it expires is the whole
answer map written (overwrite, last write wins). Failures are logged and
dropped: the next flush or the final submit carries the latest map anyway.
"""
import logging
import threading
from typing import Callable, Dict

from mocktest.config import AUTOSAVE_DELAY_SECONDS
from mocktest.errors import StoreError

logger = logging.getLogger(__name__)


class AutosaveBridge:
    """Coalesces answer-map changes into one write per quiet period."""

    def __init__(
        self,
        store,
        attempt_id: str,
        scheduler,
        snapshot: Callable[[], Dict],
        delay: float = AUTOSAVE_DELAY_SECONDS,
    ):
        """
        Args:
            store: Data-access object with update_attempt_answers()
            attempt_id: Attempt whose answers are written
            scheduler: Timer source (call_later/cancel)
            snapshot: Returns the current answer map in its persisted form
            delay: Quiet period in seconds
        """
        self.store = store
        self.attempt_id = attempt_id
        self.scheduler = scheduler
        self.delay = delay
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self._handle = None
        self._generation = 0
        self._closed = False

        self.flush_count = 0
        self.failure_count = 0
        self.last_error = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def notify(self):
        """Answer map changed: restart the quiet period."""
        with self._lock:
            if self._closed:
                return
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self.scheduler.call_later(self.delay, lambda: self._on_quiet(generation))

    def _on_quiet(self, generation: int):
        with self._lock:
            # Superseded by a later notify() or a cancel()
            if self._closed or generation != self._generation:
                return
            self._handle = None
        self.flush()

    def flush(self) -> bool:
        """
        Write the current answer map now. Returns False if the write failed.

        Any exception from the store is logged and counted, never raised: flushes
        run from timer callbacks, where an escaping error would stop the scheduler.
        """
        answers = self._snapshot()
        try:
            self.store.update_attempt_answers(self.attempt_id, answers)
        except Exception as e:
            with self._lock:
                self.failure_count += 1
                self.last_error = e
            if isinstance(e, StoreError):
                logger.warning(f"Autosave failed for attempt {self.attempt_id}: {e}")
            else:
                logger.exception(f"Unexpected autosave error for attempt {self.attempt_id}")
            return False
        with self._lock:
            self.flush_count += 1
        logger.debug("Autosaved %d answers for attempt %s", len(answers), self.attempt_id)
        return True

    def flush_pending(self) -> bool:
        """Write now if a flush is waiting for its quiet period. Returns True if one was written."""
        with self._lock:
            if self._closed or self._handle is None:
                return False
            self._handle.cancel()
            self._handle = None
            self._generation += 1
        return self.flush()

    def cancel(self):
        """Drop the pending flush, if any."""
        with self._lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def close(self):
        """Cancel and refuse further notifications."""
        self.cancel()
        with self._lock:
            self._closed = True
