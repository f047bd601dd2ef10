"""Rate-limited work queue of secret references.

The queue de-duplicates pending refs and never hands the same ref to two
workers at once: a ref added while it is being processed is queued again
once the worker calls ``done``.
"""

import heapq
import itertools
import random
import threading
import time
from collections import deque
from collections.abc import Callable

from secret_syncer.models import SecretRef


class WorkQueue:
    """Thread-safe queue with delayed adds and per-ref exponential backoff.

    Attributes:
        base_delay: Delay in seconds after the first failure.
        max_delay: Upper bound in seconds for any backoff delay.
        jitter_factor: Fraction of the delay randomly added or removed.

    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        jitter_factor: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_factor = jitter_factor
        self._clock = clock
        self._cond = threading.Condition(threading.RLock())
        self._queue: deque[SecretRef] = deque()
        self._dirty: set[SecretRef] = set()
        self._processing: set[SecretRef] = set()
        self._waiting: list[tuple[float, int, SecretRef]] = []
        self._sequence = itertools.count()
        self._failures: dict[SecretRef, int] = {}
        self._shutting_down = False

    def add(self, ref: SecretRef) -> None:
        """Queue ``ref`` unless it is already pending."""
        with self._cond:
            if self._shutting_down or ref in self._dirty:
                return
            self._dirty.add(ref)
            if ref in self._processing:
                return
            self._queue.append(ref)
            self._cond.notify()

    def add_after(self, ref: SecretRef, delay: float) -> None:
        """Queue ``ref`` once ``delay`` seconds have passed."""
        if delay <= 0:
            self.add(ref)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._sequence), ref))
            self._cond.notify()

    def backoff(self, ref: SecretRef) -> float:
        """Record a failure for ``ref`` and return the delay before its retry."""
        with self._cond:
            failures = self._failures.get(ref, 0)
            self._failures[ref] = failures + 1
        delay = min(self.base_delay * 2 ** min(failures, 10), self.max_delay)
        return delay * (1 + random.uniform(-1, 1) * self.jitter_factor)

    def add_rate_limited(self, ref: SecretRef) -> float:
        """Queue ``ref`` after its backoff delay and return that delay."""
        delay = self.backoff(ref)
        self.add_after(ref, delay)
        return delay

    def forget(self, ref: SecretRef) -> None:
        """Reset the failure count of ``ref``."""
        with self._cond:
            self._failures.pop(ref, None)

    def num_requeues(self, ref: SecretRef) -> int:
        """Return how many consecutive failures ``ref`` has had."""
        with self._cond:
            return self._failures.get(ref, 0)

    def get(self, timeout: float | None = None) -> SecretRef | None:
        """Take the next ref to process.

        Args:
            timeout: Seconds to wait for a ref, or None to wait indefinitely.

        Returns:
            The ref, or None on timeout or after shutdown.

        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_due()
                if self._queue:
                    ref = self._queue.popleft()
                    self._processing.add(ref)
                    self._dirty.discard(ref)
                    return ref
                if self._shutting_down:
                    return None

                now = self._clock()
                waits = []
                if self._waiting:
                    waits.append(self._waiting[0][0] - now)
                if deadline is not None:
                    if now >= deadline:
                        return None
                    waits.append(deadline - now)
                self._cond.wait(max(min(waits), 0) if waits else None)

    def done(self, ref: SecretRef) -> None:
        """Mark ``ref`` as processed; re-queue it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(ref)
            if ref in self._dirty:
                self._queue.append(ref)
                self._cond.notify()

    def shutdown(self) -> None:
        """Stop accepting refs and wake up every waiting worker."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def _promote_due(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, ref = heapq.heappop(self._waiting)
            self.add(ref)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
