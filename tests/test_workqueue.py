"""Tests for workqueue.py module."""

from unittest.mock import patch

import pytest

from secret_syncer.models import SecretRef
from secret_syncer.workqueue import WorkQueue

A = SecretRef("payments", "api-key")
B = SecretRef("payments", "db")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestWorkQueueOrdering:
    """Tests for de-duplication and processing state."""

    def test_fifo_and_dedupe(self):
        """Test that duplicates collapse and order is kept."""
        queue = WorkQueue()
        queue.add(A)
        queue.add(B)
        queue.add(A)

        assert len(queue) == 2
        assert queue.get(timeout=0) == A
        assert queue.get(timeout=0) == B
        assert queue.get(timeout=0) is None

    def test_ref_added_while_processing_is_requeued_after_done(self):
        """Test that a busy ref is not handed out twice."""
        queue = WorkQueue()
        queue.add(A)
        ref = queue.get(timeout=0)

        queue.add(A)
        assert queue.get(timeout=0) is None

        queue.done(ref)
        assert queue.get(timeout=0) == A

    def test_done_without_new_add_does_not_requeue(self):
        """Test that finishing a ref removes it."""
        queue = WorkQueue()
        queue.add(A)
        queue.done(queue.get(timeout=0))

        assert len(queue) == 0

    def test_shutdown_wakes_consumers(self):
        """Test that get returns None after shutdown."""
        queue = WorkQueue()
        queue.shutdown()
        queue.add(A)

        assert queue.get() is None
        assert queue.shutting_down


class TestWorkQueueDelays:
    """Tests for delayed adds and backoff."""

    def test_add_after_waits_for_delay(self):
        """Test that a delayed ref becomes available once due."""
        clock = FakeClock()
        queue = WorkQueue(clock=clock)
        queue.add_after(A, 5)

        assert queue.get(timeout=0) is None
        clock.now = 5
        assert queue.get(timeout=0) == A

    def test_add_after_without_delay_adds_immediately(self):
        """Test a zero delay."""
        queue = WorkQueue()
        queue.add_after(A, 0)

        assert queue.get(timeout=0) == A

    def test_backoff_grows_exponentially_and_caps(self):
        """Test backoff delays without jitter."""
        queue = WorkQueue(base_delay=1, max_delay=10, jitter_factor=0)

        delays = [queue.backoff(A) for _ in range(6)]

        assert delays == [1, 2, 4, 8, 10, 10]
        assert queue.num_requeues(A) == 6
        assert queue.num_requeues(B) == 0

    def test_backoff_jitter_bounds(self):
        """Test that jitter stays within the factor."""
        queue = WorkQueue(base_delay=10, max_delay=100, jitter_factor=0.1)

        with patch("secret_syncer.workqueue.random.uniform", return_value=1.0):
            assert queue.backoff(A) == pytest.approx(11.0)
        with patch("secret_syncer.workqueue.random.uniform", return_value=-1.0):
            assert queue.backoff(B) == pytest.approx(9.0)

    def test_forget_resets_backoff(self):
        """Test that forget clears the failure count."""
        queue = WorkQueue(base_delay=1, max_delay=10, jitter_factor=0)
        queue.backoff(A)
        queue.backoff(A)

        queue.forget(A)

        assert queue.num_requeues(A) == 0
        assert queue.backoff(A) == 1

    def test_add_rate_limited_schedules_retry(self):
        """Test that a rate-limited ref comes back after its delay."""
        clock = FakeClock()
        queue = WorkQueue(base_delay=2, max_delay=10, jitter_factor=0, clock=clock)

        assert queue.add_rate_limited(A) == 2
        assert queue.get(timeout=0) is None
        clock.now = 2
        assert queue.get(timeout=0) == A
