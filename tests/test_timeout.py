"""Tests for the connection timer service."""

import threading

from iec60870py.core.timeout import TimeoutManager, TimeoutTask


class TestTimeoutTask:
    """Tests for TimeoutTask."""

    def test_execute_runs_callback(self):
        """Test that execute runs the callback once and marks the task done."""
        calls = []
        task = TimeoutTask(0.1, lambda: calls.append(1), identity="a")
        assert task.is_planned
        task.execute()
        assert calls == [1]
        assert task.done
        assert not task.is_planned

    def test_cancelled_task_is_noop(self):
        """Test that a cancelled task does not run its callback."""
        calls = []
        task = TimeoutTask(0.1, lambda: calls.append(1))
        task.cancel()
        task.execute()
        assert calls == []

    def test_default_identity(self):
        """Test that tasks without identity are distinct."""
        first = TimeoutTask(1.0, lambda: None)
        second = TimeoutTask(1.0, lambda: None)
        assert first.identity != second.identity


class TestTimeoutManager:
    """Tests for TimeoutManager."""

    def setup_method(self):
        """Set up test fixtures."""
        self.manager = TimeoutManager(name="test-timeouts")
        self.manager.start()

    def teardown_method(self):
        """Stop the worker thread."""
        self.manager.cancel()

    def test_task_fires(self):
        """Test that a due task runs on the worker thread."""
        fired = threading.Event()
        self.manager.add_timer_task(TimeoutTask(0.05, fired.set, identity="t1"))
        assert fired.wait(2.0)
        assert self.manager.get_task("t1") is None

    def test_tasks_fire_in_due_order(self):
        """Test ordering by due time rather than submission order."""
        order = []
        done = threading.Event()

        def last():
            order.append("late")
            done.set()

        self.manager.add_timer_task(TimeoutTask(0.2, last, identity="late"))
        early = TimeoutTask(0.05, lambda: order.append("early"), identity="early")
        self.manager.add_timer_task(early)
        assert done.wait(2.0)
        assert order == ["early", "late"]

    def test_cancel_task(self):
        """Test that a cancelled identity does not fire."""
        fired = threading.Event()
        self.manager.add_timer_task(TimeoutTask(0.1, fired.set, identity="t2"))
        self.manager.cancel_task("t2")
        assert not fired.wait(0.3)
        assert self.manager.pending_count() == 0

    def test_same_identity_replaces(self):
        """Test that resubmitting an identity purges the earlier task."""
        calls = []
        done = threading.Event()

        def second():
            calls.append("second")
            done.set()

        first = self.manager.add_timer_task(
            TimeoutTask(0.05, lambda: calls.append("first"), identity="t3")
        )
        self.manager.add_timer_task(TimeoutTask(0.1, second, identity="t3"))
        assert first.cancelled
        assert self.manager.pending_count() == 1
        assert done.wait(2.0)
        assert calls == ["second"]

    def test_resubmit_same_task_restarts(self):
        """Test that resubmitting one task object moves its due time."""
        fired = threading.Event()
        task = TimeoutTask(0.2, fired.set, identity="t3")
        self.manager.add_timer_task(task)
        first_due = task.due_time
        self.manager.add_timer_task(task)
        assert task.due_time >= first_due
        assert fired.wait(2.0)

    def test_get_task(self):
        """Test lookup of planned tasks by identity."""
        task = self.manager.add_timer_task(TimeoutTask(10.0, lambda: None, identity="t1"))
        assert self.manager.get_task("t1") is task
        assert self.manager.get_task("missing") is None

    def test_failing_callback_does_not_stop_worker(self):
        """Test that later tasks still run after a callback raises."""
        fired = threading.Event()

        def fail():
            raise RuntimeError("boom")

        self.manager.add_timer_task(TimeoutTask(0.01, fail, identity="bad"))
        self.manager.add_timer_task(TimeoutTask(0.1, fired.set, identity="good"))
        assert fired.wait(2.0)

    def test_cancel_stops_worker(self):
        """Test that cancel discards tasks and ends the worker."""
        fired = threading.Event()
        self.manager.add_timer_task(TimeoutTask(0.1, fired.set, identity="t1"))
        self.manager.cancel()
        assert not fired.wait(0.3)
        assert not self.manager.is_running
        assert self.manager.pending_count() == 0

    def test_cancel_from_callback(self):
        """Test that a callback may cancel its own manager."""
        done = threading.Event()

        def stop():
            self.manager.cancel()
            done.set()

        self.manager.add_timer_task(TimeoutTask(0.01, stop, identity="stop"))
        assert done.wait(2.0)
        assert not self.manager.is_running
