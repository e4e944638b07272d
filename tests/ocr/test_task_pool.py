"""Unit tests for the bounded task pool."""

import threading
import time

import pytest

from indodoc.ocr.task_pool import TaskPool, TaskResult, TaskResultStatus


class TestTaskResult:
    """Test the TaskResult constructors."""

    def test_constructors(self):
        """Test each constructor sets its status."""
        assert TaskResult.complete(3).status is TaskResultStatus.COMPLETE
        assert TaskResult.complete(3).value == 3
        assert TaskResult.ignore().value is None
        assert TaskResult.short_circuit("x").status is TaskResultStatus.SHORT_CIRCUIT

        error = ValueError("boom")
        assert TaskResult.error(error).error is error


class TestTaskPool:
    """Test task execution, ordering and short-circuiting."""

    def test_run_returns_values_in_index_order(self):
        """Test run collects completed values ordered by index."""

        def task(index):
            time.sleep(0.001 * (5 - index))
            return TaskResult.complete(index * 10)

        assert TaskPool(task, count=5, limit=3).run() == [0, 10, 20, 30, 40]

    def test_ignored_values_are_dropped(self):
        """Test ignored tasks contribute nothing."""

        def task(index):
            return TaskResult.complete(index) if index % 2 else TaskResult.ignore()

        assert TaskPool(task, count=6, limit=2).run() == [1, 3, 5]

    def test_every_index_runs_once(self):
        """Test each index is claimed exactly once."""
        seen = []
        lock = threading.Lock()

        def task(index):
            with lock:
                seen.append(index)
            return TaskResult.ignore()

        TaskPool(task, count=20, limit=4).run()

        assert sorted(seen) == list(range(20))

    def test_zero_tasks(self):
        """Test an empty pool returns nothing."""
        pool = TaskPool(lambda index: TaskResult.complete(index), count=0)

        assert pool.run() == []
        assert pool.latest() is None

    def test_latest_none_when_all_ignored(self):
        """Test latest is None when nothing was stored."""
        assert TaskPool(lambda index: TaskResult.ignore(), count=4, limit=2).latest() is None

    def test_error_is_reraised(self):
        """Test a task error aborts the run and reaches the caller."""

        def task(index):
            if index == 1:
                return TaskResult.error(ValueError("section failed"))
            return TaskResult.complete(index)

        with pytest.raises(ValueError, match="section failed"):
            TaskPool(task, count=3, limit=1).run()

    def test_short_circuit_stops_claiming(self):
        """Test no task is started after a short circuit with a single lane."""
        started = []

        def task(index):
            started.append(index)
            return TaskResult.short_circuit(index) if index == 2 else TaskResult.complete(index)

        assert TaskPool(task, count=9, limit=1).latest() == 2
        assert started == [0, 1, 2]

    def test_short_circuit_value_wins(self):
        """Test values returned after the short circuit are discarded."""
        release = threading.Event()

        def task(index):
            if index == 0:
                return TaskResult.short_circuit("title")
            release.wait(timeout=1)
            return TaskResult.complete("late")

        pool = TaskPool(task, count=2, limit=2)
        try:
            assert pool.latest() == "title"
        finally:
            release.set()

    def test_concurrency_ceiling(self):
        """Test no more than limit tasks run at once."""
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        def task(index):
            with lock:
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.005)
            with lock:
                state["running"] -= 1
            return TaskResult.complete(index)

        TaskPool(task, count=12, limit=3).run()

        assert 1 <= state["peak"] <= 3

    @pytest.mark.parametrize("count, limit", [(-1, 1), (1, 0)])
    def test_invalid_arguments(self, count, limit):
        """Test negative counts and empty limits are rejected."""
        with pytest.raises(ValueError):
            TaskPool(lambda index: TaskResult.ignore(), count=count, limit=limit)
