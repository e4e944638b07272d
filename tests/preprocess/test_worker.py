"""Unit tests for the preprocessing worker."""

import threading

import numpy as np
import pytest

from indodoc.preprocess.worker import PreprocessWorker


@pytest.fixture
def worker():
    """Provide a single-thread worker, shut down after the test."""
    worker = PreprocessWorker(workers=1)
    yield worker
    worker.shutdown()


def _invert(data):
    data[..., :3] = 255 - data[..., :3]
    return data


class TestPreprocessWorker:
    """Test off-thread filter execution."""

    def test_apply_runs_filter(self, worker, rgba_image):
        """Test the filtered buffer comes back."""
        out = worker.apply(_invert, rgba_image)

        assert out[0, 0, 0] == 0
        assert out[60, 100, 0] == 225

    def test_runs_off_caller_thread(self, worker, rgba_image):
        """Test the filter runs on a worker thread."""
        seen = []

        def record(data):
            seen.append(threading.current_thread().name)
            return data

        worker.apply(record, rgba_image)

        assert seen[0].startswith("indodoc-preprocess")

    def test_filter_changing_size_fails(self, worker, rgba_image):
        """Test a filter may not change the buffer length."""
        with pytest.raises(RuntimeError, match="changed buffer length"):
            worker.apply(lambda data: data[:10], rgba_image)

    def test_empty_buffer_rejected(self, worker):
        """Test empty buffers are rejected up front."""
        with pytest.raises(ValueError):
            worker.submit(_invert, np.zeros((0, 5, 4), dtype=np.uint8))

    def test_invalid_worker_count(self):
        """Test at least one thread is required."""
        with pytest.raises(ValueError):
            PreprocessWorker(workers=0)

    def test_usable_after_shutdown(self, worker, rgba_image):
        """Test the executor is recreated after shutdown."""
        worker.shutdown()

        assert worker.apply(_invert, rgba_image) is rgba_image
