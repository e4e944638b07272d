"""Off-thread execution of preprocessing filters.

The pipeline hands the surface's own pixel buffer to a small executor and waits
for the filtered buffer to come back. Filters work in place, so the buffer is
moved rather than copied.

Example:
    >>> worker = PreprocessWorker(workers=1)
    >>> future = worker.submit(prepare_passport, surface.pixels)
    >>> surface.pixels = future.result()
    >>> worker.shutdown()
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

Filter = Callable[[np.ndarray], np.ndarray]


class PreprocessWorker:
    """Executor running pixel filters away from the orchestrating thread.

    Args:
        workers: Number of filter threads (1 or 2).
    """

    def __init__(self, workers: int = 1):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.workers = workers
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="indodoc-preprocess"
            )
        return self._executor

    def submit(self, fn: Filter, data: np.ndarray) -> "Future[np.ndarray]":
        """Run ``fn(data)`` on a preprocessing thread."""
        if data.shape[0] == 0 or data.shape[1] == 0:
            raise ValueError("Cannot preprocess an empty buffer")
        expected = data.size

        def _run() -> np.ndarray:
            out = fn(data)
            if out.size != expected:
                raise RuntimeError(
                    f"Filter {getattr(fn, '__name__', fn)} changed buffer length "
                    f"({expected} -> {out.size})"
                )
            return out

        return self.executor.submit(_run)

    def apply(self, fn: Filter, data: np.ndarray) -> np.ndarray:
        """Run a filter and block until it finishes."""
        return self.submit(fn, data).result()

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug("Preprocess worker shut down")
