"""Recognition worker pools ("variants") and their multiplexor.

A variant is a fixed-size pool of engine instances sharing one configuration,
for example a digits-only pool for ID numbers and a general pool with a
punctuation blacklist. Jobs are submitted with ``add_job`` and come back as
futures; each pool thread borrows an idle engine for the duration of a job.

Example:
    >>> multiplexor = SchedulerMultiplexor(config.passport.variants)
    >>> scheduler = multiplexor.get_scheduler("number")
    >>> future = scheduler.add_job(surface.pixels, rectangle=rect)
    >>> print(future.result().text)
    >>> multiplexor.terminate()
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Mapping, Optional

import numpy as np

from indodoc.common.errors import SchedulerTerminatedError
from indodoc.common.types import RecognitionResult, Rectangle

from .config_loader import VariantConfig
from .engine_rapidocr import RapidOCREngine
from .engine_tesseract import TesseractEngine
from .types import RecognitionEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[VariantConfig], RecognitionEngine]


def create_engine(config: VariantConfig) -> RecognitionEngine:
    """Instantiate the engine backend selected by the variant."""
    if config.engine == "rapidocr":
        return RapidOCREngine(config)
    return TesseractEngine(config)


class RecognitionScheduler:
    """Load-balancing job queue over a fixed pool of engine instances.

    Args:
        name: Variant name (used in logs and thread names).
        config: Variant configuration. ``config.count`` engines are created
            up front.
        engine_factory: Callable creating one engine from the configuration.

    Attributes:
        name: Variant name.
        config: Variant configuration.
    """

    def __init__(
        self,
        name: str,
        config: VariantConfig,
        engine_factory: EngineFactory = create_engine,
    ):
        self.name = name
        self.config = config
        self._idle: "queue.Queue[RecognitionEngine]" = queue.Queue()
        self._engines = [engine_factory(config) for _ in range(config.count)]
        for engine in self._engines:
            self._idle.put(engine)
        self._executor = ThreadPoolExecutor(
            max_workers=config.count, thread_name_prefix=f"indodoc-ocr-{name}"
        )
        self._lock = threading.Lock()
        self._terminated = False

        logger.info(f"Scheduler '{name}' created with {config.count} {config.engine} workers")

    @property
    def num_workers(self) -> int:
        return len(self._engines)

    @property
    def terminated(self) -> bool:
        return self._terminated

    def add_job(
        self, image: np.ndarray, rectangle: Optional[Rectangle] = None
    ) -> "Future[RecognitionResult]":
        """Submit a recognition job.

        The image is read, never written, by the job. The caller must not
        mutate it in place until the future has completed.

        Args:
            image: Image to recognize.
            rectangle: Optional region to restrict recognition to.

        Returns:
            Future resolving to the RecognitionResult.

        Raises:
            SchedulerTerminatedError: If the scheduler has been terminated.
        """
        with self._lock:
            if self._terminated:
                raise SchedulerTerminatedError(f"Scheduler '{self.name}' has been terminated")
            return self._executor.submit(self._run_job, image, rectangle)

    def recognize(self, image: np.ndarray, rectangle: Optional[Rectangle] = None) -> RecognitionResult:
        """Submit a job and wait for its result."""
        return self.add_job(image, rectangle).result()

    def _run_job(self, image: np.ndarray, rectangle: Optional[Rectangle]) -> RecognitionResult:
        engine = self._idle.get()
        try:
            return engine.recognize(image, rectangle)
        finally:
            self._idle.put(engine)

    def terminate(self) -> None:
        """Wait for in-flight jobs, then release every engine."""
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
        self._executor.shutdown(wait=True)
        for engine in self._engines:
            engine.close()
        logger.info(f"Scheduler '{self.name}' terminated")


SchedulerFactory = Callable[[str, VariantConfig], RecognitionScheduler]


class SchedulerMultiplexor:
    """Manager of schedulers with different configurations.

    Schedulers are created on first use and memoized; creation happens at most
    once per variant even when several threads ask concurrently.

    Args:
        configs: Variant configurations keyed by variant name.
        scheduler_factory: Callable creating a scheduler for one variant.
    """

    def __init__(
        self,
        configs: Mapping[str, VariantConfig],
        scheduler_factory: SchedulerFactory = RecognitionScheduler,
    ):
        self._configs: Dict[str, VariantConfig] = dict(configs)
        self._factory = scheduler_factory
        self._schedulers: Dict[str, RecognitionScheduler] = {}
        self._lock = threading.Lock()
        self._terminated = False

    @property
    def variants(self):
        return tuple(self._configs)

    def get_scheduler(self, key: str) -> RecognitionScheduler:
        """Get the scheduler of a variant, creating its pool on first use.

        Raises:
            KeyError: If no variant named ``key`` is configured.
            SchedulerTerminatedError: If the multiplexor has been terminated.
        """
        with self._lock:
            if self._terminated:
                raise SchedulerTerminatedError("Scheduler multiplexor has been terminated")
            scheduler = self._schedulers.get(key)
            if scheduler is None:
                if key not in self._configs:
                    raise KeyError(f"Unknown recognition variant: {key}")
                scheduler = self._factory(key, self._configs[key])
                self._schedulers[key] = scheduler
            return scheduler

    def terminate(self) -> None:
        """Terminate every scheduler that has been created."""
        with self._lock:
            if self._terminated:
                logger.debug("Scheduler multiplexor already terminated")
                return
            self._terminated = True
            schedulers = list(self._schedulers.values())
        for scheduler in schedulers:
            scheduler.terminate()
        logger.info(f"Terminated {len(schedulers)} recognition schedulers")
