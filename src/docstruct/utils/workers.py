"""
Recognition worker pool.

Provides:
- Pool lifecycle states (uninitialized, ready, shutting down)
- Sequential worker creation with per-worker progress
- Job dispatch to free workers with a timeout
- Failure-tolerant teardown
"""

import logging
import queue
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Callable, List, Optional

from ..config import OCROptions
from ..errors import InitializationError, RecognitionError
from .ocr_text import RecognitionResult, tesseract_worker_factory

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[int], Any]


class PoolState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"


class WorkerPool:
    """
    Fixed-size pool of long-lived recognition workers.

    A worker is any object with ``load()``, ``recognize(image)`` and
    ``terminate()``. Jobs wait for a free worker; each worker handles one job
    at a time.
    """

    def __init__(
        self,
        options: OCROptions,
        worker_factory: Optional[WorkerFactory] = None,
        on_worker_error: Optional[Callable[[int, Exception], None]] = None
    ):
        self.options = options
        self.size = options.worker_count
        self.on_worker_error = on_worker_error
        self.worker_factory = worker_factory or tesseract_worker_factory(
            options, on_error=on_worker_error
        )

        self.state = PoolState.UNINITIALIZED
        self._workers: List[Any] = []
        self._idle: "queue.Queue[Any]" = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def is_ready(self) -> bool:
        return self.state == PoolState.READY

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def is_busy(self) -> bool:
        return self.in_flight > 0

    def initialize(self, on_progress: Optional[Callable[[int, int], None]] = None):
        """
        Create and load every worker, one after another.

        Args:
            on_progress: Called with (ready_count, total) after each worker loads

        Raises:
            InitializationError: If any worker fails to load
        """
        if self.state == PoolState.READY:
            return

        logger.info(f"Initializing {self.size} recognition worker(s)")
        created = []
        try:
            for worker_id in range(self.size):
                worker = self.worker_factory(worker_id)
                created.append(worker)
                worker.load()
                if on_progress:
                    on_progress(worker_id + 1, self.size)
        except Exception as e:
            for worker in created:
                self._terminate_worker(worker)
            if isinstance(e, InitializationError):
                raise
            raise InitializationError(f"Failed to initialize worker pool: {e}") from e

        with self._lock:
            self._workers = created
            self._idle = queue.Queue()
            for worker in created:
                self._idle.put(worker)
            self._executor = ThreadPoolExecutor(
                max_workers=self.size, thread_name_prefix="docstruct-ocr"
            )
            self.state = PoolState.READY
        logger.info(f"Worker pool ready ({self.size} worker(s))")

    def submit(
        self,
        image: Any,
        timeout: Optional[float] = None,
        on_progress: Optional[Callable[[float], None]] = None
    ) -> RecognitionResult:
        """
        Recognize an image on the next free worker and wait for the result.

        Args:
            image: Encoded buffer or pixel array
            timeout: Seconds to wait (defaults to the pool's timeout option)
            on_progress: Passed to the worker; called with a 0..1 fraction

        Raises:
            RecognitionError: If the worker fails or the timeout expires
        """
        with self._lock:
            if self.state != PoolState.READY or self._executor is None:
                raise RecognitionError("Worker pool is not initialized")
            future = self._executor.submit(self._run_job, self._idle, image, on_progress)
            self._in_flight += 1

        if timeout is None:
            timeout = self.options.timeout_seconds

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise RecognitionError(
                f"Recognition timed out after {timeout * 1000:.0f} ms"
            ) from e
        except CancelledError as e:
            raise RecognitionError("Worker pool was terminated before the job started") from e
        finally:
            with self._lock:
                self._in_flight -= 1

    def _run_job(
        self,
        idle: "queue.Queue[Any]",
        image: Any,
        on_progress: Optional[Callable[[float], None]]
    ) -> RecognitionResult:
        worker = idle.get()
        worker_id = getattr(worker, "worker_id", -1)
        try:
            if on_progress is None:
                return worker.recognize(image)
            return worker.recognize(image, on_progress=on_progress)
        except RecognitionError:
            logger.error(f"Worker {worker_id} failed a recognition job")
            raise
        except Exception as e:
            logger.error(f"Worker {worker_id} error: {e}")
            if self.on_worker_error:
                self.on_worker_error(worker_id, e)
            raise RecognitionError(f"Worker {worker_id} failed: {e}", worker_id) from e
        finally:
            with self._lock:
                # A worker released by terminate() never rejoins a later pool
                if worker in self._workers:
                    self._idle.put(worker)

    def terminate(self):
        """Release every worker. Individual failures are logged, not raised."""
        with self._lock:
            if self.state == PoolState.UNINITIALIZED:
                return
            self.state = PoolState.SHUTTING_DOWN
            workers, self._workers = self._workers, []
            self._idle = queue.Queue()
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

        for worker in workers:
            self._terminate_worker(worker)

        self.state = PoolState.UNINITIALIZED
        logger.info("Worker pool terminated")

    @staticmethod
    def _terminate_worker(worker: Any):
        try:
            worker.terminate()
        except Exception as e:
            logger.warning(f"Failed to terminate worker {getattr(worker, 'worker_id', '?')}: {e}")
