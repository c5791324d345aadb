"""
OCR engine: the public entry point.

Runs the per-image pipeline

    preprocess -> recognize (worker pool) -> format -> classify blocks

and derives document structure from the recognized text of one or more pages.
Every public operation logs failures, emits an "error" event and re-raises.
Cancellation raises AbortError without an error event.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence

from .config import OCROptions, get_options
from .errors import AbortError, ConfigurationError
from .utils.formatter import format_results
from .utils.hierarchy import BlockType, OCRResult
from .utils.images import ImagePreprocessor, ImageBuffer
from .utils.layout import make_classifier
from .utils.ocr_text import post_process_text
from .utils.progress import AbortController, ProgressInfo, ProgressReporter
from .utils.structure import DocumentStructureExtractor, StructuredDocument
from .utils.tables import ExtractedTable, extract_table
from .utils.workers import WorkerPool

logger = logging.getLogger(__name__)

# Options baked into every worker; changing one rebuilds the pool
POOL_OPTIONS = frozenset({
    "language", "page_segmentation_mode", "engine_mode", "worker_count",
    "char_whitelist", "preserve_interword_spaces", "timeout_ms",
})

LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class OCREngine:
    """
    Turns page images into text, a block hierarchy and a document outline.

    Example:
        with OCREngine(language="eng+deu", worker_count=2) as engine:
            result = engine.process_image(image_bytes)
            print(result.text)

    Args:
        options: Base options (defaults to ``get_options()``)
        worker_factory: Optional ``(worker_id, options) -> worker`` used instead
            of Tesseract workers
        **overrides: Individual option overrides
    """

    def __init__(
        self,
        options: Optional[OCROptions] = None,
        worker_factory: Optional[Callable[[int, OCROptions], Any]] = None,
        **overrides
    ):
        base = options if options is not None else get_options()
        self.options = base.merged(**overrides) if overrides else base
        self._worker_factory = worker_factory

        self.events = ProgressReporter(self.options.progress_callback)
        self._abort = AbortController(self.options.abort_signal)
        self._structure = DocumentStructureExtractor()
        self._classifier = make_classifier(self.options)
        self._pool = self._create_pool()

        self._state_lock = threading.Lock()
        self._active_jobs = 0
        self._start_time: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.terminate()
        return False

    @property
    def is_initialized(self) -> bool:
        return self._pool.is_ready

    @property
    def is_busy(self) -> bool:
        with self._state_lock:
            return self._active_jobs > 0

    def on(self, event: str, callback: Callable) -> Callable[[], None]:
        """Subscribe to "progress", "abort" or "error". Returns an unsubscribe function."""
        return self.events.subscribe(event, callback)

    def _create_pool(self) -> WorkerPool:
        factory = None
        if self._worker_factory is not None:
            options = self.options
            user_factory = self._worker_factory
            factory = lambda worker_id: user_factory(worker_id, options)
        return WorkerPool(self.options, worker_factory=factory, on_worker_error=self._on_worker_error)

    def _on_worker_error(self, worker_id: int, error: Exception):
        self._log(f"Worker {worker_id} error: {error}", "warn")

    def configure(self, **changes):
        """
        Merge new options.

        Changing a worker option while a job is running raises
        ConfigurationError. When idle, the pool is released and re-created
        on next use. The whole transition holds the state lock, so a call
        starting meanwhile waits and then sees the new pool.
        """
        with self._state_lock:
            new_options = self.options.merged(**changes)
            pool_changed = any(
                getattr(new_options, name) != getattr(self.options, name) for name in POOL_OPTIONS
            )
            if pool_changed and self._active_jobs > 0:
                raise ConfigurationError(
                    "Cannot change recognition options while a job is in progress"
                )

            self.options = new_options
            self.events.progress_callback = new_options.progress_callback
            self._abort.signal = new_options.abort_signal
            self._classifier = make_classifier(new_options)

            if pool_changed:
                self._pool.terminate()
                self._pool = self._create_pool()
                self._log("Recognition options changed; workers will be re-created on next use", "info")

    def abort(self):
        """Request cancellation at the next checked boundary."""
        self._abort.abort()
        self._log("Abort requested", "info")
        self.events.emit("abort")

    def terminate(self):
        """Release all workers. Safe to call when not initialized."""
        self._pool.terminate()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def process_image(self, image: ImageBuffer) -> OCRResult:
        """Run the full pipeline on one image."""
        with self._top_level_call("process_image"):
            return self._process_image(image)

    def process_multiple_images(self, images: Sequence[ImageBuffer]) -> List[str]:
        """
        Process images one after another and return their texts in input order.

        A failure or abort on any image stops the batch.
        """
        with self._top_level_call("process_multiple_images"):
            total = len(images)
            texts = []
            for index, image in enumerate(images):
                result = self._process_image(image, page=index + 1, total_pages=total)
                texts.append(result.text)

            self._emit_progress(
                "complete", 100, f"Processed {total} image(s)", page=total, total_pages=total
            )
            return texts

    def extract_structured_content(self, texts: Sequence[str]) -> StructuredDocument:
        """Derive title, metadata, table of contents and sections from page texts."""
        try:
            return self._structure.extract(list(texts))
        except Exception as e:
            self._fail("extract_structured_content", e)
            raise

    def extract_tables(self, image: ImageBuffer) -> List[ExtractedTable]:
        """Process an image and extract every table-classified block."""
        with self._top_level_call("extract_tables"):
            result = self._process_image(image)
            return [
                extract_table(block, row_gap=self.options.table_row_gap)
                for block in result.blocks_of_type(BlockType.TABLE)
            ]

    def enhance_image(self, image: ImageBuffer) -> ImageBuffer:
        """Preprocess an image without recognizing it."""
        return self._preprocessor().process(image)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    @contextmanager
    def _top_level_call(self, operation: str):
        with self._state_lock:
            self._active_jobs += 1
        self._abort.reset()
        self._start_time = time.monotonic()
        try:
            yield
        except AbortError:
            self._log(f"{operation} aborted", "info")
            raise
        except Exception as e:
            self._fail(operation, e)
            raise
        finally:
            with self._state_lock:
                self._active_jobs -= 1

    def _process_image(
        self,
        image: ImageBuffer,
        page: Optional[int] = None,
        total_pages: Optional[int] = None
    ) -> OCRResult:
        self._abort.check()
        started = time.monotonic()
        where = {"page": page, "total_pages": total_pages}

        self._ensure_pool(**where)
        self._emit_progress("loading", 50, "Loading image", **where)

        if self.options.preprocess_image:
            self._emit_progress("processing", 55, "Preprocessing image", **where)
            self._abort.check()
            image = self._preprocessor().process(image)
            self._abort.check()

        self._emit_progress("recognizing", 60, "Recognizing text", **where)

        def on_recognize_progress(fraction: float):
            fraction = min(1.0, max(0.0, fraction))
            self._emit_progress(
                "recognizing", 60 + 30 * fraction,
                f"Recognizing text: {fraction * 100:.0f}%", **where
            )

        raw = self._pool.submit(image, on_progress=on_recognize_progress)
        self._emit_progress("recognizing", 90, "Recognition finished", **where)

        self._emit_progress("processing", 92, "Analyzing document structure", **where)
        result = format_results(raw, page_number=page or 1, classify_block=self._classifier)
        if self.options.post_process:
            result = replace(result, text=post_process_text(result.text))

        result = replace(result, process_time_ms=(time.monotonic() - started) * 1000)
        self._emit_progress("complete", 100, "Recognition complete", **where)
        self._log(
            f"Processed image{f' {page}/{total_pages}' if page else ''}: "
            f"{len(result.blocks)} block(s), confidence {result.confidence:.1f}, "
            f"{result.process_time_ms:.0f} ms",
            "info"
        )
        return result

    def _ensure_pool(self, **where):
        if self._pool.is_ready:
            return

        self._emit_progress("initializing", 0, "Initializing recognition workers", **where)

        def on_worker_ready(ready: int, total: int):
            self._emit_progress(
                "initializing", 50.0 * ready / total, f"Worker {ready}/{total} ready", **where
            )

        self._pool.initialize(on_progress=on_worker_ready)

    def _preprocessor(self) -> ImagePreprocessor:
        return ImagePreprocessor(
            enhance=self.options.enhance_image,
            on_error=lambda message: self._log(message, "error")
        )

    # ------------------------------------------------------------------
    # Events and logging
    # ------------------------------------------------------------------

    def _emit_progress(
        self,
        status: str,
        progress: float,
        operation: str,
        page: Optional[int] = None,
        total_pages: Optional[int] = None,
        error: Optional[BaseException] = None
    ):
        elapsed = remaining = None
        if self._start_time is not None:
            elapsed = (time.monotonic() - self._start_time) * 1000
            if page and total_pages:
                done = page - 1 + progress / 100.0
                if done > 0:
                    remaining = elapsed / done * (total_pages - done)

        self.events.progress(ProgressInfo(
            status=status,
            progress=progress,
            page=page,
            total_pages=total_pages,
            current_operation=operation,
            time_elapsed_ms=elapsed,
            time_remaining_ms=remaining,
            error=error
        ))

    def _fail(self, operation: str, error: Exception):
        self._log(f"{operation} failed: {error}", "error")
        self._emit_progress("error", 0, f"{operation} failed", error=error)
        self.events.emit("error", error)

    def _log(self, message: str, level: str = "info"):
        if self.options.logger is not None:
            self.options.logger(message, level)
        else:
            logger.log(LOG_LEVELS.get(level, logging.INFO), message)

