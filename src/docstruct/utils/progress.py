"""
Progress events and cooperative cancellation.

Provides:
- ProgressInfo event payload
- ProgressReporter with explicit subscriber lists per event name
- AbortController polled at checked boundaries
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..errors import AbortError

logger = logging.getLogger(__name__)

STATUSES = ("initializing", "loading", "processing", "recognizing", "complete", "error")
EVENTS = ("progress", "abort", "error")


@dataclass
class ProgressInfo:
    """One progress event. Emitted, never stored."""
    status: str
    progress: float
    page: Optional[int] = None
    total_pages: Optional[int] = None
    current_operation: Optional[str] = None
    time_elapsed_ms: Optional[float] = None
    time_remaining_ms: Optional[float] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValueError(f"Unknown progress status: {self.status}")
        self.progress = min(100.0, max(0.0, float(self.progress)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "progress": self.progress,
            "page": self.page,
            "total_pages": self.total_pages,
            "current_operation": self.current_operation,
            "time_elapsed_ms": self.time_elapsed_ms,
            "time_remaining_ms": self.time_remaining_ms,
            "error": str(self.error) if self.error else None
        }


class ProgressReporter:
    """
    Delivers events to subscribers and to an optional progress callback.

    A failing subscriber is logged and skipped so it cannot break processing.
    """

    def __init__(self, progress_callback: Optional[Callable[[ProgressInfo], Any]] = None):
        self.progress_callback = progress_callback
        self._subscribers: Dict[str, List[Callable]] = {name: [] for name in EVENTS}
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Callable) -> Callable[[], None]:
        """
        Register a callback for "progress", "abort" or "error".

        Returns:
            A function that removes the subscription
        """
        if event not in self._subscribers:
            raise ValueError(f"Unknown event: {event}")
        with self._lock:
            self._subscribers[event].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers[event]:
                    self._subscribers[event].remove(callback)
        return unsubscribe

    def emit(self, event: str, *args):
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"{event} subscriber failed: {e}")

    def progress(self, info: ProgressInfo):
        """Send a ProgressInfo to subscribers and the progress callback."""
        self.emit("progress", info)
        if self.progress_callback:
            try:
                self.progress_callback(info)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")


class AbortController:
    """
    Cancellation flag checked at the start of each image and around preprocessing.

    An external ``threading.Event`` may be supplied; setting it has the same
    effect as calling ``abort()``.
    """

    def __init__(self, signal: Optional[threading.Event] = None):
        self._flag = threading.Event()
        self.signal = signal

    def abort(self):
        self._flag.set()

    def reset(self):
        self._flag.clear()

    @property
    def is_aborted(self) -> bool:
        return self._flag.is_set() or (self.signal is not None and self.signal.is_set())

    def check(self):
        """Raise AbortError if cancellation was requested."""
        if self.is_aborted:
            raise AbortError()
