"""
Error taxonomy for the OCR engine.

Callers can tell a user cancellation (AbortError) apart from genuine failures
by catching the specific subclasses; everything derives from OCREngineError.
"""


class OCREngineError(Exception):
    """Base class for all engine errors."""


class InitializationError(OCREngineError):
    """The worker pool, or one of its workers, could not be set up."""


class AbortError(OCREngineError):
    """Cooperative cancellation was observed at a checked boundary."""

    def __init__(self, message: str = "OCR processing was aborted"):
        super().__init__(message)


class RecognitionError(OCREngineError):
    """A single recognition job failed or timed out inside a worker."""

    def __init__(self, message: str, worker_id: int = -1):
        super().__init__(message)
        self.worker_id = worker_id


class PreprocessingError(OCREngineError):
    """Image preprocessing failed. Absorbed by the preprocessor, never surfaced."""


class ConfigurationError(OCREngineError):
    """Invalid option, or a reconfiguration that is not allowed right now."""
