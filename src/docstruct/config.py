"""
Configuration and constants for the OCR engine.

This module provides:
- Logging configuration
- Recognition language model (single or multiple languages)
- Engine options with defaults
- Environment overrides
"""

import os
import logging
import threading
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Tuple, Union, Sequence, Callable, Any

from .errors import ConfigurationError

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docstruct")


# ============================================================================
# Recognition Language
# ============================================================================

@dataclass(frozen=True)
class SingleLanguage:
    """One recognition language, e.g. 'eng'."""
    code: str

    @property
    def codes(self) -> Tuple[str, ...]:
        return (self.code,)

    @property
    def tesseract_code(self) -> str:
        return self.code


@dataclass(frozen=True)
class MultiLanguage:
    """Several recognition languages used together."""
    codes: Tuple[str, ...]

    @property
    def tesseract_code(self) -> str:
        return "+".join(self.codes)


Language = Union[SingleLanguage, MultiLanguage]


def parse_language(value: Union[str, Sequence[str], SingleLanguage, MultiLanguage]) -> Language:
    """
    Build a Language from a code, a "+"-joined code string or a list of codes.

    Raises:
        ConfigurationError: If no language code is given
    """
    if isinstance(value, (SingleLanguage, MultiLanguage)):
        return value

    if isinstance(value, str):
        codes = [c.strip() for c in value.split("+")]
    else:
        codes = [str(c).strip() for c in value]

    codes = [c for c in codes if c]
    if not codes:
        raise ConfigurationError("At least one recognition language is required")

    if len(codes) == 1:
        return SingleLanguage(codes[0])
    return MultiLanguage(tuple(codes))


# ============================================================================
# Engine Options
# ============================================================================

# Tesseract page segmentation: fully automatic, no OSD
DEFAULT_PAGE_SEGMENTATION_MODE = 3
# Tesseract engine mode: neural net LSTM only
DEFAULT_ENGINE_MODE = 1
DEFAULT_TIMEOUT_MS = 300000


def default_worker_count() -> int:
    """One less than the available hardware parallelism, at least 1."""
    return max(1, (os.cpu_count() or 2) - 1)


@dataclass
class OCROptions:
    """Options recognized by the OCR engine."""
    language: Language = field(default_factory=lambda: SingleLanguage("eng"))
    page_segmentation_mode: int = DEFAULT_PAGE_SEGMENTATION_MODE
    engine_mode: int = DEFAULT_ENGINE_MODE
    worker_count: int = field(default_factory=default_worker_count)

    preprocess_image: bool = True
    detect_structure: bool = True
    enhance_image: bool = True
    post_process: bool = False

    timeout_ms: int = DEFAULT_TIMEOUT_MS

    # Extra Tesseract parameters
    char_whitelist: Optional[str] = None
    preserve_interword_spaces: bool = False

    # Table heuristic constants
    table_alignment_tolerance: int = 10
    table_alignment_ratio: float = 0.5
    table_row_gap: int = 10

    # Collaborator hooks
    logger: Optional[Callable[[str, str], Any]] = None
    progress_callback: Optional[Callable[[Any], Any]] = None
    abort_signal: Optional[threading.Event] = None

    def __post_init__(self):
        self.language = parse_language(self.language)
        self.validate()

    def validate(self):
        """Check option ranges."""
        if self.worker_count < 1:
            raise ConfigurationError(f"worker_count must be >= 1, got {self.worker_count}")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.table_alignment_tolerance < 0 or self.table_row_gap < 0:
            raise ConfigurationError("Table pixel tolerances must be >= 0")
        if not 0 < self.table_alignment_ratio <= 1:
            raise ConfigurationError(
                f"table_alignment_ratio must be in (0, 1], got {self.table_alignment_ratio}"
            )

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def merged(self, **changes) -> "OCROptions":
        """Return a copy with the given options replaced."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        return replace(self, **changes)


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_options(**overrides) -> OCROptions:
    """Get the default engine options with environment overrides."""
    env = {}

    if os.environ.get("DOCSTRUCT_LANG"):
        env["language"] = os.environ["DOCSTRUCT_LANG"]

    if os.environ.get("DOCSTRUCT_WORKERS"):
        try:
            env["worker_count"] = int(os.environ["DOCSTRUCT_WORKERS"])
        except ValueError:
            logger.warning(f"Ignoring invalid DOCSTRUCT_WORKERS: {os.environ['DOCSTRUCT_WORKERS']}")

    if os.environ.get("DOCSTRUCT_TIMEOUT_MS"):
        try:
            env["timeout_ms"] = int(os.environ["DOCSTRUCT_TIMEOUT_MS"])
        except ValueError:
            logger.warning(f"Ignoring invalid DOCSTRUCT_TIMEOUT_MS: {os.environ['DOCSTRUCT_TIMEOUT_MS']}")

    if os.environ.get("DOCSTRUCT_DEBUG", "").lower() == "true":
        logging.getLogger("docstruct").setLevel(logging.DEBUG)

    env.update(overrides)
    return OCROptions(**env)
