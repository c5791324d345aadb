"""
Document Structure OCR Engine
=============================

Turns raster page images into machine-readable text, a block/paragraph/line/word
hierarchy, detected structural elements and a derived document outline.

Main components:
- Image preprocessing (contrast stretch, adaptive binarization, inversion fix)
- Pooled Tesseract recognition workers
- Block classification (headings, lists, tables, text)
- Table grid extraction
- Document structure extraction (title, metadata, table of contents, sections)
"""

from .config import OCROptions, SingleLanguage, MultiLanguage, parse_language, get_options
from .errors import (
    OCREngineError,
    InitializationError,
    AbortError,
    RecognitionError,
    PreprocessingError,
    ConfigurationError,
)
from .engine import OCREngine

__version__ = "1.0.0"
__author__ = "Document Structure OCR Team"

__all__ = [
    "OCREngine",
    "OCROptions", "SingleLanguage", "MultiLanguage", "parse_language", "get_options",
    "OCREngineError", "InitializationError", "AbortError", "RecognitionError",
    "PreprocessingError", "ConfigurationError",
]
