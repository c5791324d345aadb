"""
Utility modules for the OCR engine.
"""

from .io import load_pages, parse_page_range, save_json, SourcePage, InputKind
from .hierarchy import (
    BoundingBox, BlockType, TextWord, TextLine, TextParagraph, TextBlock, PageInfo, OCRResult
)
from .images import ImagePreprocessor, basic_enhancement, advanced_enhancement
from .ocr_text import TesseractWorker, RecognitionResult, post_process_text
from .workers import WorkerPool, PoolState
from .formatter import format_results
from .layout import detect_block_type
from .tables import ExtractedTable, is_likely_table, extract_table
from .structure import (
    DocumentStructureExtractor, StructuredDocument, DocumentSection, TableOfContentsEntry
)
from .progress import ProgressInfo, ProgressReporter, AbortController
from .export import MarkdownExporter

__all__ = [
    # IO
    "load_pages", "parse_page_range", "save_json", "SourcePage", "InputKind",
    # Hierarchy
    "BoundingBox", "BlockType", "TextWord", "TextLine", "TextParagraph", "TextBlock",
    "PageInfo", "OCRResult",
    # Images
    "ImagePreprocessor", "basic_enhancement", "advanced_enhancement",
    # Recognition
    "TesseractWorker", "RecognitionResult", "post_process_text", "WorkerPool", "PoolState",
    "format_results",
    # Structure
    "detect_block_type", "ExtractedTable", "is_likely_table", "extract_table",
    "DocumentStructureExtractor", "StructuredDocument", "DocumentSection", "TableOfContentsEntry",
    # Progress
    "ProgressInfo", "ProgressReporter", "AbortController",
    # Export
    "MarkdownExporter",
]
