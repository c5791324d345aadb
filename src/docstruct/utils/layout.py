"""
Block classification for recognized pages.

Provides:
- Heading / list / table / text classification of top-level blocks
- A classifier configured from engine options
"""

import logging
import re
from typing import Callable

from ..config import OCROptions
from .hierarchy import BlockType, TextBlock
from .tables import is_likely_table, DEFAULT_ALIGNMENT_TOLERANCE, DEFAULT_ALIGNMENT_RATIO

logger = logging.getLogger(__name__)

MAX_HEADING_WORDS = 10

LIST_MARKER_PATTERNS = [
    re.compile(r'^\s*[•‣◦⁃∙⇒\-\*]\s+'),  # bullets
    re.compile(r'^\s*\d+\.\s+'),                                      # 1. item
    re.compile(r'^\s*[a-z]\.\s+'),                                    # a. item
]


def is_heading(block: TextBlock) -> bool:
    """One paragraph holding one line of at most ten words."""
    if len(block.paragraphs) != 1:
        return False
    lines = block.paragraphs[0].lines
    return len(lines) == 1 and len(lines[0].words) <= MAX_HEADING_WORDS


def is_list(block: TextBlock) -> bool:
    """Every paragraph is a single line starting with a list marker."""
    if not block.paragraphs:
        return False
    for paragraph in block.paragraphs:
        if len(paragraph.lines) != 1:
            return False
        text = paragraph.lines[0].text
        if not any(p.match(text) for p in LIST_MARKER_PATTERNS):
            return False
    return True


def detect_block_type(
    block: TextBlock,
    table_tolerance: int = DEFAULT_ALIGNMENT_TOLERANCE,
    table_ratio: float = DEFAULT_ALIGNMENT_RATIO
) -> BlockType:
    """
    Classify a block. First match wins: heading, list, table, text.

    A short single-line block is a heading even if it also looks like a list item.
    """
    if is_heading(block):
        return BlockType.HEADING
    if is_list(block):
        return BlockType.LIST
    if is_likely_table(block, table_tolerance, table_ratio):
        return BlockType.TABLE
    return BlockType.TEXT


def make_classifier(options: OCROptions) -> Callable[[TextBlock], BlockType]:
    """Block classifier honoring structure detection and table tuning options."""
    if not options.detect_structure:
        return lambda block: BlockType.UNKNOWN

    def classify(block: TextBlock) -> BlockType:
        return detect_block_type(
            block,
            table_tolerance=options.table_alignment_tolerance,
            table_ratio=options.table_alignment_ratio
        )
    return classify
