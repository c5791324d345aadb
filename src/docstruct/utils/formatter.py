"""
Maps raw recognition output onto the text hierarchy model.
"""

import logging
from typing import Callable, Optional

from .hierarchy import (
    BoundingBox, BlockType, OCRResult, PageInfo,
    TextBlock, TextLine, TextParagraph, TextWord, union_all
)
from .ocr_text import RecognitionResult, Corners

logger = logging.getLogger(__name__)

BlockClassifier = Callable[[TextBlock], BlockType]


def _box(corners: Optional[Corners], fallback: Optional[BoundingBox]) -> BoundingBox:
    if corners is not None:
        return BoundingBox.from_corners(*corners)
    if fallback is not None:
        return fallback
    return BoundingBox(0, 0, 0, 0)


def format_results(
    raw: RecognitionResult,
    page_number: int = 1,
    process_time_ms: float = 0.0,
    classify_block: Optional[BlockClassifier] = None
) -> OCRResult:
    """
    Convert a RecognitionResult into an OCRResult.

    Boxes come from the engine's corners; when a parent box is missing it is
    the union of its children. Exactly one PageInfo is produced.

    Args:
        raw: Engine output for one image
        page_number: 1-based page number for the PageInfo
        process_time_ms: Wall-clock processing time to record
        classify_block: Optional classifier applied to every block
    """
    blocks = []
    for raw_block in raw.blocks:
        paragraphs = []
        for raw_para in raw_block.paragraphs:
            lines = []
            for raw_line in raw_para.lines:
                words = [
                    TextWord(w.text, w.confidence, BoundingBox.from_corners(*w.bbox))
                    for w in raw_line.words
                ]
                lines.append(TextLine(
                    text=raw_line.text,
                    confidence=raw_line.confidence,
                    bounding_box=_box(raw_line.bbox, union_all(w.bounding_box for w in words)),
                    words=words
                ))
            paragraphs.append(TextParagraph(
                text=raw_para.text,
                confidence=raw_para.confidence,
                bounding_box=_box(raw_para.bbox, union_all(l.bounding_box for l in lines)),
                lines=lines
            ))
        block = TextBlock(
            text=raw_block.text,
            confidence=raw_block.confidence,
            bounding_box=_box(raw_block.bbox, union_all(p.bounding_box for p in paragraphs)),
            paragraphs=paragraphs
        )
        if classify_block is not None:
            block.block_type = classify_block(block)
        blocks.append(block)

    page = PageInfo(page_number=page_number, width=raw.width, height=raw.height)
    logger.debug(f"Formatted {len(blocks)} block(s) for page {page_number}")

    return OCRResult(
        text=raw.text,
        confidence=raw.confidence,
        blocks=tuple(blocks),
        pages=(page,),
        process_time_ms=process_time_ms
    )
