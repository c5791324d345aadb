"""
Text hierarchy model for OCR results.

Provides:
- Bounding boxes in pixel space
- Word / line / paragraph / block hierarchy
- Page information
- Complete per-image OCR result
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Dict, Any, Iterable

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class BlockType(Enum):
    """Classification of a top-level text block."""
    TEXT = "text"
    HEADING = "heading"
    LIST = "list"
    TABLE = "table"
    IMAGE = "image"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box as origin plus size."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Bounding box size must be non-negative: {self.width}x{self.height}")

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_corners(cls, x0: int, y0: int, x1: int, y1: int) -> 'BoundingBox':
        # Engines occasionally report inverted corners for empty elements
        return cls(int(x0), int(y0), max(0, int(x1) - int(x0)), max(0, int(y1) - int(y0)))

    def to_corners(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x2, self.y2)

    def union(self, other: 'BoundingBox') -> 'BoundingBox':
        return BoundingBox.from_corners(
            min(self.x, other.x),
            min(self.y, other.y),
            max(self.x2, other.x2),
            max(self.y2, other.y2)
        )

    def contains(self, other: 'BoundingBox') -> bool:
        return (
            self.x <= other.x and self.y <= other.y and
            self.x2 >= other.x2 and self.y2 >= other.y2
        )

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def union_all(boxes: Iterable[BoundingBox]) -> Optional[BoundingBox]:
    """Smallest box enclosing all given boxes, or None for no boxes."""
    result = None
    for box in boxes:
        result = box if result is None else result.union(box)
    return result


@dataclass
class TextWord:
    """A recognized word."""
    text: str
    confidence: float
    bounding_box: BoundingBox

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bounding_box": self.bounding_box.to_dict()
        }


@dataclass
class TextLine:
    """A line of words."""
    text: str
    confidence: float
    bounding_box: BoundingBox
    words: List[TextWord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bounding_box": self.bounding_box.to_dict(),
            "words": [w.to_dict() for w in self.words]
        }


@dataclass
class TextParagraph:
    """A paragraph of lines."""
    text: str
    confidence: float
    bounding_box: BoundingBox
    lines: List[TextLine] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bounding_box": self.bounding_box.to_dict(),
            "lines": [l.to_dict() for l in self.lines]
        }


@dataclass
class TextBlock:
    """A top-level block of paragraphs with its structural classification."""
    text: str
    confidence: float
    bounding_box: BoundingBox
    paragraphs: List[TextParagraph] = field(default_factory=list)
    block_type: BlockType = BlockType.UNKNOWN

    @property
    def lines(self) -> List[TextLine]:
        return [line for p in self.paragraphs for line in p.lines]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "type": self.block_type.value,
            "confidence": self.confidence,
            "bounding_box": self.bounding_box.to_dict(),
            "paragraphs": [p.to_dict() for p in self.paragraphs]
        }


@dataclass(frozen=True)
class PageInfo:
    """Page geometry."""
    page_number: int
    width: int
    height: int

    @property
    def orientation(self) -> str:
        return "landscape" if self.width > self.height else "portrait"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "width": self.width,
            "height": self.height,
            "orientation": self.orientation
        }


@dataclass(frozen=True)
class OCRResult:
    """Complete OCR result for one processed image."""
    text: str
    confidence: float
    blocks: Tuple[TextBlock, ...] = ()
    pages: Tuple[PageInfo, ...] = ()
    process_time_ms: float = 0.0

    def blocks_of_type(self, block_type: BlockType) -> List[TextBlock]:
        return [b for b in self.blocks if b.block_type == block_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "blocks": [b.to_dict() for b in self.blocks],
            "pages": [p.to_dict() for p in self.pages],
            "process_time_ms": round(self.process_time_ms, 2)
        }
