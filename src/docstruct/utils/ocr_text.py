"""
Text recognition module for the OCR engine.

Provides:
- Raw recognition result types (engine-reported corners and confidences)
- Tesseract recognition worker
- Grouping of Tesseract word rows into blocks, paragraphs and lines
- Text post-processing (hyphenation fix, digit confusions)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any, Callable, Union

import numpy as np

from ..config import Language, OCROptions
from ..errors import InitializationError, RecognitionError

logger = logging.getLogger(__name__)

Corners = Tuple[int, int, int, int]  # (x0, y0, x1, y1)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class RawWord:
    """Recognized word as reported by the engine."""
    text: str
    confidence: float
    bbox: Corners


@dataclass
class RawLine:
    """Recognized line. bbox may be None when the engine omits it."""
    text: str
    confidence: float
    words: List[RawWord] = field(default_factory=list)
    bbox: Optional[Corners] = None


@dataclass
class RawParagraph:
    text: str
    confidence: float
    lines: List[RawLine] = field(default_factory=list)
    bbox: Optional[Corners] = None


@dataclass
class RawBlock:
    text: str
    confidence: float
    paragraphs: List[RawParagraph] = field(default_factory=list)
    bbox: Optional[Corners] = None


@dataclass
class RecognitionResult:
    """Complete engine output for one image."""
    text: str
    confidence: float
    blocks: List[RawBlock] = field(default_factory=list)
    width: int = 0
    height: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Tesseract Output Grouping
# ============================================================================

def _union_corners(boxes: List[Corners]) -> Optional[Corners]:
    if not boxes:
        return None
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes)
    )


def _mean(values: List[float]) -> float:
    return float(np.mean(values)) if values else 0.0


def build_recognition_result(
    data: Dict[str, List[Any]],
    width: int,
    height: int
) -> RecognitionResult:
    """
    Group Tesseract ``image_to_data`` rows into the block hierarchy.

    Only word rows with text and a valid confidence are kept. Parent boxes are
    the union of their words and parent confidence is the mean word confidence.

    Args:
        data: Output of ``pytesseract.image_to_data(..., output_type=Output.DICT)``
        width: Image width in pixels
        height: Image height in pixels
    """
    grouped: Dict[int, Dict[int, Dict[int, List[RawWord]]]] = {}

    for i in range(len(data['text'])):
        text = str(data['text'][i]).strip()
        conf = float(data['conf'][i])

        if conf < 0 or not text:  # -1 marks non-word rows
            continue

        left, top = int(data['left'][i]), int(data['top'][i])
        word = RawWord(
            text=text,
            confidence=conf,
            bbox=(left, top, left + int(data['width'][i]), top + int(data['height'][i]))
        )
        (grouped
            .setdefault(int(data['block_num'][i]), {})
            .setdefault(int(data['par_num'][i]), {})
            .setdefault(int(data['line_num'][i]), [])
            .append(word))

    blocks = []
    for paragraphs_by_num in grouped.values():
        paragraphs = []
        for lines_by_num in paragraphs_by_num.values():
            lines = []
            for words in lines_by_num.values():
                lines.append(RawLine(
                    text=' '.join(w.text for w in words),
                    confidence=_mean([w.confidence for w in words]),
                    words=words,
                    bbox=_union_corners([w.bbox for w in words])
                ))
            line_words = [w for l in lines for w in l.words]
            paragraphs.append(RawParagraph(
                text='\n'.join(l.text for l in lines),
                confidence=_mean([w.confidence for w in line_words]),
                lines=lines,
                bbox=_union_corners([l.bbox for l in lines])
            ))
        block_words = [w for p in paragraphs for l in p.lines for w in l.words]
        blocks.append(RawBlock(
            text='\n\n'.join(p.text for p in paragraphs),
            confidence=_mean([w.confidence for w in block_words]),
            paragraphs=paragraphs,
            bbox=_union_corners([p.bbox for p in paragraphs])
        ))

    all_words = [w for b in blocks for p in b.paragraphs for l in p.lines for w in l.words]

    return RecognitionResult(
        text='\n\n'.join(b.text for b in blocks),
        confidence=_mean([w.confidence for w in all_words]),
        blocks=blocks,
        width=width,
        height=height
    )


# ============================================================================
# Tesseract Worker
# ============================================================================

class TesseractWorker:
    """
    One long-lived Tesseract recognition handle.

    Every worker in a pool shares the same language set and segmentation and
    engine modes; ``load()`` must succeed before ``recognize()`` is called.
    """

    def __init__(
        self,
        worker_id: int,
        language: Language,
        page_segmentation_mode: int = 3,
        engine_mode: int = 1,
        char_whitelist: Optional[str] = None,
        preserve_interword_spaces: bool = False,
        on_error: Optional[Callable[[int, Exception], None]] = None
    ):
        self.worker_id = worker_id
        self.language = language
        self.page_segmentation_mode = page_segmentation_mode
        self.engine_mode = engine_mode
        self.char_whitelist = char_whitelist
        self.preserve_interword_spaces = preserve_interword_spaces
        self.on_error = on_error
        self._pytesseract = None

    @property
    def config(self) -> str:
        """Tesseract command-line configuration string."""
        parts = [f"--psm {self.page_segmentation_mode}", f"--oem {self.engine_mode}"]
        if self.char_whitelist:
            parts.append(f"-c tessedit_char_whitelist={self.char_whitelist}")
        if self.preserve_interword_spaces:
            parts.append("-c preserve_interword_spaces=1")
        return " ".join(parts)

    @property
    def is_loaded(self) -> bool:
        return self._pytesseract is not None

    def load(self):
        """
        Check that Tesseract and every requested language pack are installed.

        Raises:
            InitializationError: If Tesseract or a language pack is missing
        """
        try:
            import pytesseract

            version = pytesseract.get_tesseract_version()
            available = set(pytesseract.get_languages(config=''))
        except Exception as e:
            raise InitializationError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            ) from e

        missing = [code for code in self.language.codes if code not in available]
        if missing:
            raise InitializationError(
                f"Tesseract language data not installed: {', '.join(missing)}"
            )

        self._pytesseract = pytesseract
        logger.debug(f"Worker {self.worker_id} loaded Tesseract {version} "
                     f"({self.language.tesseract_code})")

    def recognize(
        self,
        image: Union[bytes, np.ndarray],
        on_progress: Optional[Callable[[float], None]] = None
    ) -> RecognitionResult:
        """
        Recognize an image.

        Args:
            image: Encoded buffer or BGR/BGRA/grayscale pixel array
            on_progress: Called with 0.1 once the image is decoded, 0.9 after
                Tesseract returns and 1.0 when the result is grouped

        Raises:
            RecognitionError: If the worker is not loaded or Tesseract fails
        """
        if self._pytesseract is None:
            raise RecognitionError(f"Worker {self.worker_id} is not loaded", self.worker_id)

        report = on_progress or (lambda fraction: None)
        try:
            pixels = self._to_pixels(image)
            report(0.1)
            data = self._pytesseract.image_to_data(
                pixels,
                lang=self.language.tesseract_code,
                config=self.config,
                output_type=self._pytesseract.Output.DICT
            )
        except Exception as e:
            if self.on_error:
                self.on_error(self.worker_id, e)
            raise RecognitionError(
                f"Worker {self.worker_id} failed to recognize image: {e}", self.worker_id
            ) from e
        report(0.9)

        height, width = pixels.shape[:2]
        result = build_recognition_result(data, width, height)
        result.metadata["worker_id"] = self.worker_id
        report(1.0)
        return result

    def terminate(self):
        self._pytesseract = None

    @staticmethod
    def _to_pixels(image: Union[bytes, np.ndarray]) -> np.ndarray:
        if isinstance(image, (bytes, bytearray)):
            from .io import decode_image_bytes
            image = decode_image_bytes(bytes(image))
        if image.ndim == 3 and image.shape[2] == 3:
            return image[:, :, ::-1]  # BGR -> RGB
        if image.ndim == 3 and image.shape[2] == 4:
            import cv2
            return cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
        return image


def tesseract_worker_factory(
    options: OCROptions,
    on_error: Optional[Callable[[int, Exception], None]] = None
) -> Callable[[int], TesseractWorker]:
    """Build a factory creating identically configured Tesseract workers."""
    def create(worker_id: int) -> TesseractWorker:
        return TesseractWorker(
            worker_id=worker_id,
            language=options.language,
            page_segmentation_mode=options.page_segmentation_mode,
            engine_mode=options.engine_mode,
            char_whitelist=options.char_whitelist,
            preserve_interword_spaces=options.preserve_interword_spaces,
            on_error=on_error
        )
    return create


# ============================================================================
# Post-processing
# ============================================================================

HYPHEN_PREFIXES = ('self', 'non', 'pre', 'post', 'anti', 'co', 're')


def fix_hyphenation(text: str) -> str:
    """
    Fix hyphenated words that were split across lines.

    Example: "docu-\\nment" -> "document"
    """
    pattern = r'(\w+)-[ \t]*\n[ \t]*(\w+)'

    def replace_hyphen(match):
        word1 = match.group(1)
        word2 = match.group(2)
        # Likely a hyphenated compound word
        if word1.lower() in HYPHEN_PREFIXES:
            return f"{word1}-{word2}"
        return word1 + word2

    return re.sub(pattern, replace_hyphen, text)


DIGIT_CONFUSIONS = [
    (re.compile(r'(?<=\d)O'), '0'),
    (re.compile(r'O(?=\d)'), '0'),
    (re.compile(r'(?<=\d)l'), '1'),
    (re.compile(r'l(?=\d)'), '1'),
]


def fix_digit_confusions(text: str) -> str:
    """Replace letters misread inside numbers: 'O' -> '0', 'l' -> '1'."""
    for pattern, replacement in DIGIT_CONFUSIONS:
        text = pattern.sub(replacement, text)
    return text


def post_process_text(text: str) -> str:
    """Apply all text corrections."""
    return fix_digit_confusions(fix_hyphenation(text))
