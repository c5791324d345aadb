"""
Page sources and buffer codecs.

Provides:
- Input kind detection (PDF, single image, folder of page scans)
- Page selection ("1-3,7") applied before rasterizing a PDF
- Encoded-buffer decoding/encoding with OpenCV
- JSON output for processed documents
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp')

PathLike = Union[str, Path]


class InputKind(Enum):
    PDF = "pdf"
    IMAGE = "image"
    FOLDER = "folder"


@dataclass
class SourcePage:
    """One page image and its 1-based number in the source."""
    number: int
    image: np.ndarray


# ============================================================================
# Page Selection
# ============================================================================

def parse_page_range(page_str: str, max_pages: int) -> List[int]:
    """
    Parse "1-5" / "1,3,5" / "2-4,9" into sorted unique page numbers.

    Numbers outside 1..max_pages are dropped.
    """
    pages = set()

    for part in page_str.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = part.split("-", 1)
            pages.update(range(max(1, int(start)), min(int(end), max_pages) + 1))
        else:
            page = int(part)
            if 1 <= page <= max_pages:
                pages.add(page)

    return sorted(pages)


def _runs(numbers: Iterable[int]) -> List[tuple]:
    """Collapse sorted page numbers into (first, last) runs."""
    runs: List[list] = []
    for n in numbers:
        if runs and n == runs[-1][1] + 1:
            runs[-1][1] = n
        else:
            runs.append([n, n])
    return [tuple(r) for r in runs]


# ============================================================================
# Page Sources
# ============================================================================

def detect_input_kind(path: PathLike) -> Optional[InputKind]:
    """Classify an input path; None when it is missing or unsupported."""
    path = Path(path)

    if path.is_dir():
        if any(f.suffix.lower() in IMAGE_EXTENSIONS for f in path.iterdir()):
            return InputKind.FOLDER
        return None

    if not path.is_file():
        return None
    if path.suffix.lower() == '.pdf':
        return InputKind.PDF
    if path.suffix.lower() in IMAGE_EXTENSIONS:
        return InputKind.IMAGE
    return None


def read_image(path: PathLike) -> np.ndarray:
    """
    Read a page scan as a BGR array.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If OpenCV cannot decode it
    """
    import cv2

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError(f"Could not decode image: {path}")
    return image


def render_pdf_pages(
    path: PathLike,
    dpi: int = 300,
    page_range: Optional[str] = None
) -> List[SourcePage]:
    """
    Rasterize PDF pages with pdf2image (poppler).

    Only the pages named by ``page_range`` are rendered; each contiguous run
    is converted in one call.

    Raises:
        FileNotFoundError: If the PDF is missing
        RuntimeError: If poppler is missing or the PDF cannot be parsed
    """
    from pdf2image import convert_from_path, pdfinfo_from_path
    from pdf2image.exceptions import (
        PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
    )

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"PDF file not found: {path}")

    try:
        page_count = int(pdfinfo_from_path(str(path))["Pages"])
        numbers = (
            parse_page_range(page_range, page_count) if page_range
            else list(range(1, page_count + 1))
        )
        logger.info(f"Rendering {len(numbers)} of {page_count} PDF page(s) at {dpi} DPI")

        pages = []
        for first, last in _runs(numbers):
            rendered = convert_from_path(str(path), dpi=dpi, first_page=first, last_page=last)
            for offset, pil_page in enumerate(rendered):
                # PIL gives RGB; the pipeline works in OpenCV BGR
                rgb = np.array(pil_page.convert("RGB"))
                pages.append(SourcePage(first + offset, rgb[:, :, ::-1].copy()))
        return pages

    except PDFInfoNotInstalledError as e:
        raise RuntimeError(
            "Poppler is not installed (macOS: brew install poppler, "
            "Debian/Ubuntu: apt-get install poppler-utils)"
        ) from e
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Failed to parse PDF {path}: {e}") from e


def load_pages(
    path: PathLike,
    dpi: int = 300,
    page_range: Optional[str] = None
) -> List[SourcePage]:
    """
    Load the pages of a PDF, a single image, or a folder of scans.

    Folder files are taken in file-name order; unreadable files are skipped
    with a warning but keep their page number.

    Raises:
        ValueError: If the input is missing or unsupported
    """
    kind = detect_input_kind(path)
    logger.info(f"Input {path}: {kind.value if kind else 'unsupported'}")

    if kind is None:
        raise ValueError(f"Unsupported input: {path}")
    if kind is InputKind.PDF:
        return render_pdf_pages(path, dpi=dpi, page_range=page_range)

    if kind is InputKind.IMAGE:
        files = [Path(path)]
    else:
        files = sorted(f for f in Path(path).iterdir() if f.suffix.lower() in IMAGE_EXTENSIONS)

    wanted = set(parse_page_range(page_range, len(files))) if page_range else None
    pages = []
    for number, file in enumerate(files, start=1):
        if wanted is not None and number not in wanted:
            continue
        try:
            pages.append(SourcePage(number, read_image(file)))
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping page {number} ({file.name}): {e}")
    return pages


# ============================================================================
# Encoded Buffers
# ============================================================================

def detect_image_format(data: bytes) -> str:
    """
    Detect the container format of an encoded image from its magic bytes.

    Returns:
        File extension including the dot; '.png' when unknown
    """
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return '.png'
    if data.startswith(b'\xff\xd8'):
        return '.jpg'
    if data.startswith(b'BM'):
        return '.bmp'
    if data.startswith((b'II*\x00', b'MM\x00*')):
        return '.tiff'
    return '.png'


def decode_image_bytes(data: bytes) -> np.ndarray:
    """
    Decode an encoded image, keeping an alpha channel if present.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    import cv2

    if not data:
        raise ValueError("Empty image buffer")

    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError("Could not decode image buffer")
    return image


def encode_image_bytes(image: np.ndarray, fmt: str = '.png') -> bytes:
    """
    Encode a pixel array into the given container format.

    Raises:
        ValueError: If OpenCV cannot encode the image
    """
    import cv2

    ok, encoded = cv2.imencode(fmt, image)
    if not ok:
        raise ValueError(f"Could not encode image as {fmt}")
    return encoded.tobytes()


# ============================================================================
# JSON Output
# ============================================================================

def _json_default(obj: Any) -> Any:
    if hasattr(obj, 'to_dict'):
        return obj.to_dict()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Not JSON serializable: {type(obj).__name__}")


def save_json(data: Any, output_path: PathLike, indent: int = 2) -> Path:
    """Write ``data`` as UTF-8 JSON, creating parent directories. Returns the path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=_json_default)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path
