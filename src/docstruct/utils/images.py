"""
Image preprocessing utilities for the OCR engine.

Provides:
- Luminance conversion and histogram contrast stretch (basic path)
- Adaptive binarization, median denoise and inversion fix (enhanced path)
- Fail-open preprocessing of encoded buffers or pixel arrays

Color arrays follow the OpenCV convention: BGR, or BGRA with an alpha channel.
"""

import logging
from dataclasses import dataclass
from typing import Tuple, Optional, Union, Callable

import numpy as np

from ..errors import PreprocessingError
from .io import decode_image_bytes, encode_image_bytes, detect_image_format

logger = logging.getLogger(__name__)

ImageBuffer = Union[bytes, bytearray, np.ndarray]

# ITU-R BT.601 luma weights
LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114

# Fraction of pixels clipped at each end of the histogram
STRETCH_CLIP_FRACTION = 0.01

INVERSION_MIDPOINT = 127


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class StretchBounds:
    """Histogram bounds used by the contrast stretch."""
    low: int
    high: int


# ============================================================================
# Core Preprocessing Functions
# ============================================================================

def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def to_uint8(image: np.ndarray) -> np.ndarray:
    """
    Bring any pixel depth down to 8 bits without losing tonal order.

    16-bit scans keep their high byte; other depths (float, 32-bit) are
    min-max scaled onto 0..255.
    """
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)

    import cv2
    return cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX, dtype=cv2.CV_8U)


def to_luminance(image: np.ndarray) -> np.ndarray:
    """
    Convert image to 8-bit luminance with Y = 0.299R + 0.587G + 0.114B.

    Args:
        image: Grayscale, BGR or BGRA image

    Returns:
        2D uint8 array
    """
    if image.ndim == 2:
        return image.astype(np.uint8, copy=True)
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0].astype(np.uint8, copy=True)
    if image.ndim == 3 and image.shape[2] in (3, 4):
        b = image[:, :, 0].astype(np.float64)
        g = image[:, :, 1].astype(np.float64)
        r = image[:, :, 2].astype(np.float64)
        luma = _round_half_up(LUMA_R * r + LUMA_G * g + LUMA_B * b)
        return np.clip(luma, 0, 255).astype(np.uint8)

    raise PreprocessingError(f"Unexpected image shape: {image.shape}")


def contrast_stretch_bounds(
    gray: np.ndarray,
    clip_fraction: float = STRETCH_CLIP_FRACTION
) -> StretchBounds:
    """
    Find the luminance range holding all but the darkest and brightest pixels.

    Args:
        gray: 2D uint8 luminance image
        clip_fraction: Fraction of pixels to skip at each end

    Returns:
        StretchBounds with high > low
    """
    histogram = np.bincount(gray.ravel(), minlength=256)
    threshold = gray.size * clip_fraction

    low = int(np.argmax(np.cumsum(histogram) >= threshold))
    high = 255 - int(np.argmax(np.cumsum(histogram[::-1]) >= threshold))

    if high <= low:
        high = low + 1

    return StretchBounds(low=low, high=high)


def contrast_stretch(gray: np.ndarray, bounds: StretchBounds) -> np.ndarray:
    """Linearly map [low, high] onto [0, 255], clamping outside values."""
    scaled = 255.0 * (gray.astype(np.float64) - bounds.low) / (bounds.high - bounds.low)
    return np.clip(_round_half_up(scaled), 0, 255).astype(np.uint8)


def restore_channels(gray: np.ndarray, like: np.ndarray) -> np.ndarray:
    """Write a grayscale result back into the channel layout of the source image."""
    if like.ndim == 2:
        return gray
    channels = like.shape[2]
    if channels == 1:
        return gray[:, :, np.newaxis]
    if channels == 3:
        return np.dstack([gray, gray, gray])
    # Alpha is carried over untouched
    return np.dstack([gray, gray, gray, like[:, :, 3].astype(np.uint8)])


def basic_enhancement(image: np.ndarray) -> np.ndarray:
    """
    Grayscale conversion plus 1%-clipped histogram contrast stretch.

    The result keeps the input's channel layout with equal color channels.
    """
    gray = to_luminance(image)
    bounds = contrast_stretch_bounds(gray)
    logger.debug(f"Contrast stretch bounds: low={bounds.low}, high={bounds.high}")
    return restore_channels(contrast_stretch(gray, bounds), image)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if image.ndim == 2:
        return image
    if image.ndim == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze(axis=2)

    raise PreprocessingError(f"Unexpected image shape: {image.shape}")


def binarize_adaptive(
    gray: np.ndarray,
    block_size: int = 11,
    c: int = 2
) -> np.ndarray:
    """
    Threshold each pixel against a Gaussian-weighted mean of its neighborhood.

    Args:
        gray: 2D uint8 image
        block_size: Neighborhood size (must be odd)
        c: Constant subtracted from the local mean

    Returns:
        Binary image with values 0 and 255
    """
    import cv2

    return cv2.adaptiveThreshold(
        gray,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        block_size,
        c
    )


def median_denoise(image: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """Remove salt-and-pepper speckle left by binarization."""
    import cv2

    return cv2.medianBlur(image, kernel_size)


def fix_inversion(gray: np.ndarray, midpoint: int = INVERSION_MIDPOINT) -> Tuple[np.ndarray, bool]:
    """
    Invert images whose mean intensity is below the midpoint.

    Returns:
        Tuple of (image with dark-on-light text, whether it was inverted)
    """
    if float(np.mean(gray)) < midpoint:
        return 255 - gray, True
    return gray, False


def advanced_enhancement(image: np.ndarray) -> np.ndarray:
    """
    Grayscale, adaptive threshold, 3x3 median denoise and inversion check.

    The result keeps the input's channel layout.
    """
    gray = to_grayscale(image)
    if gray.dtype != np.uint8:
        gray = np.clip(gray, 0, 255).astype(np.uint8)

    binary = binarize_adaptive(gray)
    denoised = median_denoise(binary)
    result, inverted = fix_inversion(denoised)

    if inverted:
        logger.debug("Inverted light-on-dark image")

    return restore_channels(result, image)


# ============================================================================
# Main Preprocessing Entry Point
# ============================================================================

class ImagePreprocessor:
    """
    Turns an image buffer into one better suited to recognition.

    Accepts encoded bytes (PNG, JPEG, BMP, TIFF) or a pixel array and returns
    the same kind of buffer. Never raises: on failure the original is returned.
    """

    def __init__(
        self,
        enhance: bool = True,
        on_error: Optional[Callable[[str], None]] = None
    ):
        self.enhance = enhance
        self.on_error = on_error

    def process(self, image: ImageBuffer) -> ImageBuffer:
        """Preprocess an image buffer, falling back to the input on failure."""
        try:
            return self._process(image)
        except Exception as e:
            message = f"Image preprocessing failed: {e}"
            if self.on_error:
                self.on_error(message)
            else:
                logger.error(message)
            return image

    def _process(self, image: ImageBuffer) -> ImageBuffer:
        if isinstance(image, np.ndarray):
            if image.size == 0:
                raise PreprocessingError("Empty image")
            return self._enhance_pixels(image)

        if isinstance(image, (bytes, bytearray)):
            fmt = detect_image_format(bytes(image))
            pixels = decode_image_bytes(bytes(image))
            processed = self._enhance_pixels(pixels)
            return encode_image_bytes(processed, fmt)

        raise PreprocessingError(f"Unsupported image buffer type: {type(image).__name__}")

    def _enhance_pixels(self, pixels: np.ndarray) -> np.ndarray:
        pixels = to_uint8(pixels)
        if self.enhance:
            return advanced_enhancement(pixels)
        return basic_enhancement(pixels)
