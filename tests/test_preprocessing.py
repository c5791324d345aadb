"""
Tests for image preprocessing module.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestBasicEnhancement:
    """Luminance conversion and contrast stretch."""

    @pytest.fixture
    def low_contrast_image(self):
        """Color image with values confined to 80..170."""
        rng = np.random.default_rng(42)
        gray = rng.integers(80, 171, size=(60, 80), dtype=np.uint8)
        return np.dstack([gray, gray, gray])

    def test_luminance_weights(self):
        from docstruct.utils.images import to_luminance

        # BGR order: pure red, pure green, pure blue
        img = np.array([[[0, 0, 255], [0, 255, 0], [255, 0, 0]]], dtype=np.uint8)
        gray = to_luminance(img)

        assert gray.tolist() == [[76, 150, 29]]

    def test_luminance_of_gray_is_identity(self):
        from docstruct.utils.images import to_luminance

        gray = np.arange(256, dtype=np.uint8).reshape(16, 16)
        assert np.array_equal(to_luminance(np.dstack([gray, gray, gray])), gray)

    def test_stretch_bounds_clip_one_percent(self):
        from docstruct.utils.images import contrast_stretch_bounds

        gray = np.full((10, 100), 128, dtype=np.uint8)
        gray[0, :5] = 10    # 0.5% of pixels, below the clip fraction
        gray[1, :20] = 20   # reaches 1% together with the 10s

        bounds = contrast_stretch_bounds(gray)
        assert bounds.low == 20
        assert bounds.high == 128

    def test_flat_image_bounds_avoid_zero_range(self):
        from docstruct.utils.images import contrast_stretch_bounds

        bounds = contrast_stretch_bounds(np.full((10, 10), 90, dtype=np.uint8))
        assert bounds.high == bounds.low + 1

    def test_full_range_stretch_is_identity(self):
        from docstruct.utils.images import contrast_stretch, StretchBounds

        gray = np.arange(256, dtype=np.uint8).reshape(16, 16)
        assert np.array_equal(contrast_stretch(gray, StretchBounds(0, 255)), gray)

    def test_stretch_expands_range(self, low_contrast_image):
        from docstruct.utils.images import basic_enhancement

        result = basic_enhancement(low_contrast_image)

        assert result.shape == low_contrast_image.shape
        assert result.min() == 0
        assert result.max() == 255

    def test_stretch_is_idempotent(self, low_contrast_image):
        from docstruct.utils.images import basic_enhancement

        once = basic_enhancement(low_contrast_image)
        twice = basic_enhancement(once)

        assert np.array_equal(once, twice)

    def test_stretch_is_monotonic(self):
        from docstruct.utils.images import contrast_stretch, StretchBounds

        gray = np.arange(256, dtype=np.uint8).reshape(1, 256)
        out = contrast_stretch(gray, StretchBounds(40, 200)).ravel().astype(int)

        assert np.all(np.diff(out) >= 0)

    def test_alpha_channel_preserved(self):
        from docstruct.utils.images import basic_enhancement

        img = np.zeros((10, 10, 4), dtype=np.uint8)
        img[:, :, :3] = np.arange(10, dtype=np.uint8)[:, None, None] * 20
        img[:, :, 3] = 77

        result = basic_enhancement(img)

        assert result.shape == (10, 10, 4)
        assert np.all(result[:, :, 3] == 77)
        assert np.array_equal(result[:, :, 0], result[:, :, 2])


class TestAdvancedEnhancement:
    """Adaptive binarization path."""

    def test_output_is_binary(self):
        from docstruct.utils.images import advanced_enhancement

        img = np.full((100, 100, 3), 230, dtype=np.uint8)
        img[40:50, 10:90] = 20

        result = advanced_enhancement(img)

        assert result.shape == img.shape
        assert set(np.unique(result)) <= {0, 255}

    def test_dark_image_is_inverted(self):
        from docstruct.utils.images import fix_inversion

        dark = np.zeros((20, 20), dtype=np.uint8)
        dark[5:8, 2:18] = 255

        fixed, inverted = fix_inversion(dark)

        assert inverted
        assert fixed.mean() > 127

    def test_light_image_not_inverted(self):
        from docstruct.utils.images import fix_inversion

        light = np.full((20, 20), 240, dtype=np.uint8)
        fixed, inverted = fix_inversion(light)

        assert not inverted
        assert np.array_equal(fixed, light)


class TestImagePreprocessor:
    """Buffer handling and the fail-open policy."""

    def test_bytes_round_trip_keeps_format(self):
        from docstruct.utils.images import ImagePreprocessor
        from docstruct.utils.io import encode_image_bytes

        img = np.full((30, 30, 3), 200, dtype=np.uint8)
        img[10:20, 5:25] = 30
        png = encode_image_bytes(img, ".png")

        result = ImagePreprocessor(enhance=False).process(png)

        assert isinstance(result, bytes)
        assert result.startswith(b"\x89PNG")

    def test_sixteen_bit_array_keeps_contrast(self):
        from docstruct.utils.images import ImagePreprocessor

        img = np.full((40, 40, 3), 30000, dtype=np.uint16)
        img[10:30, 10:30] = 5000

        result = ImagePreprocessor(enhance=False).process(img)

        assert result.dtype == np.uint8
        assert result[0, 0, 0] == 255
        assert result[20, 20, 0] == 0

    def test_sixteen_bit_png(self):
        import cv2
        from docstruct.utils.images import ImagePreprocessor

        img = np.full((40, 40), 30000, dtype=np.uint16)
        img[10:30, 10:30] = 5000
        ok, encoded = cv2.imencode(".png", img)
        assert ok

        result = ImagePreprocessor(enhance=False).process(encoded.tobytes())
        decoded = cv2.imdecode(np.frombuffer(result, dtype=np.uint8), cv2.IMREAD_UNCHANGED)

        assert set(np.unique(decoded)) == {0, 255}
        assert decoded[20, 20] == 0

    def test_float_image_scaled(self):
        from docstruct.utils.images import to_uint8

        img = np.array([[0.0, 0.5], [0.25, 1.0]], dtype=np.float32)
        scaled = to_uint8(img)

        assert scaled.dtype == np.uint8
        assert scaled[0, 0] == 0 and scaled[1, 1] == 255
        assert scaled[0, 0] < scaled[1, 0] < scaled[0, 1] < scaled[1, 1]

    def test_array_in_array_out(self):
        from docstruct.utils.images import ImagePreprocessor

        img = np.full((30, 30), 128, dtype=np.uint8)
        result = ImagePreprocessor(enhance=True).process(img)

        assert isinstance(result, np.ndarray)
        assert result.shape == img.shape

    def test_undecodable_bytes_returned_unchanged(self):
        from docstruct.utils.images import ImagePreprocessor

        errors = []
        data = b"definitely not an image"

        result = ImagePreprocessor(on_error=errors.append).process(data)

        assert result is data
        assert len(errors) == 1
        assert "preprocessing failed" in errors[0]

    def test_empty_array_returned_unchanged(self):
        from docstruct.utils.images import ImagePreprocessor

        empty = np.zeros((0, 0), dtype=np.uint8)
        assert ImagePreprocessor().process(empty) is empty


class TestImageFormat:
    """Magic-byte format detection."""

    @pytest.mark.parametrize("header,expected", [
        (b"\x89PNG\r\n\x1a\n", ".png"),
        (b"\xff\xd8\xff\xe0", ".jpg"),
        (b"BM\x00\x00", ".bmp"),
        (b"II*\x00", ".tiff"),
        (b"????", ".png"),
    ])
    def test_detect_image_format(self, header, expected):
        from docstruct.utils.io import detect_image_format
        assert detect_image_format(header + b"\x00" * 8) == expected
