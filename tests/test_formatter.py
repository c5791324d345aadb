"""
Tests for the hierarchy model, Tesseract output grouping and result formatting.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestBoundingBox:
    """Tests for BoundingBox."""

    def test_from_corners(self):
        from docstruct.utils.hierarchy import BoundingBox

        box = BoundingBox.from_corners(10, 20, 50, 80)
        assert (box.x, box.y, box.width, box.height) == (10, 20, 40, 60)
        assert box.to_corners() == (10, 20, 50, 80)

    def test_inverted_corners_clamped(self):
        from docstruct.utils.hierarchy import BoundingBox

        box = BoundingBox.from_corners(50, 50, 40, 45)
        assert box.width == 0
        assert box.height == 0

    def test_negative_size_rejected(self):
        from docstruct.utils.hierarchy import BoundingBox

        with pytest.raises(ValueError):
            BoundingBox(0, 0, -1, 5)

    def test_union_all(self):
        from docstruct.utils.hierarchy import BoundingBox, union_all

        boxes = [BoundingBox(10, 10, 5, 5), BoundingBox(0, 20, 3, 10)]
        assert union_all(boxes) == BoundingBox(0, 10, 15, 20)
        assert union_all([]) is None

    def test_page_orientation(self):
        from docstruct.utils.hierarchy import PageInfo

        assert PageInfo(1, 1100, 850).orientation == "landscape"
        assert PageInfo(1, 850, 1100).orientation == "portrait"


class TestBuildRecognitionResult:
    """Grouping of image_to_data rows."""

    def test_groups_words_into_hierarchy(self, make_data):
        from docstruct.utils.ocr_text import build_recognition_result

        data = make_data([
            (1, 1, 1, "Hello", 10, 10, 80.0),
            (1, 1, 1, "world", 60, 10, 90.0),
            (1, 2, 1, "Second", 10, 50),
            (2, 1, 1, "Other", 10, 200),
        ])
        raw = build_recognition_result(data, 800, 600)

        assert len(raw.blocks) == 2
        assert len(raw.blocks[0].paragraphs) == 2
        assert raw.blocks[0].paragraphs[0].lines[0].text == "Hello world"
        assert raw.blocks[0].paragraphs[0].lines[0].confidence == pytest.approx(85.0)
        assert raw.blocks[0].text == "Hello world\n\nSecond"
        assert raw.text == "Hello world\n\nSecond\n\nOther"
        assert raw.blocks[0].paragraphs[0].lines[0].bbox == (10, 10, 100, 22)

    def test_skips_empty_and_invalid_rows(self, make_data):
        from docstruct.utils.ocr_text import build_recognition_result

        data = make_data([
            (1, 1, 1, "  ", 10, 10),
            (1, 1, 1, "junk", 60, 10, -1),
            (1, 1, 1, "kept", 110, 10, "75"),
        ])
        raw = build_recognition_result(data, 100, 100)

        assert raw.text == "kept"
        assert raw.confidence == pytest.approx(75.0)

    def test_empty_output(self, make_data):
        from docstruct.utils.ocr_text import build_recognition_result

        raw = build_recognition_result(make_data([]), 100, 100)
        assert raw.blocks == []
        assert raw.text == ""
        assert raw.confidence == 0.0


class TestFormatResults:
    """Tests for format_results."""

    @pytest.fixture
    def raw(self, make_recognition):
        return make_recognition(
            "Title line\n\nFirst body line here\nSecond body line\n\nName Qty Price\nApple 3 1.20"
        )

    def test_boxes_non_negative(self, raw):
        from docstruct.utils.formatter import format_results

        result = format_results(raw)
        for block in result.blocks:
            assert block.bounding_box.width >= 0 and block.bounding_box.height >= 0
            for paragraph in block.paragraphs:
                for line in paragraph.lines:
                    for word in line.words:
                        assert word.bounding_box.width >= 0
                        assert word.bounding_box.height >= 0

    def test_block_box_is_union_of_paragraphs(self, raw):
        from docstruct.utils.formatter import format_results
        from docstruct.utils.hierarchy import union_all

        result = format_results(raw)
        for block in result.blocks:
            assert block.bounding_box == union_all(p.bounding_box for p in block.paragraphs)
            for paragraph in block.paragraphs:
                assert paragraph.bounding_box.contains(paragraph.lines[0].bounding_box)

    def test_single_page_info(self, raw):
        from docstruct.utils.formatter import format_results

        result = format_results(raw)
        assert len(result.pages) == 1
        assert result.pages[0].page_number == 1
        assert result.pages[0].orientation == "portrait"

    def test_missing_parent_box_falls_back_to_union(self, raw):
        from docstruct.utils.formatter import format_results

        expected = format_results(raw).blocks[1].bounding_box
        raw.blocks[1].bbox = None
        raw.blocks[1].paragraphs[0].bbox = None

        assert format_results(raw).blocks[1].bounding_box == expected

    def test_deterministic(self, raw):
        from docstruct.utils.formatter import format_results
        assert format_results(raw).to_dict() == format_results(raw).to_dict()

    def test_classifier_applied(self, raw):
        from docstruct.utils.formatter import format_results
        from docstruct.utils.hierarchy import BlockType

        result = format_results(raw, classify_block=lambda b: BlockType.TEXT)
        assert all(b.block_type == BlockType.TEXT for b in result.blocks)

    def test_unclassified_blocks_are_unknown(self, raw):
        from docstruct.utils.formatter import format_results
        from docstruct.utils.hierarchy import BlockType

        result = format_results(raw)
        assert all(b.block_type == BlockType.UNKNOWN for b in result.blocks)

    def test_to_dict(self, raw):
        from docstruct.utils.formatter import format_results

        d = format_results(raw, process_time_ms=12.5).to_dict()
        assert d["process_time_ms"] == 12.5
        assert d["pages"][0]["width"] == 800
        assert d["blocks"][0]["type"] == "unknown"
