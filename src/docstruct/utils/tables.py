"""
Table detection and extraction for recognized text blocks.

Provides:
- Column-alignment heuristic for table detection
- Row/cell grid extraction from a table block
- Multiple output formats (Markdown, HTML, CSV, JSON)
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from .hierarchy import BoundingBox, TextBlock, TextLine

logger = logging.getLogger(__name__)

DEFAULT_ALIGNMENT_TOLERANCE = 10
DEFAULT_ALIGNMENT_RATIO = 0.5
DEFAULT_ROW_GAP = 10


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ExtractedTable:
    """Row/column grid of cell strings recovered from a table block."""
    rows: List[List[str]]
    bounding_box: Optional[BoundingBox] = None
    table_markdown: str = ""
    table_html: str = ""
    table_csv: str = ""

    def __post_init__(self):
        if not self.table_markdown:
            self.table_markdown = self._build_markdown()
        if not self.table_html:
            self.table_html = self._build_html()
        if not self.table_csv:
            self.table_csv = self._build_csv()

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    @property
    def num_cols(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def _grid(self) -> List[List[str]]:
        # Ragged rows are padded so every output format is rectangular
        return [row + [""] * (self.num_cols - len(row)) for row in self.rows]

    def _build_markdown(self) -> str:
        """Build Markdown table representation."""
        grid = self._grid()
        if not grid or self.num_cols == 0:
            return ""

        lines = ["| " + " | ".join(grid[0]) + " |"]
        lines.append("| " + " | ".join("---" for _ in range(self.num_cols)) + " |")
        for row in grid[1:]:
            lines.append("| " + " | ".join(row) + " |")

        return "\n".join(lines)

    def _build_html(self) -> str:
        """Build HTML table representation."""
        grid = self._grid()
        if not grid or self.num_cols == 0:
            return ""

        lines = ['<table>', '  <thead>', '    <tr>']
        for cell in grid[0]:
            lines.append(f'      <th>{_escape_html(cell)}</th>')
        lines.extend(['    </tr>', '  </thead>', '  <tbody>'])
        for row in grid[1:]:
            lines.append('    <tr>')
            for cell in row:
                lines.append(f'      <td>{_escape_html(cell)}</td>')
            lines.append('    </tr>')
        lines.extend(['  </tbody>', '</table>'])

        return "\n".join(lines)

    def _build_csv(self) -> str:
        grid = self._grid()
        if not grid:
            return ""

        output = io.StringIO()
        writer = csv.writer(output)
        for row in grid:
            writer.writerow(row)

        return output.getvalue()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "num_rows": self.num_rows,
            "num_cols": self.num_cols,
            "bounding_box": self.bounding_box.to_dict() if self.bounding_box else None,
            "markdown": self.table_markdown,
            "html": self.table_html,
            "csv": self.table_csv
        }


def _escape_html(text: str) -> str:
    return (text
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
    )


# ============================================================================
# Detection
# ============================================================================

def _lines_aligned(line_a: TextLine, line_b: TextLine, tolerance: int) -> bool:
    """At least two words of line_a start within tolerance of a word in line_b."""
    starts_b = [w.bounding_box.x for w in line_b.words]
    matches = 0
    for word in line_a.words:
        if any(abs(word.bounding_box.x - x) <= tolerance for x in starts_b):
            matches += 1
            if matches >= 2:
                return True
    return False


def is_likely_table(
    block: TextBlock,
    tolerance: int = DEFAULT_ALIGNMENT_TOLERANCE,
    ratio: float = DEFAULT_ALIGNMENT_RATIO
) -> bool:
    """
    Decide whether a block looks like a table from column alignment.

    A block needs more than one paragraph and at least three lines. Every pair
    of lines votes "aligned" when two or more word starts line up; the block is
    a table when the aligned pairs reach ``ratio`` times the line count.
    """
    if len(block.paragraphs) <= 1:
        return False

    lines = block.lines
    if len(lines) < 3:
        return False

    aligned_pairs = 0
    for i in range(len(lines)):
        for j in range(i + 1, len(lines)):
            if _lines_aligned(lines[i], lines[j], tolerance):
                aligned_pairs += 1

    return aligned_pairs >= ratio * len(lines)


# ============================================================================
# Extraction
# ============================================================================

def extract_table(block: TextBlock, row_gap: int = DEFAULT_ROW_GAP) -> ExtractedTable:
    """
    Group a table block's lines into rows and cells.

    Lines are sorted top to bottom; a line starts a new row when its vertical
    distance to the previous line is at least ``row_gap``. Cells within a row
    are ordered left to right.
    """
    lines = sorted(block.lines, key=lambda l: l.bounding_box.y)

    grouped: List[List[TextLine]] = []
    last_y = None
    for line in lines:
        if last_y is None or abs(line.bounding_box.y - last_y) >= row_gap:
            grouped.append([])
        grouped[-1].append(line)
        last_y = line.bounding_box.y

    rows = [
        [l.text.strip() for l in sorted(row, key=lambda l: l.bounding_box.x)]
        for row in grouped
    ]

    logger.debug(f"Extracted table with {len(rows)} row(s)")
    return ExtractedTable(rows=rows, bounding_box=block.bounding_box)
