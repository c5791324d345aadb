"""
Export module for OCR results.

Provides:
- Markdown export of a structured document (title, metadata, contents, sections)
- Markdown rendering of per-page block results with tables
"""

import logging
from pathlib import Path
from typing import List, Optional, Union, Sequence

from .hierarchy import BlockType, OCRResult, TextBlock
from .structure import DocumentSection, StructuredDocument
from .tables import extract_table

logger = logging.getLogger(__name__)


# ============================================================================
# Markdown Exporter
# ============================================================================

class MarkdownExporter:
    """Export recognized documents to Markdown."""

    def __init__(self, include_page_breaks: bool = True, table_row_gap: int = 10):
        self.include_page_breaks = include_page_breaks
        self.table_row_gap = table_row_gap

    def export(
        self,
        document: StructuredDocument,
        output_path: Union[str, Path],
        pages: Optional[Sequence[OCRResult]] = None
    ) -> Path:
        """
        Write a Markdown file.

        Args:
            document: Structured outline
            output_path: Output file path
            pages: Optional per-page results appended as a "Pages" appendix

        Returns:
            Path to the generated Markdown file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        markdown = self.generate(document, pages)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(markdown)

        logger.info(f"Exported Markdown to: {output_path}")
        return output_path

    def generate(
        self,
        document: StructuredDocument,
        pages: Optional[Sequence[OCRResult]] = None
    ) -> str:
        lines: List[str] = []

        if document.title:
            lines.extend([f"# {document.title}", ""])

        for key, value in document.metadata.items():
            lines.append(f"**{key.capitalize()}:** {value}  ")
        if document.metadata:
            lines.append("")

        if document.table_of_contents:
            lines.extend(["## Contents", ""])
            for entry in document.table_of_contents:
                indent = "  " * (entry.level - 1)
                page = f" (p. {entry.page_number})" if entry.page_number is not None else ""
                lines.append(f"{indent}- {entry.title}{page}")
            lines.append("")

        for section in document.sections:
            self._section_to_markdown(section, lines)

        if pages:
            for page_index, result in enumerate(pages, start=1):
                if self.include_page_breaks:
                    lines.extend(["---", f"*Page {page_index}*", ""])
                for block in result.blocks:
                    md = self.block_to_markdown(block)
                    if md:
                        lines.extend([md, ""])

        return "\n".join(lines).rstrip() + "\n"

    def _section_to_markdown(self, section: DocumentSection, lines: List[str]):
        # Markdown heading depth tops out at 6; level 1 sits under the title
        depth = min(6, section.level + 1)
        lines.extend([f"{'#' * depth} {section.title}", ""])
        if section.content:
            lines.extend([section.content, ""])
        for sub in section.subsections:
            self._section_to_markdown(sub, lines)

    def block_to_markdown(self, block: TextBlock) -> str:
        """Convert a classified block to Markdown."""
        if not block.text:
            return ""

        if block.block_type == BlockType.HEADING:
            return f"### {block.text}"

        if block.block_type == BlockType.LIST:
            return "\n".join(f"- {line.text}" for line in block.lines)

        if block.block_type == BlockType.TABLE:
            table = extract_table(block, row_gap=self.table_row_gap)
            return table.table_markdown or block.text

        return block.text
