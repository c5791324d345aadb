"""
Document structure extraction from recognized text.

Provides:
- Title detection
- "Label: value" metadata fields
- Table of contents parsing with nesting levels
- Nested section tree, guided by the table of contents when present and by
  heading patterns otherwise
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple

from .hierarchy import BoundingBox

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"
FALLBACK_SECTION_TITLE = "Document"
MAX_TITLE_LENGTH = 100


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class TableOfContentsEntry:
    """One line of a table of contents."""
    title: str
    level: int
    page_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "level": self.level, "page_number": self.page_number}


@dataclass
class DocumentSection:
    """A titled section with its text and nested subsections."""
    title: str
    level: int
    content: str = ""
    bounding_box: Optional[BoundingBox] = None
    subsections: List['DocumentSection'] = field(default_factory=list)

    def walk(self):
        """Yield this section and every descendant, depth first."""
        yield self
        for sub in self.subsections:
            yield from sub.walk()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "level": self.level,
            "content": self.content,
            "bounding_box": self.bounding_box.to_dict() if self.bounding_box else None,
            "subsections": [s.to_dict() for s in self.subsections]
        }


@dataclass
class StructuredDocument:
    """Outline of a logical document built from one or more pages of text."""
    title: Optional[str] = None
    sections: List[DocumentSection] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    table_of_contents: Optional[List[TableOfContentsEntry]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "metadata": self.metadata,
            "table_of_contents": (
                [e.to_dict() for e in self.table_of_contents]
                if self.table_of_contents is not None else None
            ),
            "sections": [s.to_dict() for s in self.sections]
        }


# ============================================================================
# Patterns
# ============================================================================

TITLE_MARKER_PATTERNS = [
    re.compile(r'TITLE:\s*([^\n]+)', re.IGNORECASE),
    re.compile(r'SUBJECT:\s*([^\n]+)', re.IGNORECASE),
    re.compile(r'DOCUMENT NAME:\s*([^\n]+)', re.IGNORECASE),
]
# Short first paragraph followed by a blank line
TITLE_PARAGRAPH_PATTERN = re.compile(r'\A\s*([^\n]{5,100})\n[ \t]*\n')

METADATA_PATTERNS = [
    ("author", re.compile(r'\b(?:Author|By|Prepared by|Created by):\s*([^\n]+)', re.IGNORECASE)),
    ("date", re.compile(r'\b(?:Date|Created|Generated|Published):\s*([^\n]+)', re.IGNORECASE)),
    ("version", re.compile(r'\b(?:Version|Revision|Release):\s*([^\n]+)', re.IGNORECASE)),
    ("organization", re.compile(
        r'\b(?:Organization|Company|Institution|Agency):\s*([^\n]+)', re.IGNORECASE)),
    ("classification", re.compile(
        r'\b(?:Classification|Security Level|Confidentiality):\s*([^\n]+)', re.IGNORECASE)),
]

TOC_HEADING_PATTERN = re.compile(
    r'^[ \t]*(?:table of contents|contents|index|toc)[ \t]*:?[ \t]*$',
    re.IGNORECASE | re.MULTILINE
)
TOC_END_PATTERN = re.compile(r'\n[ \t]*\n')
TOC_ENTRY_PATTERN = re.compile(
    r'^(?:(?:chapter|section)\s+)?'
    r'(\d+(?:\.\d+)*)?\.?\s*'           # numbering
    r'(?:[-:]\s*)?'
    r'([^.\d\s][^\n]*?)'                # title
    r'(?:\s*(?:\.{2,}|\s{2,}|\s)\s*(\d+))?'  # leaders and page number
    r'\s*$',
    re.IGNORECASE
)

CHAPTER_HEADING = re.compile(
    r'^(?:chapter|section)\s+(\d+(?:\.\d+)*)\.?(?:\s*[-:.]?\s+(.+))?$', re.IGNORECASE
)
NUMBERED_HEADING = re.compile(r'^(\d+(?:\.\d+)*)\.?\s+([A-Za-z].*)$')
CAPS_HEADING = re.compile(r'^[A-Z][A-Z \t]{2,}$')
UNDERLINE = re.compile(r'^[=-]{3,}$')

# Where a section body found through the table of contents ends
NEXT_HEADING_PATTERNS = [
    re.compile(r'\n(?:Chapter|Section)\s+\d+', re.IGNORECASE),
    re.compile(r'\n\d+\.\d+\s+[A-Z]'),
    re.compile(r'\n[A-Z][A-Z \t]{2,}\n'),
    re.compile(r'\n[^\n]{5,100}\n[=-]{3,}'),
]


# ============================================================================
# Document Structure Extractor
# ============================================================================

class DocumentStructureExtractor:
    """
    Recovers title, metadata, table of contents and sections from plain text.

    The four extractions are independent; each may find nothing without
    affecting the others.
    """

    def __init__(self, page_separator: str = PAGE_SEPARATOR):
        self.page_separator = page_separator

    def extract(self, texts: List[str]) -> StructuredDocument:
        """Build a StructuredDocument from page texts in reading order."""
        text = self.page_separator.join(texts)

        toc, toc_end = self._find_table_of_contents(text)
        document = StructuredDocument(
            title=extract_title(text),
            metadata=extract_metadata(text),
            table_of_contents=toc or None
        )

        if toc:
            document.sections = sections_from_toc(text[toc_end:], toc)
        else:
            document.sections = sections_from_headings(text)

        logger.info(
            f"Extracted structure: title={document.title!r}, "
            f"{len(document.metadata)} metadata field(s), "
            f"{len(toc)} TOC entries, {len(document.sections)} top-level section(s)"
        )
        return document

    @staticmethod
    def _find_table_of_contents(text: str) -> Tuple[List[TableOfContentsEntry], int]:
        match = TOC_HEADING_PATTERN.search(text)
        if not match:
            return [], 0

        start = match.end()
        # Skip blank lines between the heading and the first entry
        while start < len(text) and text[start] in "\r\n":
            start += 1
        end_match = TOC_END_PATTERN.search(text, start)
        end = end_match.start() if end_match else len(text)

        return parse_toc_entries(text[start:end]), end


# ============================================================================
# Title and Metadata
# ============================================================================

def extract_title(text: str) -> Optional[str]:
    """
    Find the document title.

    Tries, in order: an upper-case first line, an explicit TITLE/SUBJECT/
    DOCUMENT NAME marker, then a short first paragraph.
    """
    first_line = next((l.strip() for l in text.split('\n') if l.strip()), "")
    if (first_line and len(first_line) < MAX_TITLE_LENGTH and
            first_line == first_line.upper() and
            any(c.isalpha() for c in first_line)):
        return first_line

    for pattern in TITLE_MARKER_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()

    match = TITLE_PARAGRAPH_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    return None


def extract_metadata(text: str) -> Dict[str, str]:
    """First "Label: value" match per metadata key."""
    metadata = {}
    for key, pattern in METADATA_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            metadata[key] = match.group(1).strip()
    return metadata


# ============================================================================
# Table of Contents
# ============================================================================

def parse_toc_line(line: str) -> Optional[TableOfContentsEntry]:
    """
    Parse one table of contents line.

    The level is the number of numbering segments ("1.2.3" is level 3); without
    numbering it is one level per two spaces of indentation, at least 1.
    """
    stripped = line.strip()
    if not stripped:
        return None

    match = TOC_ENTRY_PATTERN.match(stripped)
    if not match:
        return None

    numbering, title, page = match.groups()
    title = title.strip()
    if not title:
        return None

    if numbering:
        level = len(numbering.split('.'))
    else:
        leading = len(line) - len(line.lstrip(' '))
        level = max(1, math.ceil(leading / 2))

    return TableOfContentsEntry(
        title=title,
        level=level,
        page_number=int(page) if page else None
    )


def parse_toc_entries(toc_text: str) -> List[TableOfContentsEntry]:
    entries = []
    for line in toc_text.split('\n'):
        entry = parse_toc_line(line.rstrip('\r'))
        if entry is not None:
            entries.append(entry)
    return entries


# ============================================================================
# Sections
# ============================================================================

def _title_pattern(title: str) -> 're.Pattern':
    # The body heading may repeat the numbering the TOC line carried
    return re.compile(
        r'(?:^|\n)[ \t]*'
        r'(?:(?:chapter|section)\s+\d+(?:\.\d+)*\.?[ \t]*[-:.]?[ \t]*|\d+(?:\.\d+)*\.?[ \t]+)?'
        + re.escape(title) + r'[ \t]*(?=\n|$)',
        re.IGNORECASE
    )


def sections_from_toc(body: str, toc: List[TableOfContentsEntry]) -> List[DocumentSection]:
    """
    Build the section tree from table of contents entries.

    Children of an entry are the entries that follow it until the next entry at
    the same or a shallower level. Content is the body text after the entry's
    heading up to the next heading-like line or the next entry's heading.
    """
    positions: List[Optional[Tuple[int, int]]] = []
    search_from = 0
    for entry in toc:
        match = _title_pattern(entry.title).search(body, search_from)
        if match:
            positions.append((match.start(), match.end()))
            search_from = match.end()
        else:
            positions.append(None)

    def content_for(index: int) -> str:
        span = positions[index]
        if span is None:
            return ""
        start = span[1]
        end = len(body)
        for pattern in NEXT_HEADING_PATTERNS:
            found = pattern.search(body, start)
            if found and found.start() < end:
                end = found.start()
        for later in positions[index + 1:]:
            if later is not None:
                end = min(end, later[0])
                break
        return body[start:end].strip()

    def build(start: int, end: int) -> List[DocumentSection]:
        sections = []
        i = start
        while i < end:
            entry = toc[i]
            j = i + 1
            while j < end and toc[j].level > entry.level:
                j += 1
            sections.append(DocumentSection(
                title=entry.title,
                level=entry.level,
                content=content_for(i),
                subsections=build(i + 1, j)
            ))
            i = j
        return sections

    return build(0, len(toc))


def _match_heading(lines: List[str], i: int) -> Optional[Tuple[str, int, bool]]:
    """Return (title, level, consumes_next_line) when lines[i] is a heading."""
    line = lines[i].strip()

    match = CHAPTER_HEADING.match(line)
    if match:
        numbering, title = match.groups()
        return (title.strip() if title else line), len(numbering.split('.')), False

    match = NUMBERED_HEADING.match(line)
    if match:
        return match.group(2).strip(), len(match.group(1).split('.')), False

    if i + 1 < len(lines) and 5 <= len(line) <= MAX_TITLE_LENGTH:
        underline = lines[i + 1].strip()
        if UNDERLINE.match(underline):
            return line, (1 if underline[0] == '=' else 2), True

    if CAPS_HEADING.match(line):
        return line.strip(), 1, False

    return None


def sections_from_headings(text: str) -> List[DocumentSection]:
    """
    Build the section tree by scanning for heading lines.

    Open sections are kept on a stack; a heading closes every open section at
    its level or deeper and becomes a child of the section left on top. Text
    before the first heading becomes a leading "Document" section; with no
    headings at all the whole text is one "Document" section.
    """
    lines = text.split('\n')
    roots: List[DocumentSection] = []
    stack: List[DocumentSection] = []
    preamble: List[str] = []
    content: List[str] = []

    def close_current():
        if stack:
            stack[-1].content = "\n".join(content).strip()
        content.clear()

    i = 0
    while i < len(lines):
        heading = _match_heading(lines, i)
        if heading is None:
            (content if stack else preamble).append(lines[i].strip())
            i += 1
            continue

        title, level, consumes_next = heading
        close_current()

        section = DocumentSection(title=title, level=level)
        while stack and stack[-1].level >= level:
            stack.pop()
        if stack:
            stack[-1].subsections.append(section)
        else:
            roots.append(section)
        stack.append(section)

        i += 2 if consumes_next else 1

    close_current()

    leading = "\n".join(preamble).strip()
    if leading:
        roots.insert(0, DocumentSection(title=FALLBACK_SECTION_TITLE, level=1, content=leading))

    return roots
