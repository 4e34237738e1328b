"""
Markdown helpers for legal documents.

Generated documents use a small Markdown subset: ATX headings, emphasis,
lists, block quotes, horizontal rules, links and simple pipe tables. This
module recognizes those constructs line by line so the layout engine can
turn them into blocks.
"""

import logging
import re
from typing import List, Optional

from .models import ListItemData, ParsedHeading, TextSegment


logger = logging.getLogger(__name__)


HEADING_PATTERN = re.compile(r'^(#{1,6})\s+(.+)$')
HORIZONTAL_RULE_PATTERN = re.compile(r'^(-{3,}|_{3,}|\*{3,})$')

# Order matters: check longer delimiters first.
# Underscore forms need word boundaries so "By: ________" stays a signature line.
INLINE_PATTERN = re.compile(r'''
    (\*\*\*(.+?)\*\*\*)                                 |  # Bold+Italic ***text***
    ((?<!\w)___([^_\s](?:[^_]*?[^_\s])?)___(?!\w))      |  # Bold+Italic ___text___
    (\*\*(.+?)\*\*)                                     |  # Bold **text**
    ((?<!\w)__([^_\s](?:[^_]*?[^_\s])?)__(?!\w))        |  # Bold __text__
    (\*([^*\s](?:[^*]*?[^*\s])?)\*)                     |  # Italic *text*
    ((?<!\w)_([^_\s](?:[^_]*?[^_\s])?)_(?!\w))             # Italic _text_
''', re.VERBOSE)

UNORDERED_LIST_PATTERN = re.compile(r'^(\s*)([-*+])\s+(.+)$')
ORDERED_LIST_PATTERN = re.compile(r'^(\s*)(\d+)\.\s+(.+)$')
BLOCKQUOTE_PATTERN = re.compile(r'^>\s*(.*)$')
LINK_PATTERN = re.compile(r'\[([^\]]+)\]\([^)]+\)')
TABLE_ROW_PATTERN = re.compile(r'^\s*\|?(.+\|.+)\|?\s*$')
TABLE_SEPARATOR_PATTERN = re.compile(r'^\s*\|?[\s:-]+\|[\s|:-]+\|?\s*$')

HEADING_FONT_SIZES = {1: 16, 2: 14, 3: 12}


class MarkdownParser:
    """
    Line-level Markdown recognizer.

    Usage:
        parser = MarkdownParser()
        heading = parser.parse_heading("## Definitions")
        segments = parser.parse_inline_formatting("The **Licensee** shall")
    """

    # ==================== Headings ====================

    def is_markdown_heading(self, line: str) -> bool:
        return bool(HEADING_PATTERN.match(line.strip()))

    def parse_heading(self, line: str) -> Optional[ParsedHeading]:
        """Parse '# Title' into a ParsedHeading, or None if the line is not a heading."""
        match = HEADING_PATTERN.match(line.strip())
        if not match:
            return None

        level = len(match.group(1))
        text = match.group(2).strip()
        logger.debug(f"Parsed heading level {level}: {text}")

        return ParsedHeading(level=level, text=text, original_line=line)

    def strip_heading_syntax(self, line: str) -> str:
        heading = self.parse_heading(line)
        return heading.text if heading else line

    @staticmethod
    def get_heading_font_size(level: int) -> float:
        """16pt for H1, 14pt for H2, 12pt for everything else."""
        return HEADING_FONT_SIZES.get(level, 12)

    @staticmethod
    def is_heading_bold(level: int) -> bool:
        return level <= 3

    # ==================== Rules ====================

    def is_horizontal_rule(self, line: str) -> bool:
        return bool(HORIZONTAL_RULE_PATTERN.match(line.strip()))

    # ==================== Inline ====================

    def parse_inline_formatting(self, text: str) -> List[TextSegment]:
        """
        Parse inline emphasis into segments.
        Returns list of TextSegments with bold/italic flags.
        """
        if not text:
            return [TextSegment(text='')]

        segments = []
        last_end = 0

        for match in INLINE_PATTERN.finditer(text):
            # Add plain text before match
            if match.start() > last_end:
                segments.append(TextSegment(text=text[last_end:match.start()]))

            # Determine which group matched
            if match.group(1):  # Bold+Italic ***
                segments.append(TextSegment(text=match.group(2), bold=True, italic=True))
            elif match.group(3):  # Bold+Italic ___
                segments.append(TextSegment(text=match.group(4), bold=True, italic=True))
            elif match.group(5):  # Bold **
                segments.append(TextSegment(text=match.group(6), bold=True))
            elif match.group(7):  # Bold __
                segments.append(TextSegment(text=match.group(8), bold=True))
            elif match.group(9):  # Italic *
                segments.append(TextSegment(text=match.group(10), italic=True))
            elif match.group(11):  # Italic _
                segments.append(TextSegment(text=match.group(12), italic=True))

            last_end = match.end()

        # Add remaining plain text
        if last_end < len(text):
            segments.append(TextSegment(text=text[last_end:]))

        return segments

    def strip_inline_formatting(self, text: str) -> str:
        return ''.join(s.text for s in self.parse_inline_formatting(text))

    def has_inline_formatting(self, text: str) -> bool:
        return any(s.bold or s.italic for s in self.parse_inline_formatting(text))

    def extract_link_text(self, text: str) -> str:
        """Replace [text](url) with text."""
        return LINK_PATTERN.sub(r'\1', text)

    # ==================== Lists & Quotes ====================

    def parse_list_item(self, line: str) -> Optional[ListItemData]:
        """Parse '- item' or '1. item'. Two spaces of indent per nesting level."""
        match = UNORDERED_LIST_PATTERN.match(line)
        if match:
            indent, marker, text = match.groups()
            return ListItemData(type='unordered', level=len(indent) // 2, marker=marker, text=text.strip())

        match = ORDERED_LIST_PATTERN.match(line)
        if match:
            indent, number, text = match.groups()
            return ListItemData(type='ordered', level=len(indent) // 2, marker=f"{number}.", text=text.strip())

        return None

    def is_list_item(self, line: str) -> bool:
        return self.parse_list_item(line) is not None

    def is_blockquote(self, line: str) -> bool:
        return bool(BLOCKQUOTE_PATTERN.match(line))

    def parse_blockquote(self, line: str) -> Optional[str]:
        match = BLOCKQUOTE_PATTERN.match(line)
        return match.group(1) if match else None

    # ==================== Tables ====================

    def is_table_separator(self, line: str) -> bool:
        return bool(TABLE_SEPARATOR_PATTERN.match(line))

    def is_table_row(self, line: str) -> bool:
        return bool(TABLE_ROW_PATTERN.match(line)) and not self.is_table_separator(line)

    def parse_table_row(self, line: str) -> List[str]:
        """Split a pipe table row into trimmed cells."""
        cleaned = line.strip()
        if cleaned.startswith('|'):
            cleaned = cleaned[1:]
        if cleaned.endswith('|'):
            cleaned = cleaned[:-1]
        return [cell.strip() for cell in cleaned.split('|')]

    @staticmethod
    def format_table_row_as_text(cells: List[str]) -> str:
        """
        Render table cells as aligned plain text.
        Two-column rows get a left and a right column; wider rows are spaced evenly.
        """
        if not cells:
            return ''

        if len(cells) == 2:
            return f"{cells[0].ljust(20)}  {cells[1].rjust(20)}"

        return '    '.join(cells)

    # ==================== Whole Lines ====================

    def strip_all_markdown_syntax(self, text: str) -> str:
        """Remove every supported Markdown construct, keeping the visible text."""
        if self.is_horizontal_rule(text):
            return ''

        result = self.strip_inline_formatting(text)
        result = self.extract_link_text(result)
        result = self.strip_heading_syntax(result)

        list_item = self.parse_list_item(result)
        if list_item:
            result = list_item.text

        quote = self.parse_blockquote(result)
        if quote is not None:
            result = quote

        return result
