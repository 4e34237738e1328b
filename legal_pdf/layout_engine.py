"""
Layout Engine - block building, measurement, pagination and rendering

Pipeline:
1. build_blocks: clean content lines + signature blocks -> LayoutBlocks
2. measure_blocks: every block measured with the writer's own metrics
3. paginate: predicted pages with a conservative usable height
4. render: blocks drawn through the page writer; signature blocks are
   never split across a page boundary
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from config.settings import settings

from .engine import TextMetrics, resolve_font
from .formatter import DocumentFormatter, ELEMENT_SPACING
from .markdown import MarkdownParser
from .models import (
    BlockType, DocumentFormattingRules, LayoutBlock, LayoutPage, LayoutResult,
    ParseResult, SignatureBlock, TextOptions,
)
from .page_writer import RULE_SPACING, PageWriter
from .signature_renderer import SignatureRenderer


logger = logging.getLogger(__name__)


HORIZONTAL_RULE_HEIGHT = 2 * RULE_SPACING
LIST_INDENT = 36  # Per nesting level
LIST_MARKER_WIDTH = 20
BULLET = "•"
MAX_HEADING_LENGTH = 100
HEADER_FONT_SIZE = 10

PageCallback = Callable[[int], None]


class LayoutEngine:
    """
    Places legal document content on pages.

    Usage:
        engine = LayoutEngine()
        blocks = engine.build_blocks(parse_result, rules)
        engine.measure_blocks(blocks, writer, rules)
        layout = engine.paginate(blocks, "patent-license-agreement", rules)
        warnings = engine.render(blocks, writer, rules)
    """

    def __init__(
        self,
        formatter: Optional[DocumentFormatter] = None,
        markdown: Optional[MarkdownParser] = None,
        safety_ratio: Optional[float] = None,
        signature_pad: Optional[float] = None,
        pagination_slack: Optional[float] = None,
    ):
        self.formatter = formatter or DocumentFormatter()
        self.markdown = markdown or MarkdownParser()
        self.safety_ratio = settings.layout_safety_ratio if safety_ratio is None else safety_ratio
        self.signature_pad = settings.signature_safety_pad if signature_pad is None else signature_pad
        self.pagination_slack = (
            settings.pagination_slack if pagination_slack is None else pagination_slack
        )

    # ==================== Block Building ====================

    def is_heading(self, line: str, parse_markdown: bool = True) -> bool:
        """Markdown headings, or short all-caps lines such as 'ARTICLE I. DEFINITIONS'."""
        stripped = line.strip()
        if not stripped:
            return False

        if parse_markdown and self.markdown.is_markdown_heading(stripped):
            return True

        return (
            len(stripped) < MAX_HEADING_LENGTH
            and stripped == stripped.upper()
            and any(c.isalpha() for c in stripped)
        )

    def _is_special(self, line: str, parse_markdown: bool) -> bool:
        """Lines that never join a paragraph."""
        if parse_markdown and (
            self.markdown.is_horizontal_rule(line)
            or self.markdown.is_list_item(line)
            or self.markdown.is_blockquote(line.strip())
            or self.markdown.is_table_separator(line)
            or self.markdown.is_table_row(line)
        ):
            return True
        return self.is_heading(line, parse_markdown)

    def build_blocks(self, parse_result: ParseResult,
                     rules: Optional[DocumentFormattingRules] = None,
                     parse_markdown: bool = True) -> List[LayoutBlock]:
        """
        Turn parsed content into layout blocks in document order.
        Signature blocks are placed at their content index.
        """
        content = parse_result.content
        anchors: Dict[int, List[SignatureBlock]] = {}
        for signature in parse_result.signature_blocks:
            anchors.setdefault(min(signature.content_index, len(content)), []).append(signature)

        blocks: List[LayoutBlock] = []
        index = 0

        while index <= len(content):
            for signature in anchors.pop(index, []):
                blocks.append(LayoutBlock(type=BlockType.SIGNATURE, content=signature, breakable=False))

            if index == len(content):
                break

            line = content[index]
            if not line.strip():
                index += 1
                continue

            block = self._line_block(line, parse_markdown)
            if block is not None:
                if block.type is not None:
                    blocks.append(block)
                index += 1
                continue

            # Paragraph: consecutive lines up to a blank, special or anchored line
            lines = [line.strip()]
            index += 1
            while index < len(content) and content[index].strip() \
                    and index not in anchors \
                    and not self._is_special(content[index], parse_markdown):
                lines.append(content[index].strip())
                index += 1

            blocks.append(self._text_block('\n'.join(lines), parse_markdown))

        logger.debug(
            f"Built {len(blocks)} layout blocks "
            f"({sum(1 for b in blocks if b.is_atomic)} signature blocks)"
        )
        return blocks

    def _line_block(self, line: str, parse_markdown: bool) -> Optional[LayoutBlock]:
        """
        Block for a single special line. Returns None for paragraph text and a
        block with type None for lines that produce nothing (table separators).
        """
        stripped = line.strip()

        if parse_markdown:
            if self.markdown.is_horizontal_rule(stripped):
                return LayoutBlock(type=BlockType.HORIZONTAL_RULE, height=HORIZONTAL_RULE_HEIGHT)

            heading = self.markdown.parse_heading(stripped)
            if heading is not None:
                return LayoutBlock(
                    type=BlockType.HEADING,
                    content=self.markdown.strip_inline_formatting(
                        self.markdown.extract_link_text(heading.text)),
                    heading_level=heading.level,
                    keep_with_next=True,
                )

            item = self.markdown.parse_list_item(line)
            if item is not None:
                item.text = self.markdown.extract_link_text(item.text)
                return LayoutBlock(
                    type=BlockType.LIST_ITEM,
                    content=item,
                    segments=self._segments(item.text),
                )

            quote = self.markdown.parse_blockquote(stripped)
            if quote is not None:
                quote = self.markdown.extract_link_text(quote)
                return LayoutBlock(
                    type=BlockType.BLOCKQUOTE,
                    content=quote,
                    segments=[replace(s, italic=True)
                              for s in self.markdown.parse_inline_formatting(quote)],
                )

            if self.markdown.is_table_separator(line):
                return LayoutBlock(type=None)

            if self.markdown.is_table_row(line):
                cells = [self.markdown.strip_inline_formatting(c)
                         for c in self.markdown.parse_table_row(line)]
                return LayoutBlock(
                    type=BlockType.TABLE_ROW,
                    content=self.markdown.format_table_row_as_text(cells),
                )

        if self.is_heading(stripped, parse_markdown):
            return LayoutBlock(type=BlockType.HEADING, content=stripped, heading_level=1,
                               keep_with_next=True)

        return None

    def header_block(self, lines: List[str]) -> LayoutBlock:
        """First-page header (e.g. application number on an office action response)."""
        return LayoutBlock(type=BlockType.HEADER, content='\n'.join(lines))

    def _text_block(self, text: str, parse_markdown: bool) -> LayoutBlock:
        if parse_markdown:
            text = self.markdown.extract_link_text(text)
            return LayoutBlock(type=BlockType.TEXT, content=text, segments=self._segments(text))
        return LayoutBlock(type=BlockType.TEXT, content=text)

    def _segments(self, text: str):
        """Inline runs when the text has bold/italic, otherwise None."""
        segments = self.markdown.parse_inline_formatting(text)
        if any(s.bold or s.italic for s in segments):
            return segments
        return None

    # ==================== Measurement ====================

    def _text_options(self, block: LayoutBlock, writer: PageWriter,
                      rules: DocumentFormattingRules) -> TextOptions:
        """Options a block is drawn with; measurement uses the same ones."""
        margins = writer.page_config.margins
        content_width = writer.page_config.content_width
        right = margins.left + content_width

        base = TextOptions(
            font=rules.font,
            font_size=rules.font_size,
            line_gap=self.formatter.get_line_spacing(rules.line_spacing),
            x=margins.left,
            width=content_width,
        )

        if block.type == BlockType.HEADING:
            return replace(base, font_size=self.markdown.get_heading_font_size(block.heading_level or 1),
                           line_gap=0)
        if block.type == BlockType.TEXT:
            return replace(base, indent=rules.paragraph_indent)
        if block.type == BlockType.LIST_ITEM:
            left = margins.left + block.content.level * LIST_INDENT + LIST_MARKER_WIDTH
            return replace(base, x=left, width=right - left)
        if block.type == BlockType.BLOCKQUOTE:
            left = margins.left + rules.block_quote_indent
            return replace(base, x=left, width=right - left)
        if block.type == BlockType.HEADER:
            return replace(base, font_size=HEADER_FONT_SIZE, line_gap=0)
        return base

    def _visible_text(self, block: LayoutBlock) -> str:
        if block.segments is not None:
            return ''.join(s.text for s in block.segments)
        if block.type == BlockType.LIST_ITEM:
            return block.content.text
        return block.content or ''

    def _spacing_after(self, block: LayoutBlock, options: TextOptions,
                       rules: DocumentFormattingRules) -> float:
        if block.type == BlockType.HEADING:
            return 0.5 * TextMetrics.line_height(options.font_size)
        if block.type in (BlockType.TEXT, BlockType.BLOCKQUOTE):
            return rules.paragraph_spacing
        if block.type == BlockType.LIST_ITEM:
            return ELEMENT_SPACING['list']
        if block.type == BlockType.HEADER:
            return ELEMENT_SPACING['title']
        return 0.0

    def signature_block_height(self, signature: SignatureBlock, content_width: float,
                               rules: Optional[DocumentFormattingRules] = None) -> float:
        """Height of a signature block as it will be drawn, notary section included."""
        return self._signature_renderer(rules).measure(signature, content_width)

    def _signature_renderer(self, rules: Optional[DocumentFormattingRules]) -> SignatureRenderer:
        if rules is None:
            return SignatureRenderer(settings.default_font)
        return SignatureRenderer(rules.font, self.formatter.get_line_spacing(rules.signature_line_spacing))

    def measure_blocks(self, blocks: List[LayoutBlock], writer: PageWriter,
                       rules: DocumentFormattingRules) -> List[LayoutBlock]:
        """Set each block's height from the writer's metrics."""
        for block in blocks:
            if block.type == BlockType.SIGNATURE:
                block.height = self.signature_block_height(
                    block.content, writer.page_config.content_width, rules)
                continue

            if block.type == BlockType.HORIZONTAL_RULE:
                block.height = HORIZONTAL_RULE_HEIGHT
                continue

            options = self._text_options(block, writer, rules)
            font = options.font
            if block.type == BlockType.HEADING:
                font = resolve_font(font, bold=self.markdown.is_heading_bold(block.heading_level or 1))

            text_height = writer.measure_text_height(self._visible_text(block), replace(options, font=font))
            block.line_step = writer.line_height(options.font_size, options.line_gap)
            block.spacing_after = self._spacing_after(block, options, rules)
            block.height = text_height + block.spacing_after

        logger.debug(f"Measured {len(blocks)} blocks, total height {sum(b.height for b in blocks):.1f}")
        return blocks

    # ==================== Pagination ====================

    def _lead_height(self, block: LayoutBlock) -> float:
        """Part of a block that must share a page with a heading above it."""
        if block.is_atomic or not block.line_step:
            return block.height
        return block.line_step

    def _breaks_before(self, block: LayoutBlock, remaining: float, page_has_content: bool) -> bool:
        """Whether the writer starts a new page before a text block."""
        text_height = block.height - block.spacing_after
        if not page_has_content or text_height <= remaining:
            return False
        if block.segments is not None:
            return True
        return remaining > self.pagination_slack or remaining < block.line_step

    def paginate(self, blocks: List[LayoutBlock], document_type: str,
                 rules: Optional[DocumentFormattingRules] = None,
                 page_size: str = "LETTER") -> LayoutResult:
        """
        Predict page assignment for measured blocks.

        Uses usable height x safety ratio so the prediction errs toward more
        pages. Signature blocks are kept together and headings stay with the
        start of the next block.
        """
        rules = rules or self.formatter.get_formatting_rules(document_type)
        page_height = self.formatter.get_page_dimensions(page_size)[1]
        usable = page_height - rules.margins.top - rules.margins.bottom
        max_height = usable * self.safety_ratio

        result = LayoutResult()

        def start_page() -> LayoutPage:
            page = LayoutPage(page_number=len(result.pages) + 1, remaining_height=max_height)
            result.pages.append(page)
            return page

        page = start_page()

        for index, block in enumerate(blocks):
            if block.is_atomic:
                if block.height > max_height:
                    result.has_overflow = True
                    result.warnings.append(self._oversized_warning(block, usable))
                    if page.blocks:
                        page = start_page()
                elif block.height > page.remaining_height - self.signature_pad and page.blocks:
                    page = start_page()

                page.blocks.append(block)
                page.remaining_height -= block.height
                continue

            if block.keep_with_next and index + 1 < len(blocks) and page.blocks:
                needed = block.height + self._lead_height(blocks[index + 1])
                if needed > page.remaining_height:
                    page = start_page()

            if not block.line_step:
                # Rules and other fixed-height blocks
                if block.height > page.remaining_height and page.blocks:
                    page = start_page()
                page.blocks.append(block)
                page.remaining_height -= block.height
                continue

            if self._breaks_before(block, page.remaining_height, bool(page.blocks)):
                page = start_page()

            # Split across pages line by line, as the writer does
            height = block.height
            while height - block.spacing_after > page.remaining_height:
                lines = int(page.remaining_height // block.line_step)
                if lines <= 0 and not page.blocks:
                    lines = 1
                if lines > 0:
                    page.blocks.append(block)
                    height -= lines * block.line_step
                page = start_page()

            page.blocks.append(block)
            page.remaining_height -= height

        logger.info(
            f"Layout predicts {result.total_pages} pages for {len(blocks)} blocks "
            f"(max usable height {max_height:.1f})"
        )
        return result

    @staticmethod
    def _oversized_warning(block: LayoutBlock, usable: float) -> str:
        return (
            f"Signature block '{block.content.marker.id}' is taller than a page "
            f"({block.height:.0f}pt > {usable:.0f}pt) and cannot be kept together"
        )

    # ==================== Rendering ====================

    def render(self, blocks: List[LayoutBlock], writer: PageWriter,
               rules: DocumentFormattingRules,
               on_page: Optional[PageCallback] = None) -> List[str]:
        """
        Draw measured blocks through the writer.

        Args:
            blocks: Blocks from measure_blocks()
            writer: A started PageWriter
            rules: Formatting rules the blocks were measured with
            on_page: Called with the page number whenever rendering moves to a new page

        Returns:
            Layout warnings (e.g. oversized signature blocks)
        """
        warnings: List[str] = []
        signatures = self._signature_renderer(rules)
        margins = writer.page_config.margins
        usable = writer.page_config.dimensions[1] - margins.top - margins.bottom

        for index, block in enumerate(blocks):
            page_before = writer.current_page

            if block.keep_with_next and index + 1 < len(blocks) \
                    and writer.has_content_on_page(writer.current_page):
                needed = block.height + self._lead_height(blocks[index + 1])
                if needed > writer.remaining_space():
                    logger.debug(f"Keeping heading with next block: new page after {writer.current_page}")
                    writer.new_page()

            if block.type == BlockType.SIGNATURE:
                self._render_signature(block, writer, signatures, usable, warnings)
            elif block.type == BlockType.HEADING:
                writer.write_heading(block.content, block.heading_level or 1,
                                     self._text_options(block, writer, rules))
            elif block.type == BlockType.LIST_ITEM:
                self._render_list_item(block, writer, rules)
            elif block.type == BlockType.BLOCKQUOTE:
                writer.write_formatted_text(block.segments, self._text_options(block, writer, rules))
                writer.add_vertical_space(block.spacing_after)
            elif block.type == BlockType.HORIZONTAL_RULE:
                writer.draw_horizontal_line()
            elif block.type in (BlockType.TABLE_ROW, BlockType.HEADER):
                writer.write_text(block.content, self._text_options(block, writer, rules))
                if block.spacing_after:
                    writer.add_vertical_space(block.spacing_after)
            else:
                options = self._text_options(block, writer, rules)
                if block.segments is not None:
                    writer.write_formatted_text(block.segments, options)
                else:
                    writer.write_text(block.content, options)
                writer.add_vertical_space(block.spacing_after)

            if on_page is not None and writer.current_page != page_before:
                on_page(writer.current_page)

        logger.info(f"Rendered {len(blocks)} blocks onto {writer.current_page} pages")
        return warnings

    def _render_signature(self, block: LayoutBlock, writer: PageWriter,
                          signatures: SignatureRenderer, usable: float, warnings: List[str]):
        """Keep the whole block on one page: break first if it will not fit."""
        signature = block.content
        remaining = writer.remaining_space()
        page_has_content = writer.has_content_on_page(writer.current_page)

        if block.height > usable:
            warning = self._oversized_warning(block, usable)
            logger.warning(warning)
            warnings.append(warning)
            if page_has_content:
                writer.new_page()
        elif block.height > remaining - self.signature_pad and page_has_content:
            logger.info(
                f"Page break before signature block '{signature.marker.id}': "
                f"height={block.height:.1f}, remaining={remaining:.1f}, page={writer.current_page}"
            )
            writer.new_page()

        signatures.render(signature, writer)

    def _render_list_item(self, block: LayoutBlock, writer: PageWriter,
                          rules: DocumentFormattingRules):
        item = block.content
        options = self._text_options(block, writer, rules)
        marker = BULLET if item.type == 'unordered' else item.marker
        marker_x = options.x - LIST_MARKER_WIDTH

        # Marker and first line must land on the same page
        if self._breaks_before(block, writer.remaining_space(),
                               writer.has_content_on_page(writer.current_page)):
            writer.new_page()

        writer.draw_label(marker, marker_x, options)
        if block.segments is not None:
            writer.write_formatted_text(block.segments, options)
        else:
            writer.write_text(item.text, options)
        writer.add_vertical_space(ELEMENT_SPACING['list'])
