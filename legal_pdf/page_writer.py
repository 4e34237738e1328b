"""
Page Writer - stateful PDF writer with legal page numbering

Wraps the canvas engine with:
- content tracking per page and first-content page number stamping
- pre-emptive page breaks so the engine does not paginate on its own
- detection of the engine paginating anyway (auto-pagination events)

Usage:
    writer = PageWriter(FileOutput("agreement.pdf"), PageConfig())
    writer.start()
    writer.write_title("Patent License Agreement")
    writer.write_paragraph("This Agreement is made ...")
    writer.finalize()
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set

from config.settings import settings

from .engine import CanvasEngine, TextMetrics, resolve_font
from .exceptions import WriterStateError
from .models import (
    AutoPaginationEvent, GeneratorSession, NumberFormat, PageConfig,
    PageNumberFormat, PageNumberPosition, TextOptions, TextSegment,
)
from .outputs import PdfOutput


logger = logging.getLogger(__name__)


PAGE_NUMBER_OFFSET = 36  # 0.5" above the bottom edge
HEADING_SIZES = {1: 16, 2: 14, 3: 12, 4: 12, 5: 12, 6: 12}
RULE_SPACING = 10

ROMAN_NUMERALS = [
    (1000, 'm'), (900, 'cm'), (500, 'd'), (400, 'cd'),
    (100, 'c'), (90, 'xc'), (50, 'l'), (40, 'xl'),
    (10, 'x'), (9, 'ix'), (5, 'v'), (4, 'iv'), (1, 'i'),
]


# ==================== Page Number Formatting ====================


def to_roman(number: int) -> str:
    """Lowercase roman numerals: 1 -> i, 4 -> iv, 1994 -> mcmxciv"""
    result = ''
    for value, numeral in ROMAN_NUMERALS:
        while number >= value:
            result += numeral
            number -= value
    return result


def to_alpha(number: int) -> str:
    """Lowercase letters: 1 -> a, 26 -> z, 27 -> aa, 28 -> ab"""
    result = ''
    number -= 1
    while number >= 0:
        result = chr(ord('a') + number % 26) + result
        number = number // 26 - 1
    return result


def format_page_number(page_number: int, number_format: Optional[PageNumberFormat] = None) -> str:
    """Format a page label with prefix and suffix, e.g. 'Page 3' or 'iv'."""
    number_format = number_format or PageNumberFormat()
    style = NumberFormat(number_format.format)

    if style == NumberFormat.ROMAN:
        label = to_roman(page_number)
    elif style == NumberFormat.ALPHA:
        label = to_alpha(page_number)
    else:
        label = str(page_number)

    return f"{number_format.prefix or ''}{label}{number_format.suffix or ''}"


def default_page_config() -> PageConfig:
    """Page setup from application settings."""
    return PageConfig(
        size=settings.default_paper_size,
        page_number_format=PageNumberFormat(font_size=settings.page_number_font_size),
    )


# ==================== Writer ====================


class PageWriter:
    """
    Writes legal documents page by page.

    A writer is single use: start() once, write, then finalize() once.
    Writing before start() or after finalize() raises WriterStateError.
    """

    def __init__(
        self,
        output: PdfOutput,
        page_config: Optional[PageConfig] = None,
        metadata: Optional[Dict[str, Any]] = None,
        pagination_slack: Optional[float] = None,
    ):
        """
        Args:
            output: Destination for the PDF bytes
            page_config: Page size, margins and numbering (immutable)
            metadata: Document info (title, author, subject, keywords)
            pagination_slack: Points of remaining space below which no manual break is forced
        """
        self.output = output
        self.page_config = page_config or default_page_config()
        self.metadata = dict(metadata or {})
        self.pagination_slack = (
            settings.pagination_slack if pagination_slack is None else pagination_slack
        )

        self.session: Optional[GeneratorSession] = None
        self.engine: Optional[CanvasEngine] = None
        self._state = "not started"
        self._writing = False

    # ==================== Lifecycle ====================

    def start(self) -> 'PageWriter':
        """Open the output and prepare the first page."""
        if self._state != "not started":
            raise WriterStateError("start", self._state)

        stream = self.output.open()

        info = {
            'title': self.metadata.get('title') or 'Legal Document',
            'author': self.metadata.get('author') or settings.default_author,
            'subject': self.metadata.get('subject') or self.metadata.get('document_type', ''),
            'keywords': self._keywords(),
            'creator': settings.default_creator,
        }

        self.engine = CanvasEngine(
            stream,
            self.page_config.dimensions,
            self.page_config.margins,
            info=info,
            font=settings.default_font,
            font_size=settings.default_font_size,
        )
        self.engine.on_page_added(self._on_page_added)
        self.session = GeneratorSession()
        self._state = "started"

        logger.debug(
            f"PDF writer started: {self.page_config.size}, "
            f"margins={self.page_config.margins.to_dict()}, output={self.output!r}"
        )
        return self

    def finalize(self) -> 'PageWriter':
        """Write the document and close the output."""
        self._require_started("finalize")

        self.engine.close()
        self.output.close()
        self._state = "finalized"

        logger.info(f"PDF document created: {self.session.current_page} pages")
        return self

    @property
    def is_started(self) -> bool:
        return self._state == "started"

    def _keywords(self) -> str:
        keywords = self.metadata.get('keywords')
        if isinstance(keywords, (list, tuple)):
            return ', '.join(keywords)
        return keywords or self.metadata.get('document_type', '')

    def _require_started(self, operation: str):
        if self._state != "started":
            raise WriterStateError(operation, self._state)

    # ==================== Page Tracking ====================

    def _on_page_added(self):
        self.session.current_page += 1
        logger.debug(f"New page added: {self.session.current_page}")

        if self._writing:
            # The engine flowed text onto this page mid-write
            self._mark_content()

    def _mark_content(self):
        if self.session.mark_content():
            self.add_page_number_to_current_page()

    @property
    def current_page(self) -> int:
        if self.session is None:
            raise WriterStateError("current_page", self._state)
        return self.session.current_page

    def has_content_on_page(self, page_number: int) -> bool:
        return self.session is not None and page_number in self.session.pages_with_content

    @property
    def pages_with_content(self) -> Set[int]:
        return set(self.session.pages_with_content) if self.session else set()

    @property
    def auto_pagination_events(self) -> List[AutoPaginationEvent]:
        return list(self.session.auto_pagination_events) if self.session else []

    def new_page(self) -> 'PageWriter':
        """Start a new page. The page counter follows the engine's notification."""
        self._require_started("new_page")
        self.engine.add_page()
        logger.debug(f"Manual new page added: {self.session.current_page}")
        return self

    def add_page_number_to_current_page(self):
        """Stamp the page label once per page without moving the writer's cursor."""
        self._require_started("add_page_number_to_current_page")

        if not self.page_config.page_numbers:
            return

        page = self.session.current_page
        if page in self.session.pages_with_page_numbers:
            return

        number_format = self.page_config.page_number_format
        label = format_page_number(page, number_format)
        page_width, page_height = self.page_config.dimensions
        margins = self.page_config.margins
        label_width = TextMetrics.string_width(label, number_format.font, number_format.font_size)

        position = PageNumberPosition(self.page_config.page_number_position)
        if position == PageNumberPosition.BOTTOM_LEFT:
            x = margins.left
        elif position == PageNumberPosition.BOTTOM_RIGHT:
            x = page_width - margins.right - label_width
        else:
            x = (page_width - label_width) / 2

        self.engine.save_state()
        try:
            self.engine.draw_string(
                label, x, page_height - PAGE_NUMBER_OFFSET,
                number_format.font, number_format.font_size,
            )
        finally:
            self.engine.restore_state()

        self.session.pages_with_page_numbers.add(page)
        logger.debug(f"Page number '{label}' added to page {page}")

    # ==================== Space ====================

    def remaining_space(self) -> float:
        self._require_started("remaining_space")
        return self.engine.remaining_height()

    def has_space_for(self, required: float) -> bool:
        return self.remaining_space() >= required

    def ensure_space(self, required: float) -> 'PageWriter':
        if not self.has_space_for(required):
            self.new_page()
        return self

    def add_space(self, lines: float = 1) -> 'PageWriter':
        """Move down by a number of lines of the current font."""
        self._require_started("add_space")
        self.engine.move_down(lines * TextMetrics.line_height(self.engine.font_size))
        return self

    def add_vertical_space(self, points: float) -> 'PageWriter':
        self._require_started("add_vertical_space")
        self.engine.move_down(points)
        return self

    def move_to(self, x: Optional[float] = None, y: Optional[float] = None) -> 'PageWriter':
        self._require_started("move_to")
        self.engine.move_to(x, y)
        return self

    @property
    def current_y(self) -> float:
        return self.engine.y if self.engine else self.page_config.margins.top

    @property
    def current_x(self) -> float:
        return self.engine.x if self.engine else self.page_config.margins.left

    @property
    def page_dimensions(self) -> Dict[str, float]:
        width, height = self.page_config.dimensions
        return {'width': width, 'height': height}

    def _text_width(self, options: TextOptions) -> float:
        if options.width is not None:
            return options.width
        left = options.x if options.x is not None else self.current_x
        return self.page_config.dimensions[0] - self.page_config.margins.right - left

    def measure_text_height(self, text: str, options: Optional[TextOptions] = None) -> float:
        """Rendered height of text with the same metrics the engine draws with."""
        options = options or TextOptions()
        return TextMetrics.height_of_string(
            text, options.font, options.font_size, self._text_width(options),
            options.line_gap, options.indent,
        )

    @staticmethod
    def line_height(font_size: float = 12, line_gap: float = 0) -> float:
        return TextMetrics.line_height(font_size) + line_gap

    # ==================== Writing ====================

    def write_text(self, text: str, options: Optional[TextOptions] = None) -> 'PageWriter':
        """
        Write text at the cursor.

        Unless the write is a continued run, text that will not fit the remaining
        space gets a manual page break first (when more than the pagination slack
        remains). Text taller than the space left after that is split into
        page-sized pieces by the writer, so the engine never has to paginate.
        """
        self._require_started("write_text")
        options = options or TextOptions()
        has_text = bool(text.strip())

        if has_text and not options.continued:
            text_height = self.measure_text_height(text, options)
            remaining = self.remaining_space()

            logger.debug(
                f"Space check before writing text: height={text_height:.1f}, "
                f"remaining={remaining:.1f}, page={self.session.current_page}"
            )

            if text_height > remaining and remaining > self.pagination_slack \
                    and self.has_content_on_page(self.session.current_page):
                logger.info(
                    f"Manual page break to prevent auto-pagination: "
                    f"height={text_height:.1f}, remaining={remaining:.1f}, "
                    f"page={self.session.current_page}"
                )
                self.new_page()

            if text_height > self.remaining_space():
                self._write_in_page_pieces(text, options)
                return self

        if has_text:
            self._mark_content()

        self._engine_write(text, options)
        return self

    def _write_in_page_pieces(self, text: str, options: TextOptions):
        """Write wrapped lines page by page with explicit breaks between pages."""
        width = self._text_width(options)
        line_height = TextMetrics.line_height(options.font_size)
        step = line_height + options.line_gap
        lines = TextMetrics.wrap(text, options.font, options.font_size, width,
                                 first_line_width=width - options.indent)

        while lines:
            # Small tolerance so float drift never lets the engine break first
            remaining = self.remaining_space() - 0.01
            fits = int((remaining - line_height) // step) + 1 if remaining >= line_height else 0

            if fits <= 0:
                if self.engine.y <= self.page_config.margins.top:
                    fits = 1
                else:
                    self.new_page()
                    continue

            piece, lines = lines[:fits], lines[fits:]
            self._mark_content()
            self._engine_write('\n'.join(piece), options)

            if lines:
                logger.debug(f"Continuing text on a new page after {len(piece)} lines")
                options = replace(options, indent=0)
                self.new_page()

    def _engine_write(self, text: str, options: TextOptions, font: Optional[str] = None,
                      continued: Optional[bool] = None):
        """Hand one run to the engine and record any pages it added on its own."""
        page_before = self.session.current_page
        y_before = self.engine.y
        available = self.engine.remaining_height()

        self._writing = True
        try:
            self.engine.text(
                text,
                font=font or options.font,
                size=options.font_size,
                line_gap=options.line_gap,
                align=options.align,
                x=options.x,
                width=options.width,
                height=available if available > 0 else None,
                continued=options.continued if continued is None else continued,
                indent=options.indent,
            )
        finally:
            self._writing = False

        if self.session.current_page != page_before:
            event = AutoPaginationEvent(
                page_before=page_before,
                page_after=self.session.current_page,
                text_length=len(text),
                available_height=available,
                y_before=y_before,
            )
            self.session.auto_pagination_events.append(event)
            logger.warning(
                f"Drawing engine auto-paginated: pages {page_before} -> {event.page_after} "
                f"(+{event.pages_added}), text length {len(text)}, "
                f"available {available:.1f}, y before {y_before:.1f}, y after {self.engine.y:.1f}"
            )

    def write_formatted_text(self, segments: List[TextSegment],
                             options: Optional[TextOptions] = None) -> 'PageWriter':
        """Write bold/italic segments as one continued run."""
        self._require_started("write_formatted_text")
        options = options or TextOptions()
        runs = [s for s in segments if s.text]

        if not runs:
            return self

        full_text = ''.join(s.text for s in runs)
        if full_text.strip():
            text_height = self.measure_text_height(full_text, replace(options, continued=False))
            remaining = self.remaining_space()

            if text_height > remaining and self.has_content_on_page(self.session.current_page):
                logger.debug(
                    f"Manual page break for formatted text: height={text_height:.1f}, "
                    f"remaining={remaining:.1f}, page={self.session.current_page}"
                )
                self.new_page()

            self._mark_content()

        for index, segment in enumerate(runs):
            is_last = index == len(runs) - 1
            font = resolve_font(options.font, segment.bold, segment.italic)
            # Only the first run may set x; the rest follow on
            run_options = options if index == 0 else replace(options, x=None)
            self._engine_write(
                segment.text, run_options, font=font,
                continued=options.continued if is_last else True,
            )

        # Back to the regular face
        self.engine.set_font(options.font, options.font_size)
        return self

    def draw_label(self, label: str, x: float, options: Optional[TextOptions] = None) -> 'PageWriter':
        """
        Draw a one-line label (e.g. a list bullet) on the cursor row without
        moving the cursor. The text written next on the row marks the page.
        """
        self._require_started("draw_label")
        options = options or TextOptions()
        self.engine.save_state()
        try:
            self.engine.draw_string(label, x, self.engine.y, options.font, options.font_size)
        finally:
            self.engine.restore_state()
        return self

    def write_paragraph(self, text: str, options: Optional[TextOptions] = None) -> 'PageWriter':
        self.write_text(text, options)
        self.add_space(1)
        return self

    def write_title(self, title: str, options: Optional[TextOptions] = None) -> 'PageWriter':
        """Centered, uppercased title."""
        options = options or TextOptions(font_size=14, align="center")
        self.write_text(title.upper(), options)
        self.add_space(1)
        return self

    def write_heading(self, heading: str, level: int = 1,
                      options: Optional[TextOptions] = None) -> 'PageWriter':
        """Heading sized by level (16/14/12pt); levels 1-3 are bold."""
        level = min(max(level, 1), 6)
        base = options or TextOptions(font_size=HEADING_SIZES[level])
        heading_options = replace(base, font=resolve_font(base.font, bold=level <= 3))

        self.write_text(heading, heading_options)
        self.add_space(0.5)
        return self

    def draw_horizontal_line(self, width: float = 0.5, color: str = "#000000",
                             margin_left: Optional[float] = None,
                             margin_right: Optional[float] = None) -> 'PageWriter':
        """Rule across the text column, with space above and below."""
        self._require_started("draw_horizontal_line")

        if self.remaining_space() < 2 * RULE_SPACING \
                and self.has_content_on_page(self.session.current_page):
            self.new_page()

        self._mark_content()

        page_width = self.page_config.dimensions[0]
        left = self.page_config.margins.left if margin_left is None else margin_left
        right = self.page_config.margins.right if margin_right is None else margin_right
        line_y = self.engine.y + RULE_SPACING

        self.engine.line(left, line_y, page_width - right, line_y, line_width=width, color=color)
        self.engine.move_to(y=line_y + RULE_SPACING)
        return self
