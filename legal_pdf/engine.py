"""
Drawing engine over a ReportLab canvas.

The engine keeps a top-down text cursor (y grows down the page, as in the
writer) and converts to PDF coordinates only when drawing. Long text wraps
word by word and, like any flowing-text engine, starts a new page on its own
when a line would cross the bottom margin. Listeners registered with
on_page_added() hear about every page the engine starts, whether requested or
not, which is how the page writer detects auto-pagination.
"""

import logging
import re
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple

from reportlab.lib.colors import HexColor
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen.canvas import Canvas

from .models import Margins


logger = logging.getLogger(__name__)


LINE_HEIGHT_FACTOR = 1.2

# (bold, italic) -> font name, for the standard Type 1 families
FONT_FAMILIES: Dict[str, Dict[Tuple[bool, bool], str]] = {
    'Times': {
        (False, False): 'Times-Roman',
        (True, False): 'Times-Bold',
        (False, True): 'Times-Italic',
        (True, True): 'Times-BoldItalic',
    },
    'Helvetica': {
        (False, False): 'Helvetica',
        (True, False): 'Helvetica-Bold',
        (False, True): 'Helvetica-Oblique',
        (True, True): 'Helvetica-BoldOblique',
    },
    'Courier': {
        (False, False): 'Courier',
        (True, False): 'Courier-Bold',
        (False, True): 'Courier-Oblique',
        (True, True): 'Courier-BoldOblique',
    },
}

_TOKEN_PATTERN = re.compile(r'(\s+)')


def resolve_font(base_font: str, bold: bool = False, italic: bool = False) -> str:
    """
    Map a base font plus bold/italic flags to a concrete font name.
    Fonts outside the standard families are returned unchanged.
    """
    family = base_font.split('-')[0]
    variants = FONT_FAMILIES.get(family)
    if variants is None:
        return base_font
    return variants[(bold, italic)]


class TextMetrics:
    """
    Font measurement and line wrapping.

    Pure functions of font, size and width; usable without a canvas.
    """

    @staticmethod
    def string_width(text: str, font: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, font, size)

    @staticmethod
    def line_height(size: float) -> float:
        return size * LINE_HEIGHT_FACTOR

    @classmethod
    def wrap(cls, text: str, font: str, size: float, width: float,
             first_line_width: Optional[float] = None) -> List[str]:
        """
        Greedy word wrap. Explicit newlines always break; words wider than
        the line are broken by character. Trailing spaces of the last line
        are kept so a continued run can pick up after them.

        Not reportlab.lib.utils.simpleSplit: that takes one width for every
        line and drops trailing spaces, so it cannot honour a first-line indent
        or the offset of a continued run.
        """
        lines: List[str] = []
        available = width if first_line_width is None else first_line_width

        for paragraph in text.split('\n'):
            current = ''

            for token in _TOKEN_PATTERN.split(paragraph):
                if not token:
                    continue

                candidate = current + token
                if token.isspace() or cls.string_width(candidate.rstrip(), font, size) <= available:
                    current = candidate
                    continue

                if current.strip():
                    lines.append(current.rstrip())
                    available = width
                    current = ''

                # Word alone is still too wide: break it by character
                while cls.string_width(current + token, font, size) > available and len(token) > 1:
                    cut = 1
                    while cut < len(token) and \
                            cls.string_width(current + token[:cut + 1], font, size) <= available:
                        cut += 1
                    lines.append(current + token[:cut])
                    available = width
                    current = ''
                    token = token[cut:]

                current = current + token

            lines.append(current)
            available = width

        return lines

    @classmethod
    def height_of_string(cls, text: str, font: str, size: float, width: float,
                         line_gap: float = 0, indent: float = 0) -> float:
        """Height of wrapped text: lines x (size x 1.2 + line gap)."""
        if not text:
            return 0.0
        line_count = len(cls.wrap(text, font, size, width, first_line_width=width - indent))
        return line_count * (cls.line_height(size) + line_gap)


class CanvasEngine:
    """
    Text-flow engine bound to one ReportLab canvas and output stream.

    Usage:
        engine = CanvasEngine(stream, (612, 792), Margins())
        engine.on_page_added(lambda: ...)
        engine.text("Hello", font="Times-Roman", size=12)
        engine.close()
    """

    def __init__(
        self,
        stream: BinaryIO,
        page_size: Tuple[float, float],
        margins: Margins,
        info: Optional[Dict[str, str]] = None,
        font: str = "Times-Roman",
        font_size: float = 12,
    ):
        self.page_width, self.page_height = page_size
        self.margins = margins
        self.canvas = Canvas(stream, pagesize=page_size)

        info = info or {}
        if info.get('title'):
            self.canvas.setTitle(info['title'])
        if info.get('author'):
            self.canvas.setAuthor(info['author'])
        if info.get('subject'):
            self.canvas.setSubject(info['subject'])
        if info.get('keywords'):
            self.canvas.setKeywords(info['keywords'])
        if info.get('creator'):
            self.canvas.setCreator(info['creator'])

        self.page_count = 1
        self.x = margins.left
        self.y = margins.top
        self.font = font
        self.font_size = font_size

        self._pending_x: Optional[float] = None  # Offset of a continued run
        self._pending_left = margins.left
        self._listeners: List[Callable[[], None]] = []
        self._state_stack: List[tuple] = []
        self._closed = False

        self.canvas.setFont(font, font_size)

    # ==================== Pages ====================

    def on_page_added(self, callback: Callable[[], None]):
        self._listeners.append(callback)

    def add_page(self):
        """Close the current page and start a new one with the cursor at the top margin."""
        self.canvas.showPage()
        self.page_count += 1
        self.x = self.margins.left
        self.y = self.margins.top
        self._pending_x = None
        self.canvas.setFont(self.font, self.font_size)

        for callback in self._listeners:
            callback()

    @property
    def page_bottom(self) -> float:
        """Lowest y (top-down) text may reach."""
        return self.page_height - self.margins.bottom

    @property
    def content_width(self) -> float:
        return self.page_width - self.margins.left - self.margins.right

    def remaining_height(self) -> float:
        return self.page_bottom - self.y

    def _pdf_y(self, y: float) -> float:
        return self.page_height - y

    # ==================== State ====================

    def set_font(self, font: str, size: float):
        self.font = font
        self.font_size = size
        self.canvas.setFont(font, size)

    def move_to(self, x: Optional[float] = None, y: Optional[float] = None):
        if x is not None:
            self.x = x
        if y is not None:
            self.y = y
        self._pending_x = None

    def move_down(self, amount: float):
        self.y += amount
        self._pending_x = None

    def save_state(self):
        self.canvas.saveState()
        self._state_stack.append((self.x, self.y, self.font, self.font_size, self._pending_x))

    def restore_state(self):
        self.canvas.restoreState()
        self.x, self.y, self.font, self.font_size, self._pending_x = self._state_stack.pop()
        self.canvas.setFont(self.font, self.font_size)

    # ==================== Drawing ====================

    def text(
        self,
        text: str,
        font: Optional[str] = None,
        size: Optional[float] = None,
        line_gap: float = 0,
        align: str = "left",
        x: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
        continued: bool = False,
        indent: float = 0,
    ):
        """
        Draw text at the cursor, wrapping to width and flowing onto new pages.

        Args:
            text: Text to draw; newlines force line breaks
            font, size: Font for this run (becomes the current font)
            line_gap: Extra points after each line
            align: left, center, right or justify
            x: Left edge of the text box (defaults to the cursor x)
            width: Width of the text box (defaults to the right margin)
            height: Height available before the engine starts a new page
            continued: Keep the cursor on the last line so the next run follows it
            indent: Extra offset of the first line, ignored when continuing a run
        """
        if font or size:
            self.set_font(font or self.font, size or self.font_size)

        if not text:
            return

        if x is not None:
            left = x
        elif self._pending_x is not None:
            left = self._pending_left  # Continue the previous run's box
        else:
            left = self.x
        box_width = width if width is not None else self.page_width - self.margins.right - left
        line_height = TextMetrics.line_height(self.font_size)
        ascent = pdfmetrics.getAscentDescent(self.font, self.font_size)[0]

        continuing = self._pending_x is not None
        offset = self._pending_x if continuing else indent
        lines = TextMetrics.wrap(text, self.font, self.font_size, box_width,
                                 first_line_width=box_width - offset)

        limit = self.page_bottom
        if height is not None and height > 0:
            limit = min(self.y + height, self.page_bottom)

        for index, line in enumerate(lines):
            is_last = index == len(lines) - 1

            # Flow onto a new page; never leave a page empty to do it
            if self.y + line_height > limit and self.y > self.margins.top \
                    and not (index == 0 and continuing):
                logger.debug(f"Engine starting page {self.page_count + 1} mid-text")
                self.add_page()
                limit = self.page_bottom

            self._draw_line(line, left + offset, box_width - offset, ascent, align,
                            justify=(align == "justify" and not is_last))

            if is_last and continued:
                self._pending_x = offset + TextMetrics.string_width(line, self.font, self.font_size)
                self._pending_left = left
                break

            self.y += line_height + line_gap
            offset = 0.0
            self._pending_x = None

    def _draw_line(self, line: str, x: float, width: float, ascent: float,
                   align: str, justify: bool = False):
        baseline = self._pdf_y(self.y + ascent)
        content = line.rstrip()
        if not content:
            return

        if align == "center":
            self.canvas.drawCentredString(x + width / 2, baseline, content)
        elif align == "right":
            self.canvas.drawRightString(x + width, baseline, content)
        elif justify and content.count(' ') > 0:
            slack = width - TextMetrics.string_width(content, self.font, self.font_size)
            text_object = self.canvas.beginText(x, baseline)
            text_object.setFont(self.font, self.font_size)
            text_object.setWordSpace(max(slack, 0) / content.count(' '))
            text_object.textOut(content)
            self.canvas.drawText(text_object)
        else:
            self.canvas.drawString(x, baseline, line)

    def draw_string(self, text: str, x: float, y: float, font: str, size: float):
        """Draw one line at an absolute top-down position without moving the cursor."""
        ascent = pdfmetrics.getAscentDescent(font, size)[0]
        self.canvas.setFont(font, size)
        self.canvas.drawString(x, self._pdf_y(y + ascent), text)

    def line(self, x1: float, y1: float, x2: float, y2: float,
             line_width: float = 0.5, color: str = "#000000"):
        """Stroke a straight line between two top-down points."""
        self.canvas.saveState()
        self.canvas.setStrokeColor(HexColor(color))
        self.canvas.setLineWidth(line_width)
        self.canvas.line(x1, self._pdf_y(y1), x2, self._pdf_y(y2))
        self.canvas.restoreState()

    # ==================== Output ====================

    def close(self):
        """Emit the current page and write the document to the stream."""
        if self._closed:
            return
        self.canvas.showPage()
        self.canvas.save()
        self._closed = True
