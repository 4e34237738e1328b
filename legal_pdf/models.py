"""
Data models for the legal PDF pipeline.
All models use dataclasses for simplicity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from reportlab.lib.pagesizes import A4, LEGAL, LETTER


class MarkerType(str, Enum):
    """Kinds of inline block markers"""
    SIGNATURE = "signature"
    INITIAL = "initial"
    NOTARY = "notary"


class BlockLayout(str, Enum):
    """How the parties of a signature block are arranged"""
    SINGLE = "single"
    SIDE_BY_SIDE = "side-by-side"


class LineType(str, Enum):
    """Kind of line a party signs on"""
    SIGNATURE = "signature"
    INITIAL = "initial"


class NumberFormat(str, Enum):
    """Page number label formats"""
    NUMERIC = "numeric"
    ROMAN = "roman"
    ALPHA = "alpha"


class PageNumberPosition(str, Enum):
    """Where the page number label is stamped"""
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


class LineSpacing(str, Enum):
    """Line spacing presets"""
    SINGLE = "single"
    ONE_HALF = "one-half"
    DOUBLE = "double"


class BlockType(Enum):
    """Layout block types"""
    TEXT = "text"
    HEADING = "heading"
    LIST_ITEM = "list-item"
    BLOCKQUOTE = "blockquote"
    HORIZONTAL_RULE = "horizontal-rule"
    TABLE_ROW = "table-row"
    HEADER = "header"
    SIGNATURE = "signature"


PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    "LETTER": LETTER,
    "LEGAL": LEGAL,
    "A4": A4,
}


# ==================== Markers & Signature Blocks ====================


@dataclass
class Marker:
    """A signature/initials/notary marker found in the source text"""
    type: MarkerType
    id: str
    full_marker_text: str
    start_index: int
    end_index: int


@dataclass
class Party:
    """One signing party of a signature block"""
    role: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    date: Optional[str] = None
    line_type: Optional[LineType] = None

    def is_empty(self) -> bool:
        return not any((self.role, self.name, self.title, self.company, self.date, self.line_type))


@dataclass
class SignatureBlock:
    """Structured record of the parties attached to one marker"""
    marker: Marker
    layout: BlockLayout = BlockLayout.SINGLE
    parties: List[Party] = field(default_factory=list)
    notary_required: bool = False
    content_index: int = 0  # Position in ParseResult.content where the block renders


@dataclass
class ParseResult:
    """Marker-free content plus the blocks extracted from it"""
    content: List[str] = field(default_factory=list)
    signature_blocks: List[SignatureBlock] = field(default_factory=list)

    @property
    def has_signatures(self) -> bool:
        return len(self.signature_blocks) > 0


# ==================== Page Configuration ====================


@dataclass(frozen=True)
class Margins:
    """Page margins in points (72pt = 1 inch)"""
    top: float = 72
    bottom: float = 72
    left: float = 72
    right: float = 72

    def to_dict(self) -> Dict[str, float]:
        return {"top": self.top, "bottom": self.bottom, "left": self.left, "right": self.right}


@dataclass(frozen=True)
class PageNumberFormat:
    """Page number label settings"""
    format: NumberFormat = NumberFormat.NUMERIC
    prefix: str = ""
    suffix: str = ""
    font_size: float = 10
    font: str = "Times-Roman"


@dataclass(frozen=True)
class PageConfig:
    """Page setup for one generation. Never mutated once built."""
    size: str = "LETTER"
    margins: Margins = field(default_factory=Margins)
    page_numbers: bool = True
    page_number_position: PageNumberPosition = PageNumberPosition.BOTTOM_CENTER
    page_number_format: PageNumberFormat = field(default_factory=PageNumberFormat)

    @property
    def dimensions(self) -> Tuple[float, float]:
        """(width, height) of the page in points"""
        return PAGE_SIZES.get(self.size.upper(), LETTER)

    @property
    def content_width(self) -> float:
        return self.dimensions[0] - self.margins.left - self.margins.right


# ==================== Text ====================


@dataclass
class TextOptions:
    """Options for a single write"""
    font_size: float = 12
    font: str = "Times-Roman"
    line_gap: float = 12  # Double spacing unless told otherwise
    align: str = "left"  # left, center, right, justify
    continued: bool = False
    x: Optional[float] = None
    width: Optional[float] = None
    indent: float = 0  # First line only


@dataclass
class TextSegment:
    """A run of text with bold/italic flags"""
    text: str
    bold: bool = False
    italic: bool = False


@dataclass
class ParsedHeading:
    """A Markdown heading line"""
    level: int
    text: str
    original_line: str


@dataclass
class ListItemData:
    """A Markdown list item"""
    type: str  # ordered, unordered
    level: int
    marker: str
    text: str


# ==================== Writer Session ====================


@dataclass
class AutoPaginationEvent:
    """The drawing engine added pages on its own during a write"""
    page_before: int
    page_after: int
    text_length: int
    available_height: float
    y_before: float

    @property
    def pages_added(self) -> int:
        return self.page_after - self.page_before


@dataclass
class GeneratorSession:
    """Mutable per-document state, owned by the page writer"""
    current_page: int = 1
    pages_with_content: Set[int] = field(default_factory=set)
    pages_with_page_numbers: Set[int] = field(default_factory=set)
    auto_pagination_events: List[AutoPaginationEvent] = field(default_factory=list)

    def mark_content(self) -> bool:
        """Mark the current page as having content. True if it had none before."""
        first = self.current_page not in self.pages_with_content
        self.pages_with_content.add(self.current_page)
        return first

    @property
    def blank_pages(self) -> List[int]:
        return [p for p in range(1, self.current_page + 1) if p not in self.pages_with_content]


# ==================== Formatting Rules ====================


@dataclass
class DocumentFormattingRules:
    """Formatting rules for one document type"""
    line_spacing: LineSpacing = LineSpacing.DOUBLE
    font_size: float = 12
    font: str = "Times-Roman"
    margins: Margins = field(default_factory=Margins)
    page_number_position: PageNumberPosition = PageNumberPosition.BOTTOM_CENTER
    paragraph_indent: float = 36
    paragraph_spacing: float = 12
    block_quote_indent: float = 72
    signature_line_spacing: LineSpacing = LineSpacing.SINGLE


# ==================== Layout ====================


@dataclass
class LayoutBlock:
    """A unit of content placed by the layout engine"""
    type: BlockType
    content: Any = None  # str, SignatureBlock or ListItemData
    height: float = 0.0
    breakable: bool = True
    keep_with_next: bool = False
    heading_level: Optional[int] = None
    segments: Optional[List[TextSegment]] = None  # Inline bold/italic runs
    spacing_after: float = 0.0
    line_step: float = 0.0  # Height of one wrapped line, for splitting

    @property
    def is_atomic(self) -> bool:
        return self.type == BlockType.SIGNATURE


@dataclass
class LayoutPage:
    """Blocks predicted to land on one page"""
    page_number: int
    remaining_height: float
    blocks: List[LayoutBlock] = field(default_factory=list)


@dataclass
class LayoutResult:
    """Predicted pagination for a document"""
    pages: List[LayoutPage] = field(default_factory=list)
    has_overflow: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)


# ==================== Export ====================


@dataclass
class ExportResult:
    """Outcome of one export"""
    page_count: int
    signature_block_count: int
    predicted_page_count: int
    buffer: Optional[bytes] = None
    file_path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    processing_time: float = 0.0  # seconds
    word_count: int = 0
    estimated_reading_time: int = 0  # minutes
    generated_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
