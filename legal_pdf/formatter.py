"""
Document Formatter - formatting rules per legal document type

USPTO filings are double-spaced (trademark forms excepted), recorded agreements
use 1.5 spacing, and correspondence and commercial agreements are single-spaced.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .engine import LINE_HEIGHT_FACTOR
from .models import (
    DocumentFormattingRules, LineSpacing, Margins, PAGE_SIZES, PageNumberPosition,
)


logger = logging.getLogger(__name__)


# Points added between lines on top of the 1.2x font line height
LINE_SPACING_POINTS = {
    LineSpacing.SINGLE: 0,
    LineSpacing.ONE_HALF: 6,
    LineSpacing.DOUBLE: 12,
}

OFFICE_ACTION_FIRST_PAGE_TOP = 108  # 1.5" for the USPTO header

ELEMENT_SPACING = {
    'section': 18,
    'title': 24,
    'list': 6,
}

DOCUMENT_TYPES = [
    'provisional-patent-application',
    'office-action-response',
    'trademark-application',
    'patent-assignment-agreement',
    'nda-ip-specific',
    'patent-license-agreement',
    'technology-transfer-agreement',
    'cease-and-desist-letter',
]

DEFAULT_RULES = DocumentFormattingRules()

FORMATTING_RULES: Dict[str, DocumentFormattingRules] = {
    # ========== USPTO Filings ==========
    'provisional-patent-application': DEFAULT_RULES,
    'office-action-response': replace(
        DEFAULT_RULES,
        margins=Margins(top=OFFICE_ACTION_FIRST_PAGE_TOP),
        page_number_position=PageNumberPosition.BOTTOM_RIGHT,
        paragraph_indent=0,
    ),
    'trademark-application': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.SINGLE,  # Forms are single-spaced
        paragraph_indent=0,
        block_quote_indent=36,
    ),

    # ========== Legal Agreements ==========
    'patent-assignment-agreement': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.ONE_HALF,  # 1.5 spacing for recording
    ),
    'nda-ip-specific': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.SINGLE,
        page_number_position=PageNumberPosition.BOTTOM_RIGHT,
    ),
    'patent-license-agreement': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.SINGLE,
        page_number_position=PageNumberPosition.BOTTOM_RIGHT,
    ),
    'technology-transfer-agreement': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.SINGLE,
        page_number_position=PageNumberPosition.BOTTOM_RIGHT,
    ),

    # ========== Professional Correspondence ==========
    'cease-and-desist-letter': replace(
        DEFAULT_RULES,
        line_spacing=LineSpacing.SINGLE,
        paragraph_indent=0,  # Business letter format
    ),
}


def apply_overrides(rules: DocumentFormattingRules, overrides: Optional[Dict[str, Any]]) -> DocumentFormattingRules:
    """
    Return a copy of rules with overrides applied.
    Margin overrides may be partial; missing sides keep their base values.
    """
    if not overrides:
        return rules

    values = {k: v for k, v in overrides.items() if v is not None}

    margins = values.pop('margins', None)
    if margins is not None:
        if isinstance(margins, Margins):
            margins = margins.to_dict()
        values['margins'] = replace(rules.margins, **margins)

    if 'line_spacing' in values:
        values['line_spacing'] = LineSpacing(values['line_spacing'])
    if 'page_number_position' in values:
        values['page_number_position'] = PageNumberPosition(values['page_number_position'])

    return replace(rules, **values)


class DocumentFormatter:
    """
    Formatting rules for legal document types.

    Usage:
        formatter = DocumentFormatter()
        rules = formatter.get_formatting_rules("patent-license-agreement")
        gap = formatter.apply_line_spacing("patent-license-agreement")
    """

    def __init__(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        """
        Args:
            overrides: Per-document-type rule overrides, e.g.
                {"nda-ip-specific": {"line_spacing": "double"}}
        """
        self.overrides: Dict[str, Dict[str, Any]] = dict(overrides or {})

    def get_formatting_rules(self, document_type: str) -> DocumentFormattingRules:
        rules = FORMATTING_RULES.get(document_type)

        if rules is None:
            logger.warning(f"No formatting rules found for {document_type}, using defaults")
            rules = DEFAULT_RULES

        # Copy so callers never mutate the shared table
        return apply_overrides(replace(rules), self.overrides.get(document_type))

    def has_overrides(self, document_type: str) -> bool:
        return bool(self.overrides.get(document_type))

    def update_overrides(self, overrides: Dict[str, Dict[str, Any]]):
        """Merge new per-type overrides into the existing ones."""
        self.overrides.update(overrides)

    # ==================== Spacing ====================

    @staticmethod
    def get_line_spacing(spacing) -> float:
        """Extra points between lines for a spacing preset."""
        return LINE_SPACING_POINTS.get(LineSpacing(spacing), 0)

    def apply_line_spacing(self, document_type: str, is_signature_block: bool = False) -> float:
        rules = self.get_formatting_rules(document_type)
        spacing = rules.signature_line_spacing if is_signature_block else rules.line_spacing
        return self.get_line_spacing(spacing)

    def calculate_line_height(self, font_size: float, spacing=LineSpacing.SINGLE) -> float:
        """font size x 1.2 plus the spacing gap, e.g. 12pt single = 14.4"""
        return font_size * LINE_HEIGHT_FACTOR + self.get_line_spacing(spacing)

    def get_element_spacing(self, document_type: str, element: str) -> float:
        """Vertical space after a paragraph, section, title or list."""
        if element == 'paragraph':
            return self.get_formatting_rules(document_type).paragraph_spacing
        return ELEMENT_SPACING.get(element, 0)

    def requires_double_spacing(self, document_type: str) -> bool:
        if document_type not in FORMATTING_RULES:
            return False
        return self.get_formatting_rules(document_type).line_spacing == LineSpacing.DOUBLE

    # ==================== Page Geometry ====================

    def get_margins_for_page(self, document_type: str, page_number: int) -> Margins:
        """Office action responses keep the tall top margin on page 1 only."""
        margins = self.get_formatting_rules(document_type).margins

        if document_type == 'office-action-response' and page_number > 1 \
                and margins.top == OFFICE_ACTION_FIRST_PAGE_TOP:
            return replace(margins, top=DEFAULT_RULES.margins.top)

        return margins

    def get_usable_page_area(self, document_type: str, page_number: int = 1,
                             page_size: str = "LETTER") -> Dict[str, float]:
        """Width and height inside the margins, e.g. 468 x 648 on Letter."""
        width, height = PAGE_SIZES.get(page_size.upper(), PAGE_SIZES["LETTER"])
        margins = self.get_margins_for_page(document_type, page_number)

        return {
            'width': width - margins.left - margins.right,
            'height': height - margins.top - margins.bottom,
        }

    def needs_header_space(self, document_type: str, page_number: int) -> bool:
        return document_type == 'office-action-response' and page_number == 1

    def get_header_content(self, document_type: str,
                           metadata: Optional[Dict[str, str]] = None) -> Optional[List[str]]:
        """First-page header lines for an office action response."""
        if document_type != 'office-action-response' or not metadata:
            return None

        lines = []
        if metadata.get('application_number'):
            lines.append(f"Application No.: {metadata['application_number']}")
        if metadata.get('response_date'):
            lines.append(f"Response Date: {metadata['response_date']}")

        return lines or None

    def get_page_dimensions(self, page_size: str = "LETTER") -> Tuple[float, float]:
        return PAGE_SIZES.get(page_size.upper(), PAGE_SIZES["LETTER"])
