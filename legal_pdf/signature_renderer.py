"""
Signature Block Renderer

Turns a SignatureBlock into rows (role, signing space, rule, name, title,
company, date, optional notary acknowledgement). The same rows drive both
measurement and drawing, so the measured height is the height drawn.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .engine import TextMetrics
from .models import BlockLayout, LineType, Party, SignatureBlock, TextOptions


logger = logging.getLogger(__name__)


ROLE_FONT_SIZE = 12
FIELD_FONT_SIZE = 10
SIGNING_SPACE = 24  # Room for the handwritten signature above the rule
PARTY_SPACING = 24
COLUMN_GAP = 36
RULE_HEIGHT = 20  # Matches PageWriter.draw_horizontal_line spacing
SIGNATURE_RULE_WIDTH = 252  # 3.5"
NOTARY_RULE_WIDTH = 200
BLOCK_SPACING_AFTER = 12

INITIALS_BLANK = "__________"
DATE_BLANK = "_______________"

RULE = object()  # Cell sentinel: draw a signature rule


@dataclass
class SignatureRow:
    """One horizontal band of a signature block"""
    kind: str  # text, rule, space
    cells: List[object] = field(default_factory=list)  # str, RULE or None per column
    font_size: float = FIELD_FONT_SIZE
    space: float = 0.0
    span: bool = False  # One cell across the full content width
    rule_width: Optional[float] = None


class SignatureRenderer:
    """
    Lays out and draws signature, initials and notary blocks.

    Usage:
        renderer = SignatureRenderer(font="Times-Roman")
        height = renderer.measure(block, content_width=468)
        renderer.render(block, writer)
    """

    def __init__(self, font: str = "Times-Roman", line_gap: float = 0):
        self.font = font
        self.line_gap = line_gap  # Extra points per wrapped line (signature line spacing)

    # ==================== Rows ====================

    def rows(self, block: SignatureBlock) -> List[SignatureRow]:
        """Rows for a whole block, including notary section and trailing space."""
        parties = block.parties or [Party()]  # A bare marker still gets a line to sign
        group_size = 2 if block.layout == BlockLayout.SIDE_BY_SIDE else 1

        rows: List[SignatureRow] = []
        for start in range(0, len(parties), group_size):
            if start:
                rows.append(SignatureRow(kind='space', space=PARTY_SPACING))
            rows.extend(self._party_rows(parties[start:start + group_size], group_size))

        if block.notary_required:
            rows.extend(self._notary_rows())

        rows.append(SignatureRow(kind='space', space=BLOCK_SPACING_AFTER))
        return rows

    def _party_rows(self, parties: List[Party], columns: int) -> List[SignatureRow]:
        """Aligned rows for parties signing side by side (or one alone)."""
        def cells(values):
            values = list(values)
            return values + [None] * (columns - len(values))

        rows: List[SignatureRow] = []

        roles = cells(
            f"{p.role}:" if p.role and p.line_type != LineType.INITIAL else None
            for p in parties
        )
        if any(roles):
            rows.append(SignatureRow(kind='text', cells=roles, font_size=ROLE_FONT_SIZE))

        rows.append(SignatureRow(kind='space', space=SIGNING_SPACE))
        rows.append(SignatureRow(kind='rule', cells=cells(self._signing_line(p) for p in parties)))

        for label, attr in (("Name", "name"), ("Title", "title"), (None, "company")):
            values = cells(
                (f"{label}: {getattr(p, attr)}" if label else getattr(p, attr))
                if getattr(p, attr) else None
                for p in parties
            )
            if any(values):
                rows.append(SignatureRow(kind='text', cells=values))

        dates = cells(
            f"Date: {p.date or DATE_BLANK}" if p.date is not None else None
            for p in parties
        )
        if any(dates):
            rows.append(SignatureRow(kind='text', cells=dates))

        return rows

    @staticmethod
    def _signing_line(party: Party):
        if party.line_type == LineType.INITIAL:
            return f"{party.role or 'Initials'}: {INITIALS_BLANK}"
        return RULE

    @staticmethod
    def _notary_rows() -> List[SignatureRow]:
        def text(value):
            return SignatureRow(kind='text', cells=[value], span=True)

        return [
            SignatureRow(kind='space', space=20),
            text("STATE OF _____________"),
            text("COUNTY OF ___________"),
            SignatureRow(kind='space', space=6),
            text("Subscribed and sworn to before me this ____ day of _________, 20__"),
            SignatureRow(kind='space', space=SIGNING_SPACE),
            SignatureRow(kind='rule', cells=[RULE], span=True, rule_width=NOTARY_RULE_WIDTH),
            text("Notary Public"),
            text("My Commission Expires: __________"),
        ]

    # ==================== Geometry ====================

    @staticmethod
    def columns(row: SignatureRow, content_width: float) -> List[Tuple[float, float]]:
        """(offset from left margin, width) for each cell of a row."""
        if row.span or len(row.cells) == 1:
            return [(0.0, content_width)]

        width = (content_width - COLUMN_GAP) / 2
        return [(0.0, width), (width + COLUMN_GAP, width)]

    def row_height(self, row: SignatureRow, content_width: float) -> float:
        if row.kind == 'space':
            return row.space

        heights = [0.0]
        for (_, width), cell in zip(self.columns(row, content_width), row.cells):
            if cell is RULE:
                heights.append(RULE_HEIGHT)
            elif cell:
                heights.append(TextMetrics.height_of_string(
                    cell, self.font, row.font_size, width, self.line_gap))
        return max(heights)

    def measure(self, block: SignatureBlock, content_width: float) -> float:
        """Total height of the block as render() will draw it."""
        return sum(self.row_height(row, content_width) for row in self.rows(block))

    # ==================== Drawing ====================

    def render(self, block: SignatureBlock, writer):
        """Draw the block at the writer's cursor. Page breaks are the caller's job."""
        margins = writer.page_config.margins
        page_width = writer.page_config.dimensions[0]
        content_width = writer.page_config.content_width

        logger.debug(
            f"Rendering signature block '{block.marker.id}' "
            f"({block.layout.value}, {len(block.parties)} parties) on page {writer.current_page}"
        )

        for row in self.rows(block):
            if row.kind == 'space':
                writer.add_vertical_space(row.space)
                continue

            row_y = writer.current_y
            row_page = writer.current_page
            ends = []

            for (offset, width), cell in zip(self.columns(row, content_width), row.cells):
                if cell is None:
                    continue

                left = margins.left + offset
                writer.move_to(x=left, y=row_y if writer.current_page == row_page else None)

                if cell is RULE:
                    rule_width = min(row.rule_width or SIGNATURE_RULE_WIDTH, width)
                    writer.draw_horizontal_line(
                        margin_left=left,
                        margin_right=page_width - left - rule_width,
                    )
                else:
                    writer.write_text(cell, TextOptions(
                        font=self.font, font_size=row.font_size, line_gap=self.line_gap, x=left, width=width,
                    ))
                ends.append(writer.current_y)

            if writer.current_page == row_page:
                next_y = row_y + self.row_height(row, content_width)
            else:
                next_y = max(ends)
            writer.move_to(x=margins.left, y=next_y)
