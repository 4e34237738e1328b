"""
Signature Block Parser

Scans generated legal text for inline block markers:

    [SIGNATURE_BLOCK:assignor-signature]
    [INITIALS_BLOCK:licensee-initials]
    [NOTARY_BLOCK:assignor-notary]

Each valid marker becomes a SignatureBlock holding the parties described on
the lines that follow it. Marker tokens and consumed block lines are removed
from the returned content; every other line passes through unchanged.
"""

import logging
import re
from typing import List, Optional, Tuple

from .models import (
    BlockLayout, LineType, Marker, MarkerType, ParseResult, Party, SignatureBlock,
)


logger = logging.getLogger(__name__)


MARKER_PATTERN = re.compile(r'\[(SIGNATURE_BLOCK|INITIALS_BLOCK|NOTARY_BLOCK):([^\]\n]*)\]')

# Kebab-case, starting with a letter
VALID_ID_PATTERN = re.compile(r'^[a-z][a-z0-9]*(-[a-z0-9]+)*$')

MARKER_TYPES = {
    'SIGNATURE_BLOCK': MarkerType.SIGNATURE,
    'INITIALS_BLOCK': MarkerType.INITIAL,
    'NOTARY_BLOCK': MarkerType.NOTARY,
}

# Party content
ROLE_PATTERN = re.compile(r"^[A-Z][A-Z0-9\s.,&'()/-]*:?$")
INITIALS_PATTERN = re.compile(r'^([A-Z][A-Z0-9\s.,&\'()/-]*?):\s*(_{3,})$')
FIELD_PATTERN = re.compile(r'^(name|title|company|date)\s*:\s*(.*)$', re.IGNORECASE)
UNDERSCORE_PATTERN = re.compile(r'_{3,}')
NOTARY_PATTERN = re.compile(
    r'^(state of|county of|notary|subscribed|sworn|my commission|commission)', re.IGNORECASE
)

# Two uppercase "LABEL:" tokens separated by a tab or 2+ spaces
SIDE_BY_SIDE_PATTERN = re.compile(
    r"^\s*[A-Z][A-Z0-9 .,&'()/-]*?:[ ]*(?:\t|[ ]{2,})\s*[A-Z][A-Z0-9 .,&'()/-]*?:"
)
COLUMN_SPLIT_PATTERN = re.compile(r'\t+|\s{2,}')
RIGHT_COLUMN_INDENT = 10

# Lines that end a block even when they are the first line after the marker
HARD_HEADING_PATTERNS = [
    re.compile(r'^\d+\.\s+[A-Z]'),            # "1. DEFINITIONS"
    re.compile(r'^ARTICLE\s+[IVX\d]+', re.IGNORECASE),
    re.compile(r'^SECTION\s+\d+', re.IGNORECASE),
]
SECTION_HEADING_PATTERN = re.compile(r'^[A-Z][A-Z\s]+:$')  # "TERMS AND CONDITIONS:"

KNOWN_PARTY_ROLES = {
    'ASSIGNOR', 'ASSIGNEE', 'LICENSOR', 'LICENSEE',
    'DISCLOSING PARTY', 'RECEIVING PARTY', 'PARTY',
    'INVENTOR', 'APPLICANT', 'COMPANY', 'WITNESS',
    'NOTARY PUBLIC', 'TRANSFEROR', 'TRANSFEREE',
    'BUYER', 'SELLER', 'CLIENT', 'ATTORNEY',
    'EMPLOYER', 'EMPLOYEE', 'GUARANTOR', 'AGENT', 'PRINCIPAL',
}


def is_valid_marker_id(marker_id: str) -> bool:
    """Marker ids are kebab-case identifiers that start with a letter."""
    return bool(VALID_ID_PATTERN.match(marker_id))


def find_markers(line: str) -> Tuple[List[Marker], List[str]]:
    """
    Find all marker tokens in a line.

    Returns:
        (valid markers, every raw token including invalid ones)
    """
    markers = []
    tokens = []

    for match in MARKER_PATTERN.finditer(line):
        tokens.append(match.group(0))
        marker_id = match.group(2)

        if not is_valid_marker_id(marker_id):
            logger.debug(f"Skipping marker with invalid id: {match.group(0)}")
            continue

        markers.append(Marker(
            type=MARKER_TYPES[match.group(1)],
            id=marker_id,
            full_marker_text=match.group(0),
            start_index=match.start(),
            end_index=match.end(),
        ))

    return markers, tokens


def detect_layout(lines: List[str]) -> BlockLayout:
    """Side-by-side when two labels share a line, or a line holds two signature rules."""
    for line in lines:
        if SIDE_BY_SIDE_PATTERN.match(line):
            return BlockLayout.SIDE_BY_SIDE
        if len(UNDERSCORE_PATTERN.findall(line)) >= 2:
            return BlockLayout.SIDE_BY_SIDE
    return BlockLayout.SINGLE


def _is_role(text: str) -> bool:
    letters = [c for c in text if c.isalpha()]
    return len(letters) >= 2 and bool(ROLE_PATTERN.match(text))


def _clean_value(value: str) -> Optional[str]:
    """Field value with blank-line underscores stripped, or None if nothing is left."""
    value = UNDERSCORE_PATTERN.sub('', value).strip()
    return value or None


def apply_party_line(text: str, party: Party) -> bool:
    """
    Apply one stripped block line to a party.

    Returns:
        True if the line was recognized as party content
    """
    if not text:
        return False

    # Initials form: "LICENSEE: ______"
    initials = INITIALS_PATTERN.match(text)
    if initials and initials.group(1).strip().lower() not in ('name', 'title', 'company', 'date'):
        party.role = initials.group(1).strip()
        party.line_type = LineType.INITIAL
        return True

    field_match = FIELD_PATTERN.match(text)
    if field_match and (field_match.group(2).strip() or not text.isupper()):
        key = field_match.group(1).lower()
        value = field_match.group(2)
        if key == 'date':
            # A blank "Date: ____" still asks for a date line
            party.date = _clean_value(value) or ""
        else:
            cleaned = _clean_value(value)
            if cleaned:
                setattr(party, key, cleaned)
        return True

    if _is_role(text):
        party.role = text.rstrip(':').strip()
        return True

    if UNDERSCORE_PATTERN.search(text):
        party.line_type = LineType.SIGNATURE
        return True

    return False


class SignatureBlockParser:
    """
    Parses signature block markers from generated legal documents.

    Usage:
        parser = SignatureBlockParser()
        result = parser.parse_document(text)
        for block in result.signature_blocks:
            print(block.marker.id, block.layout, block.parties)
    """

    def parse_document(self, text: str) -> ParseResult:
        """
        Parse document text and extract signature blocks.

        Args:
            text: Complete document text

        Returns:
            ParseResult with marker-free content and the blocks found
        """
        lines = text.split('\n')
        content: List[str] = []
        blocks: List[SignatureBlock] = []
        i = 0

        while i < len(lines):
            line = lines[i]
            markers, tokens = find_markers(line)

            if not tokens:
                content.append(line)
                i += 1
                continue

            # Strip every token, valid or not
            cleaned = line
            for token in tokens:
                cleaned = cleaned.replace(token, '', 1)
            # Removal can join the surrounding text into a new token; strip those too
            while MARKER_PATTERN.search(cleaned):
                logger.debug(f"Stripping marker formed by token removal on line {i}: {cleaned!r}")
                cleaned = MARKER_PATTERN.sub('', cleaned)
            if cleaned.strip():
                content.append(cleaned)

            if not markers:
                i += 1
                continue

            span, consumed = self._collect_block_lines(lines, i + 1)

            # The last marker on a line owns the lines below it
            for index, marker in enumerate(markers):
                owns_span = index == len(markers) - 1
                block = self._build_block(marker, span if owns_span else [], len(content))
                blocks.append(block)

                logger.debug(
                    f"Found {marker.type.value} marker '{marker.id}' on line {i}: "
                    f"{len(block.parties)} parties, {consumed if owns_span else 0} lines consumed"
                )

            i += 1 + consumed

        return ParseResult(content=content, signature_blocks=blocks)

    def _collect_block_lines(self, lines: List[str], start: int) -> Tuple[List[str], int]:
        """
        Collect the lines that belong to a block.

        Returns:
            (block lines, number of source lines consumed including a closing blank line)
        """
        span: List[str] = []
        index = start

        while index < len(lines):
            line = lines[index]
            stripped = line.strip()

            if MARKER_PATTERN.search(line):
                break

            if not stripped:
                index += 1  # The blank line closes the block and goes with it
                break

            if self._is_section_heading(stripped, has_content=bool(span)):
                break

            if not self._is_block_line(line) and not any(self._is_block_line(l) for l in span):
                break

            span.append(line)
            index += 1

        return span, index - start

    def _is_section_heading(self, stripped: str, has_content: bool) -> bool:
        if any(p.match(stripped) for p in HARD_HEADING_PATTERNS):
            return True

        if not has_content:
            return False

        if SECTION_HEADING_PATTERN.match(stripped):
            return stripped.rstrip(':').strip() not in KNOWN_PARTY_ROLES

        return False

    def _is_block_line(self, line: str) -> bool:
        stripped = line.strip()
        return bool(
            SIDE_BY_SIDE_PATTERN.match(line)
            or INITIALS_PATTERN.match(stripped)
            or FIELD_PATTERN.match(stripped)
            or UNDERSCORE_PATTERN.search(stripped)
            or NOTARY_PATTERN.match(stripped)
            or _is_role(stripped)
        )

    def _build_block(self, marker: Marker, span: List[str], content_index: int) -> SignatureBlock:
        layout = detect_layout(span)

        if layout == BlockLayout.SIDE_BY_SIDE:
            parties = self._extract_side_by_side_parties(span)
        else:
            parties = self._extract_single_parties(span)

        return SignatureBlock(
            marker=marker,
            layout=layout,
            parties=parties,
            notary_required=marker.type == MarkerType.NOTARY,
            content_index=content_index,
        )

    def _extract_single_parties(self, lines: List[str]) -> List[Party]:
        """Parties stacked one after another."""
        parties: List[Party] = []
        current = Party()

        for line in lines:
            text = line.strip()

            if INITIALS_PATTERN.match(text) and not FIELD_PATTERN.match(text):
                if not current.is_empty():
                    parties.append(current)
                    current = Party()
                apply_party_line(text, current)
                parties.append(current)
                current = Party()
                continue

            starts_party = (
                (_is_role(text) and not FIELD_PATTERN.match(text)
                    and (current.role or current.line_type is not None))
                or (UNDERSCORE_PATTERN.search(text) and not FIELD_PATTERN.match(text)
                    and current.line_type is not None)
            )
            if starts_party:
                parties.append(current)
                current = Party()

            if not apply_party_line(text, current) and text and current.line_type and not current.name:
                # A bare line under the signature rule names the signer
                current.name = text

        if not current.is_empty():
            parties.append(current)

        return parties

    def _extract_side_by_side_parties(self, lines: List[str]) -> List[Party]:
        """Two parallel parties, split at the column gap from the first labeled line on."""
        before: List[str] = []
        left = Party()
        right = Party()
        in_columns = False

        for line in lines:
            if not in_columns:
                if SIDE_BY_SIDE_PATTERN.match(line) or len(UNDERSCORE_PATTERN.findall(line)) >= 2:
                    in_columns = True
                else:
                    before.append(line)
                    continue

            parts = [p.strip() for p in COLUMN_SPLIT_PATTERN.split(line.strip()) if p.strip()]

            if len(parts) >= 2:
                apply_party_line(parts[0], left)
                apply_party_line(parts[-1], right)
            elif len(parts) == 1:
                indent = len(line) - len(line.lstrip())
                target = right if (line.startswith('\t') or indent >= RIGHT_COLUMN_INDENT) else left
                apply_party_line(parts[0], target)

        parties = self._extract_single_parties(before)
        for party in (left, right):
            if not party.is_empty():
                parties.append(party)

        return parties


def parse_document(text: str) -> ParseResult:
    """Parse text with a default SignatureBlockParser."""
    return SignatureBlockParser().parse_document(text)
