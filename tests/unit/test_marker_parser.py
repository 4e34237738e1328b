#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit Tests for the Signature Block Parser

Tests for:
- Marker detection and id validation
- Block spans and content anchoring
- Party extraction (single, side-by-side, initials, notary)
"""

import pytest

from legal_pdf.marker_parser import (
    SignatureBlockParser, apply_party_line, detect_layout, find_markers,
    is_valid_marker_id, parse_document,
)
from legal_pdf.models import BlockLayout, LineType, MarkerType, Party


class TestMarkerIds:
    """Tests for marker id validation."""

    @pytest.mark.parametrize("marker_id", [
        "a", "assignor-signature", "party1", "licensee-initials-2",
    ])
    def test_valid_ids(self, marker_id):
        assert is_valid_marker_id(marker_id) is True

    @pytest.mark.parametrize("marker_id", [
        "Invalid_ID", "123-start", "", "double--dash", "trailing-", "UPPER",
    ])
    def test_invalid_ids(self, marker_id):
        assert is_valid_marker_id(marker_id) is False

    @pytest.mark.parametrize("marker_id", ["Invalid_ID", "123-start"])
    def test_invalid_id_creates_no_block(self, marker_id):
        """Invalid markers are dropped and their token removed."""
        text = f"Before\n[SIGNATURE_BLOCK:{marker_id}]\nLICENSOR:\n________\n\nAfter"

        result = parse_document(text)

        assert result.signature_blocks == []
        assert result.has_signatures is False
        assert not any('[SIGNATURE_BLOCK:' in line for line in result.content)

    def test_find_markers_types_and_positions(self):
        line = "Sign [INITIALS_BLOCK:p1] and [NOTARY_BLOCK:n-1] [SIGNATURE_BLOCK:Bad_Id]"

        markers, tokens = find_markers(line)

        assert [m.type for m in markers] == [MarkerType.INITIAL, MarkerType.NOTARY]
        assert [m.id for m in markers] == ["p1", "n-1"]
        assert len(tokens) == 3
        assert line[markers[0].start_index:markers[0].end_index] == "[INITIALS_BLOCK:p1]"


class TestContent:
    """Tests for marker-free content."""

    def test_end_to_end_scenario(self):
        """Block lines are removed and order is preserved."""
        text = "Intro\n\n[SIGNATURE_BLOCK:a]\nPARTY:\n_______________________\nName: Jane Doe\n\nOutro"

        result = parse_document(text)

        assert result.content == ["Intro", "", "Outro"]
        assert len(result.signature_blocks) == 1

        block = result.signature_blocks[0]
        assert block.marker.id == "a"
        assert len(block.parties) == 1
        assert block.parties[0].name == "Jane Doe"
        assert block.parties[0].role == "PARTY"
        assert block.parties[0].line_type == LineType.SIGNATURE
        assert block.content_index == 2

    @pytest.mark.parametrize("marker", [
        "[SIGNATURE_BLOCK:x]", "[INITIALS_BLOCK:x]", "[NOTARY_BLOCK:x]",
    ])
    def test_no_raw_markers_in_content(self, marker):
        text = f"Clause one. {marker} Clause two.\n{marker}\nBUYER:\n______\n\nEnd."

        result = parse_document(text)

        for line in result.content:
            assert '[SIGNATURE_BLOCK:' not in line
            assert '[INITIALS_BLOCK:' not in line
            assert '[NOTARY_BLOCK:' not in line

    def test_nested_marker_text_is_fully_stripped(self):
        """Text that only becomes a marker once the inner one is removed is stripped, not parsed."""
        result = parse_document("Clause [SIGNATURE_[SIGNATURE_BLOCK:a]BLOCK:b] end")

        assert result.content == ["Clause  end"]
        assert [b.marker.id for b in result.signature_blocks] == ["a"]
        assert not any('[SIGNATURE_BLOCK:' in line for line in result.content)

    def test_mid_line_marker_keeps_surrounding_text(self):
        result = parse_document("Initial here [INITIALS_BLOCK:page-one] please.")

        assert result.content == ["Initial here  please."]
        assert result.signature_blocks[0].content_index == 1

    def test_text_without_markers_passes_through(self):
        text = "Line one\n\nLine two\n"

        result = parse_document(text)

        assert result.content == ["Line one", "", "Line two", ""]
        assert result.has_signatures is False

    def test_prose_after_marker_is_not_consumed(self):
        result = parse_document("[SIGNATURE_BLOCK:a]\nThe parties agree as follows.")

        assert result.content == ["The parties agree as follows."]
        assert result.signature_blocks[0].parties == []

    def test_section_heading_ends_block(self):
        text = "[SIGNATURE_BLOCK:a]\nASSIGNOR:\n________\nTERMS AND CONDITIONS:\nMore text."

        result = parse_document(text)

        assert result.content == ["TERMS AND CONDITIONS:", "More text."]
        assert len(result.signature_blocks[0].parties) == 1

    def test_numbered_heading_ends_block(self):
        text = "[SIGNATURE_BLOCK:a]\nASSIGNOR:\n________\n2. CONSIDERATION\nText."

        result = parse_document(text)

        assert result.content[0] == "2. CONSIDERATION"


class TestAdjacentMarkers:
    """Tests for isolation between neighbouring blocks."""

    def test_markers_on_consecutive_lines(self):
        text = (
            "[SIGNATURE_BLOCK:x]\nLICENSOR:\n________\nName: Alice\n"
            "[SIGNATURE_BLOCK:y]\nLICENSEE:\n________\nName: Bob\n"
        )

        result = parse_document(text)

        assert [b.marker.id for b in result.signature_blocks] == ["x", "y"]
        x, y = result.signature_blocks
        assert [p.name for p in x.parties] == ["Alice"]
        assert [p.name for p in y.parties] == ["Bob"]

    def test_marker_immediately_followed_by_marker(self):
        text = "[SIGNATURE_BLOCK:x]\n[SIGNATURE_BLOCK:y]\nLICENSEE:\n________\nName: Bob\n\nEnd"

        result = parse_document(text)

        x, y = result.signature_blocks
        assert x.parties == []
        assert [p.name for p in y.parties] == ["Bob"]
        assert result.content == ["End"]

    def test_two_markers_on_one_line(self):
        """The last marker on a line owns the lines below it."""
        text = "[SIGNATURE_BLOCK:x][SIGNATURE_BLOCK:y]\nLICENSEE:\n________\n"

        result = parse_document(text)

        x, y = result.signature_blocks
        assert x.parties == []
        assert y.parties[0].role == "LICENSEE"
        assert x.content_index == y.content_index == 0


class TestPartyExtraction:
    """Tests for party fields and layouts."""

    def test_side_by_side_two_columns(self):
        text = (
            "[SIGNATURE_BLOCK:both-parties]\n"
            "LICENSOR:                    LICENSEE:\n"
            "____________________         ____________________\n"
            "Name: Alice Smith            Name: Bob Jones\n"
            "Title: CEO                   Title: CTO\n"
        )

        block = parse_document(text).signature_blocks[0]

        assert block.layout == BlockLayout.SIDE_BY_SIDE
        assert len(block.parties) == 2
        left, right = block.parties
        assert (left.role, left.name, left.title) == ("LICENSOR", "Alice Smith", "CEO")
        assert (right.role, right.name, right.title) == ("LICENSEE", "Bob Jones", "CTO")

    def test_side_by_side_tab_separated(self):
        text = "[SIGNATURE_BLOCK:tabbed]\nBUYER:\tSELLER:\n______\t______\n"

        block = parse_document(text).signature_blocks[0]

        assert block.layout == BlockLayout.SIDE_BY_SIDE
        assert [p.role for p in block.parties] == ["BUYER", "SELLER"]

    def test_multiple_stacked_parties(self):
        text = (
            "[SIGNATURE_BLOCK:all]\n"
            "ASSIGNOR:\n________\nName: Alice\n"
            "ASSIGNEE:\n________\nName: Bob\n"
        )

        block = parse_document(text).signature_blocks[0]

        assert block.layout == BlockLayout.SINGLE
        assert [(p.role, p.name) for p in block.parties] == [("ASSIGNOR", "Alice"), ("ASSIGNEE", "Bob")]

    def test_initials_party(self):
        block = parse_document("[INITIALS_BLOCK:page-3]\nLICENSEE: ______\n").signature_blocks[0]

        assert block.marker.type == MarkerType.INITIAL
        assert block.parties[0].role == "LICENSEE"
        assert block.parties[0].line_type == LineType.INITIAL

    def test_notary_marker_requires_notary(self):
        text = "[NOTARY_BLOCK:assignor-notary]\nASSIGNOR:\n________\nName: Alice\n"

        block = parse_document(text).signature_blocks[0]

        assert block.notary_required is True
        assert block.parties[0].name == "Alice"

    def test_fields_are_case_insensitive(self):
        party = Party()

        assert apply_party_line("NAME: Alice", party) is True
        assert apply_party_line("title: Director", party) is True

        assert party.name == "Alice"
        assert party.title == "Director"

    def test_blank_date_line_keeps_date_field(self):
        party = Party()

        apply_party_line("Date: __________", party)

        assert party.date == ""

    def test_name_under_signature_rule(self):
        text = "[SIGNATURE_BLOCK:a]\nINVENTOR:\n________\nJane Doe\n"

        block = parse_document(text).signature_blocks[0]

        assert block.parties[0].name == "Jane Doe"

    def test_detect_layout_double_rule_line(self):
        assert detect_layout(["______    ______"]) == BlockLayout.SIDE_BY_SIDE
        assert detect_layout(["LICENSOR:", "______"]) == BlockLayout.SINGLE

    def test_parser_instance_matches_function(self, sample_agreement):
        assert SignatureBlockParser().parse_document(sample_agreement) == parse_document(sample_agreement)

    def test_sample_agreement(self, sample_agreement):
        result = parse_document(sample_agreement)

        assert [b.marker.id for b in result.signature_blocks] == [
            "licensor-signature", "licensee-signature",
        ]
        assert result.signature_blocks[0].parties[0].title == "Chief Executive Officer"
        # Only a blank line separates the two blocks, so both anchor at the same line
        assert result.signature_blocks[0].content_index == result.signature_blocks[1].content_index
