#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit Tests for the PDF Export Service

Tests for:
- Buffer and file exports
- Option validation and I/O failures
- Cancellation and partial file cleanup
- Progress stages
- Signature blocks kept on one page
- Auto-pagination warnings
"""

import threading

import pytest
from pydantic import ValidationError

from config.settings import settings

from legal_pdf.exceptions import ExportCancelledError
from legal_pdf.export_service import PdfExportService
from legal_pdf.progress import (
    STAGE_COMPLETE, STAGE_FINALIZING, STAGE_FORMATTING, STAGE_INITIALIZING,
    STAGE_LAYOUT, STAGE_PARSING_SIGNATURES, STAGE_RENDERING,
)
from legal_pdf.schemas import ExportOptions


DOCUMENT_TYPE = "patent-license-agreement"

STAGE_ORDER = [
    STAGE_INITIALIZING,
    STAGE_FORMATTING,
    STAGE_PARSING_SIGNATURES,
    STAGE_LAYOUT,
    STAGE_RENDERING,
    STAGE_FINALIZING,
    STAGE_COMPLETE,
]


@pytest.fixture
def service():
    return PdfExportService()


class TestExport:
    """Tests for basic exports."""

    def test_buffer_export(self, service, sample_agreement):
        result = service.export_to_buffer(sample_agreement, DOCUMENT_TYPE)

        assert result.buffer.startswith(b"%PDF")
        assert result.file_path is None
        assert result.page_count >= 1
        assert result.signature_block_count == 2
        assert result.metadata['document_type'] == DOCUMENT_TYPE
        assert result.metadata['blank_pages'] == []

    def test_file_export(self, service, sample_agreement, pdf_path):
        result = service.export_to_file(sample_agreement, DOCUMENT_TYPE, pdf_path)

        assert result.buffer is None
        assert result.file_path == str(pdf_path)
        assert pdf_path.read_bytes().startswith(b"%PDF")

    def test_relative_path_uses_output_dir(self, service, sample_agreement, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "output_dir", tmp_path / "exports")

        result = service.export_to_file(sample_agreement, DOCUMENT_TYPE, "license.pdf")

        assert result.file_path == str(tmp_path / "exports" / "license.pdf")
        assert (tmp_path / "exports" / "license.pdf").exists()

    def test_word_count_and_reading_time(self, service, filler_paragraphs):
        result = service.export_to_buffer(filler_paragraphs(5, words=100), DOCUMENT_TYPE)

        assert result.word_count == 505  # 100 words + the paragraph number each
        assert result.estimated_reading_time == 3

    def test_options_as_model(self, service, sample_agreement):
        options = ExportOptions(paper_size="legal", line_spacing="double")

        result = service.export_to_buffer(sample_agreement, DOCUMENT_TYPE, options=options)

        assert result.metadata['paper_size'] == "LEGAL"
        assert result.metadata['line_spacing'] == "double"

    def test_page_number_labels(self, service, sample_agreement, pdf_pages):
        result = service.export_to_buffer(
            sample_agreement, DOCUMENT_TYPE,
            options={'page_number_format': {'prefix': 'Page '}},
        )

        assert "Page 1" in pdf_pages(result.buffer)[0]

    def test_page_numbers_disabled(self, service, sample_agreement, pdf_pages):
        result = service.export_to_buffer(
            sample_agreement, DOCUMENT_TYPE,
            options={'page_numbers': False, 'page_number_format': {'prefix': 'Page '}},
        )

        assert "Page 1" not in pdf_pages(result.buffer)[0]
        assert result.metadata['page_numbers'] is False

    def test_office_action_header(self, service, pdf_pages):
        text = "REMARKS\n\nClaims 1-20 are pending in the application."

        result = service.export_to_buffer(
            text, "office-action-response",
            options={'metadata': {'application_number': '16/123,456', 'response_date': 'March 1, 2024'}},
        )

        first_page = pdf_pages(result.buffer)[0]
        assert "Application No.: 16/123,456" in first_page
        assert "Response Date: March 1, 2024" in first_page

    def test_markers_not_in_output(self, service, sample_agreement, pdf_pages):
        result = service.export_to_buffer(sample_agreement, DOCUMENT_TYPE)

        text = "\n".join(pdf_pages(result.buffer))
        assert "[SIGNATURE_BLOCK" not in text
        assert "licensor-signature" not in text


class TestErrors:
    """Tests for validation, I/O and cancellation failures."""

    @pytest.mark.parametrize("options", [
        {'font_size': 100},
        {'paper_size': 'tabloid'},
        {'margins': {'left': -5}},
    ])
    def test_invalid_options_raise_before_io(self, service, sample_agreement, pdf_path, options):
        with pytest.raises(ValidationError):
            service.export_to_file(sample_agreement, DOCUMENT_TYPE, pdf_path, options=options)

        assert not pdf_path.exists()

    def test_missing_directory_raises_oserror(self, service, sample_agreement, tmp_path):
        path = tmp_path / "missing" / "out.pdf"

        with pytest.raises(OSError):
            service.export_to_file(sample_agreement, DOCUMENT_TYPE, path)

        assert not path.exists()

    def test_cancel_before_start(self, service, sample_agreement, pdf_path):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ExportCancelledError) as exc_info:
            service.export_to_file(sample_agreement, DOCUMENT_TYPE, pdf_path, cancel_event=cancel)

        assert exc_info.value.stage == STAGE_INITIALIZING
        assert not pdf_path.exists()

    def test_cancel_during_rendering_removes_partial_file(self, service, filler_paragraphs, pdf_path):
        cancel = threading.Event()

        def on_progress(event):
            if event.stage == STAGE_RENDERING:
                cancel.set()

        with pytest.raises(ExportCancelledError) as exc_info:
            service.export_to_file(
                filler_paragraphs(40), DOCUMENT_TYPE, pdf_path,
                progress_callback=on_progress, cancel_event=cancel,
            )

        assert exc_info.value.stage in (STAGE_RENDERING, STAGE_FINALIZING)
        assert not pdf_path.exists()


class TestProgress:
    """Tests for progress events during an export."""

    def test_stages_in_order(self, service, sample_agreement):
        events = []

        service.export_to_buffer(sample_agreement, DOCUMENT_TYPE, progress_callback=events.append)

        stages = [STAGE_ORDER.index(e.stage) for e in events]
        percentages = [e.percentage for e in events]
        assert stages == sorted(stages)
        assert percentages == sorted(percentages)
        assert events[0].stage == STAGE_INITIALIZING
        assert events[-1].stage == STAGE_COMPLETE
        assert events[-1].percentage == 100
        assert {e.stage for e in events} == set(STAGE_ORDER)

    def test_rendering_progress_per_page(self, service, filler_paragraphs):
        events = []

        result = service.export_to_buffer(filler_paragraphs(30), DOCUMENT_TYPE, progress_callback=events.append)

        rendering = [e for e in events if e.stage == STAGE_RENDERING]
        assert result.page_count > 1
        assert len(rendering) >= result.page_count


class TestSignatureBlocks:
    """Tests for keeping signature blocks whole."""

    @pytest.mark.parametrize("filler_count", [0, 3, 6, 7, 8, 9, 12, 15])
    def test_signature_blocks_on_one_page(self, service, sample_agreement, filler_paragraphs,
                                          pdf_pages, filler_count):
        text = filler_paragraphs(filler_count) + "\n\n" + sample_agreement if filler_count else sample_agreement

        result = service.export_to_buffer(text, DOCUMENT_TYPE)
        pages = pdf_pages(result.buffer)

        for name, role, title in (
            ("Name: Jane Doe", "LICENSOR:", "Title: Chief Executive Officer"),
            ("Name: John Smith", "LICENSEE:", "Title: President"),
        ):
            holding = [page for page in pages if name in page]
            assert len(holding) == 1
            assert role in holding[0]
            assert title in holding[0]
            assert "Date:" in holding[0]
            assert not any(role in page for page in pages if page is not holding[0])

        assert result.metadata['blank_pages'] == []
        assert not any("Drawing engine added" in w for w in result.warnings)

    def test_side_by_side_export(self, service, pdf_pages):
        text = (
            "AGREED AND ACCEPTED\n\n"
            "[SIGNATURE_BLOCK:both-parties]\n"
            "ASSIGNOR:              ASSIGNEE:\n"
            "______________         ______________\n"
            "Name: Alice Smith      Name: Bob Jones\n"
            "Date: ________         Date: ________\n"
        )

        result = service.export_to_buffer(text, "patent-assignment-agreement")

        page = pdf_pages(result.buffer)[0]
        assert result.signature_block_count == 1
        assert "Name: Alice Smith" in page
        assert "Name: Bob Jones" in page

    def test_notary_block(self, service, pdf_pages):
        text = "The assignor appeared before me.\n\n[NOTARY_BLOCK:ack]\nASSIGNOR:\n________\nName: Alice Smith\n"

        result = service.export_to_buffer(text, "patent-assignment-agreement")

        page = pdf_pages(result.buffer)[0]
        assert "Notary Public" in page
        assert "STATE OF" in page


class TestWarnings:
    """Tests for export warnings."""

    def test_auto_pagination_reported(self, service):
        text = "**Whereas** " + "lorem ipsum " * 1500

        result = service.export_to_buffer(text, DOCUMENT_TYPE)

        assert result.page_count > 1
        assert any("Drawing engine added" in w for w in result.warnings)
        assert len(result.warnings) == len(set(result.warnings))

    def test_clean_document_has_no_warnings(self, service, sample_agreement):
        result = service.export_to_buffer(sample_agreement, DOCUMENT_TYPE)

        assert result.warnings == []
        assert result.has_warnings is False
