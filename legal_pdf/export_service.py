"""
PDF Export Service - orchestrates one export from raw text to PDF

Stages: initializing -> formatting -> parsing_signatures -> layout ->
rendering -> finalizing -> complete. Each export owns its writer, session
and output; nothing is shared between exports except read-only settings.

Usage:
    service = PdfExportService()
    result = service.export(text, "patent-license-agreement", output_path="license.pdf")
    print(result.page_count, result.warnings)
"""

import logging
import math
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from config.settings import settings

from .exceptions import ExportCancelledError
from .formatter import DocumentFormatter, apply_overrides
from .layout_engine import LayoutEngine
from .marker_parser import SignatureBlockParser
from .models import AutoPaginationEvent, ExportResult
from .outputs import BufferOutput, FileOutput, PdfOutput
from .page_writer import PageWriter
from .progress import (
    STAGE_COMPLETE, STAGE_FINALIZING, STAGE_FORMATTING, STAGE_INITIALIZING,
    STAGE_LAYOUT, STAGE_PARSING_SIGNATURES, STAGE_RENDERING, ProgressCallback,
    ProgressReporter,
)
from .schemas import ExportOptions


logger = logging.getLogger(__name__)


WORDS_PER_MINUTE = 200
LAYOUT_MEASURED_PERCENTAGE = 45

OptionsInput = Union[ExportOptions, Dict[str, Any], None]


class PdfExportService:
    """
    Exports legal documents to PDF.

    Collaborators are injectable so tests can swap them; defaults are built
    from application settings.
    """

    def __init__(
        self,
        formatter: Optional[DocumentFormatter] = None,
        parser: Optional[SignatureBlockParser] = None,
        layout_engine: Optional[LayoutEngine] = None,
    ):
        self.formatter = formatter or DocumentFormatter()
        self.parser = parser or SignatureBlockParser()
        self.layout_engine = layout_engine or LayoutEngine(formatter=self.formatter)

    # ==================== Public API ====================

    def export(
        self,
        text: str,
        document_type: str,
        options: OptionsInput = None,
        output_path: Optional[Union[str, Path]] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[Any] = None,
    ) -> ExportResult:
        """
        Export text to a PDF file (output_path) or an in-memory buffer.

        Args:
            text: Document text with optional Markdown and block markers
            document_type: Legal document type, e.g. "nda-ip-specific"
            options: ExportOptions or a dict validated into one
            output_path: Destination file; None keeps the PDF in memory
            progress_callback: Receives ProgressEvent updates
            cancel_event: Object with is_set(), e.g. threading.Event

        Returns:
            ExportResult with page counts, warnings and the PDF bytes or path

        Raises:
            pydantic.ValidationError: invalid options (before any I/O)
            OSError: the destination cannot be written
            ExportCancelledError: cancel_event was set
        """
        options = self._resolve_options(options)
        started_at = time.perf_counter()
        reporter = ProgressReporter(progress_callback)
        output: PdfOutput = (
            FileOutput(self._resolve_output_path(output_path)) if output_path else BufferOutput()
        )

        logger.info(f"Starting PDF export: type={document_type}, output={output!r}")

        try:
            reporter.report(STAGE_INITIALIZING, "Preparing export")
            self._check_cancelled(cancel_event, STAGE_INITIALIZING)

            reporter.report(STAGE_FORMATTING, f"Applying {document_type} formatting rules")
            rules = apply_overrides(
                self.formatter.get_formatting_rules(document_type), options.rule_overrides()
            )
            self._check_cancelled(cancel_event, STAGE_FORMATTING)

            reporter.report(STAGE_PARSING_SIGNATURES, "Parsing signature blocks")
            parse_result = self.parser.parse_document(text)
            logger.info(f"Found {len(parse_result.signature_blocks)} signature blocks")
            self._check_cancelled(cancel_event, STAGE_PARSING_SIGNATURES)

            reporter.report(STAGE_LAYOUT, "Measuring content")
            page_config = options.to_page_config(rules.margins, rules.page_number_position)
            writer = PageWriter(output, page_config, metadata=self._writer_metadata(options, document_type))

            blocks = self.layout_engine.build_blocks(parse_result, rules, options.parse_markdown)
            header = self.formatter.get_header_content(
                document_type, options.metadata.model_dump(exclude_none=True)
            )
            if header:
                blocks.insert(0, self.layout_engine.header_block(header))

            self.layout_engine.measure_blocks(blocks, writer, rules)
            layout = self.layout_engine.paginate(blocks, document_type, rules, page_config.size)
            reporter.report(
                STAGE_LAYOUT,
                f"Layout predicts {layout.total_pages} pages",
                percentage=LAYOUT_MEASURED_PERCENTAGE,
            )
            self._check_cancelled(cancel_event, STAGE_LAYOUT)

            writer.start()
            reporter.report_rendering(0, layout.total_pages)

            def on_page(page: int):
                self._check_cancelled(cancel_event, STAGE_RENDERING)
                reporter.report_rendering(page - 1, layout.total_pages)

            warnings: List[str] = list(layout.warnings)
            warnings.extend(self.layout_engine.render(blocks, writer, rules, on_page=on_page))
            reporter.report_rendering(writer.current_page, writer.current_page)

            reporter.report(STAGE_FINALIZING, "Writing PDF")
            self._check_cancelled(cancel_event, STAGE_FINALIZING)
            writer.finalize()

        except Exception as e:
            logger.error(f"PDF export failed ({type(e).__name__}): {e}")
            output.discard()
            raise

        session = writer.session
        page_count = session.current_page
        warnings.extend(self._auto_pagination_warning(event) for event in session.auto_pagination_events)
        if page_count > layout.total_pages:
            warnings.append(
                f"Document rendered to {page_count} pages but layout predicted "
                f"{layout.total_pages}; page breaks may differ from the preview"
            )
        warnings = list(dict.fromkeys(warnings))

        word_count = sum(len(line.split()) for line in parse_result.content)
        result = ExportResult(
            page_count=page_count,
            signature_block_count=len(parse_result.signature_blocks),
            predicted_page_count=layout.total_pages,
            buffer=output.getvalue() if isinstance(output, BufferOutput) else None,
            file_path=str(output.path) if isinstance(output, FileOutput) else None,
            warnings=warnings,
            processing_time=time.perf_counter() - started_at,
            word_count=word_count,
            estimated_reading_time=math.ceil(word_count / WORDS_PER_MINUTE),
            metadata={
                'document_type': document_type,
                'title': options.metadata.title,
                'paper_size': page_config.size,
                'line_spacing': rules.line_spacing.value,
                'font_size': rules.font_size,
                'page_numbers': page_config.page_numbers,
                'blank_pages': session.blank_pages,
            },
        )

        reporter.report(STAGE_COMPLETE, f"Generated {page_count} pages")
        logger.info(
            f"PDF export complete: {page_count} pages (predicted {layout.total_pages}), "
            f"{result.signature_block_count} signature blocks, {len(warnings)} warnings, "
            f"{result.processing_time:.2f}s"
        )
        return result

    def export_to_file(self, text: str, document_type: str, output_path: Union[str, Path],
                       **kwargs) -> ExportResult:
        return self.export(text, document_type, output_path=output_path, **kwargs)

    def export_to_buffer(self, text: str, document_type: str, **kwargs) -> ExportResult:
        return self.export(text, document_type, output_path=None, **kwargs)

    # ==================== Helpers ====================

    @staticmethod
    def _resolve_options(options: OptionsInput) -> ExportOptions:
        if options is None:
            return ExportOptions()
        if isinstance(options, ExportOptions):
            return options
        return ExportOptions.model_validate(options)

    @staticmethod
    def _resolve_output_path(output_path: Union[str, Path]) -> Path:
        """Relative paths are placed under settings.output_dir."""
        path = Path(output_path)
        if not path.is_absolute():
            settings.output_dir.mkdir(parents=True, exist_ok=True)
            path = settings.output_dir / path
        return path

    @staticmethod
    def _check_cancelled(cancel_event: Optional[Any], stage: str):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"PDF export cancelled during {stage}")
            raise ExportCancelledError(stage)

    @staticmethod
    def _writer_metadata(options: ExportOptions, document_type: str) -> Dict[str, Any]:
        metadata = options.metadata
        return {
            'title': metadata.title,
            'author': metadata.author,
            'subject': metadata.subject,
            'keywords': metadata.keywords,
            'document_type': document_type,
        }

    @staticmethod
    def _auto_pagination_warning(event: AutoPaginationEvent) -> str:
        return (
            f"Drawing engine added {event.pages_added} page(s) on its own after page "
            f"{event.page_before} ({event.text_length} characters, "
            f"{event.available_height:.0f}pt available)"
        )
