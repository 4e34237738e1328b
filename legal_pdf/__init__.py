# legal_pdf/__init__.py

"""
Legal PDF - print-correct PDFs for legal documents

Signature, initials and notary blocks are kept whole on one page; page
numbers are stamped once per content page in numeric, roman or alpha form.

Usage:
    from legal_pdf import PdfExportService

    result = PdfExportService().export(text, "nda-ip-specific", output_path="nda.pdf")
"""

from .exceptions import ExportCancelledError, LegalPdfError, WriterStateError
from .export_service import PdfExportService
from .formatter import DocumentFormatter
from .layout_engine import LayoutEngine
from .marker_parser import SignatureBlockParser, parse_document
from .models import (
    BlockLayout, ExportResult, LineType, MarkerType, PageConfig, ParseResult,
    Party, SignatureBlock,
)
from .outputs import BufferOutput, FileOutput
from .page_writer import PageWriter, format_page_number, to_alpha, to_roman
from .progress import ProgressEvent
from .schemas import ExportOptions

__all__ = [
    'PdfExportService',
    'ExportOptions',
    'ExportResult',
    'ProgressEvent',
    'SignatureBlockParser',
    'parse_document',
    'ParseResult',
    'SignatureBlock',
    'Party',
    'MarkerType',
    'BlockLayout',
    'LineType',
    'PageWriter',
    'PageConfig',
    'format_page_number',
    'to_roman',
    'to_alpha',
    'LayoutEngine',
    'DocumentFormatter',
    'FileOutput',
    'BufferOutput',
    'LegalPdfError',
    'WriterStateError',
    'ExportCancelledError',
]
__version__ = '1.0.0'
