"""
Pytest Configuration and Fixtures
"""

from pathlib import Path
from typing import List

import pytest

from legal_pdf.models import PageConfig, PageNumberFormat, NumberFormat
from legal_pdf.outputs import BufferOutput, FileOutput
from legal_pdf.page_writer import PageWriter


SAMPLE_AGREEMENT = """# PATENT LICENSE AGREEMENT

This Patent License Agreement is entered into by **Acme Corp** ("Licensor") and Beta LLC ("Licensee").

## 1. DEFINITIONS

- "Licensed Patents" means the patents listed in Exhibit A.
- "Territory" means the United States.

> Nothing in this Agreement grants rights outside the Territory.

IN WITNESS WHEREOF, the parties have executed this Agreement as of the Effective Date.

[SIGNATURE_BLOCK:licensor-signature]
LICENSOR:
_______________________
Name: Jane Doe
Title: Chief Executive Officer
Date: __________

[SIGNATURE_BLOCK:licensee-signature]
LICENSEE:
_______________________
Name: John Smith
Title: President
Date: __________
"""


@pytest.fixture
def sample_agreement() -> str:
    """Short license agreement with two signature blocks"""
    return SAMPLE_AGREEMENT


@pytest.fixture
def filler_paragraphs():
    """Factory for body text that fills pages"""
    def make(count: int, words: int = 60) -> str:
        paragraph = ' '.join(['consideration'] * words)
        return '\n\n'.join(f"{i}. {paragraph}" for i in range(1, count + 1))
    return make


@pytest.fixture
def page_config() -> PageConfig:
    return PageConfig(
        page_number_format=PageNumberFormat(format=NumberFormat.NUMERIC, prefix="Page "),
    )


@pytest.fixture
def pdf_path(tmp_path) -> Path:
    return tmp_path / "document.pdf"


@pytest.fixture
def buffer_writer(page_config):
    """Started writer on an in-memory buffer"""
    writer = PageWriter(BufferOutput(), page_config, metadata={'title': 'Test Document'})
    writer.start()
    return writer


@pytest.fixture
def file_writer(pdf_path, page_config):
    """Started writer on a file in tmp_path"""
    writer = PageWriter(FileOutput(pdf_path), page_config, metadata={'title': 'Test Document'})
    writer.start()
    return writer


def read_pdf_pages(source) -> List[str]:
    """Text of each page of a PDF given as bytes or a path."""
    fitz = pytest.importorskip("fitz")

    if isinstance(source, (bytes, bytearray)):
        document = fitz.open(stream=bytes(source), filetype="pdf")
    else:
        document = fitz.open(str(source))

    try:
        return [page.get_text() for page in document]
    finally:
        document.close()


@pytest.fixture
def pdf_pages():
    """Helper returning per-page text of a generated PDF"""
    return read_pdf_pages
