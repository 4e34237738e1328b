"""
Legal PDF Export Pydantic Schemas
Validation for caller-supplied export options.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from .models import Margins, NumberFormat, PageConfig, PageNumberFormat, PageNumberPosition


# ==================== OPTION SCHEMAS ====================

class MarginsSchema(BaseModel):
    """Page margins in points. Missing sides keep the document type's values."""
    top: Optional[float] = Field(None, ge=0, le=200)
    bottom: Optional[float] = Field(None, ge=0, le=200)
    left: Optional[float] = Field(None, ge=0, le=200)
    right: Optional[float] = Field(None, ge=0, le=200)


class PageNumberFormatSchema(BaseModel):
    """Page number label format"""
    format: Literal["numeric", "roman", "alpha"] = "numeric"
    prefix: str = Field(default="", max_length=20)
    suffix: str = Field(default="", max_length=20)
    font_size: float = Field(10, ge=6, le=18)


class DocumentMetadata(BaseModel):
    """PDF document info"""
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    application_number: Optional[str] = None  # Office action header
    response_date: Optional[str] = None


class ExportOptions(BaseModel):
    """Options for one PDF export. None means use the document type's rule."""
    font_size: Optional[float] = Field(None, ge=8, le=24)
    line_spacing: Optional[Literal["single", "one-half", "double"]] = None
    margins: Optional[MarginsSchema] = None
    paper_size: Literal["letter", "legal", "a4"] = "letter"
    page_numbers: bool = True
    page_number_position: Optional[Literal["bottom-left", "bottom-center", "bottom-right"]] = None
    page_number_format: PageNumberFormatSchema = Field(default_factory=PageNumberFormatSchema)
    parse_markdown: bool = True
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    def rule_overrides(self) -> Dict[str, Any]:
        """Overrides for DocumentFormattingRules, skipping unset fields."""
        overrides: Dict[str, Any] = {}
        if self.font_size is not None:
            overrides['font_size'] = self.font_size
        if self.line_spacing is not None:
            overrides['line_spacing'] = self.line_spacing
        if self.page_number_position is not None:
            overrides['page_number_position'] = self.page_number_position
        if self.margins is not None:
            sides = self.margins.model_dump(exclude_none=True)
            if sides:
                overrides['margins'] = sides
        return overrides

    def to_page_config(self, margins: Margins, position: PageNumberPosition) -> PageConfig:
        """Page setup for the writer, given the resolved margins and number position."""
        return PageConfig(
            size=self.paper_size.upper(),
            margins=margins,
            page_numbers=self.page_numbers,
            page_number_position=position,
            page_number_format=PageNumberFormat(
                format=NumberFormat(self.page_number_format.format),
                prefix=self.page_number_format.prefix,
                suffix=self.page_number_format.suffix,
                font_size=self.page_number_format.font_size,
            ),
        )
