#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from pydantic_settings import BaseSettings


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== Page Defaults ==========
    default_paper_size: str = "LETTER"  # LETTER | LEGAL | A4
    default_font: str = "Times-Roman"
    default_font_size: float = 12
    page_number_font_size: float = 10

    # ========== Pagination ==========
    # Points kept free below a write before forcing a page break
    pagination_slack: float = 50.0
    # Fraction of the usable height the layout predictor fills per page
    layout_safety_ratio: float = 0.95
    # Extra room demanded before placing a signature block on the current page
    signature_safety_pad: float = 20.0

    # ========== Metadata ==========
    default_author: str = "Legal Document Generator"
    default_creator: str = "legal-pdf"

    # ========== Directories ==========
    output_dir: Path = BASE_DIR / "data" / "output"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        env_prefix = "LEGAL_PDF_"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model


# Global settings instance
settings = Settings()
