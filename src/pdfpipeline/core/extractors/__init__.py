"""
Extraction layer: document preparation and fallback text extraction.
"""

from .document_preparer import DocumentPreparer, PreparedDocument
from .pdf_text import (
    blueprints_from_page_text,
    build_fallback_pages,
    extract_text_segments,
    normalize_whitespace,
    split_into_blocks,
)

__all__ = [
    'DocumentPreparer',
    'PreparedDocument',
    'blueprints_from_page_text',
    'build_fallback_pages',
    'extract_text_segments',
    'normalize_whitespace',
    'split_into_blocks',
]
