"""
Reconstruction layer: HTML layout, PDF rendering and the minimal PDF writer.
"""

from .layout_composer import build_html_layout
from .renderer import PdfRenderer, RenderedPdf
from .simple_pdf import create_simple_pdf, escape_pdf_literal

__all__ = [
    'PdfRenderer',
    'RenderedPdf',
    'build_html_layout',
    'create_simple_pdf',
    'escape_pdf_literal',
]
