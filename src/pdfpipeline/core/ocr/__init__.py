"""
OCR layer: provider chain plus payload normalization.
"""

from .normalizers import (
    OcrPage,
    OcrResult,
    blueprints_from_ocr,
    normalize_external_ocr,
    normalize_google_ocr,
    paragraph_text,
)
from .providers import CustomOcrProvider, GoogleVisionOcrProvider, OcrProvider, OcrResolver

__all__ = [
    'CustomOcrProvider',
    'GoogleVisionOcrProvider',
    'OcrPage',
    'OcrProvider',
    'OcrResolver',
    'OcrResult',
    'blueprints_from_ocr',
    'normalize_external_ocr',
    'normalize_google_ocr',
    'paragraph_text',
]
