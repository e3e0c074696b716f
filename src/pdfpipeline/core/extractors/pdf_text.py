"""
Fallback text extraction straight from PDF bytes.

No PDF parsing takes place: the raw bytes are scanned for literal string
text-show operators `(...) Tj`. Compressed content streams yield nothing
and fall through to a printable-character filter over the whole file.
"""

import re
from typing import List, Sequence

from ..geometry import fallback_bounding_box
from ..schemas.pipeline import PreparedPage, SegmentBlueprint

NO_TEXT_PLACEHOLDER = "(no extractable text)"

_TEXT_SHOW = re.compile(r"\(([^()]*)\)\s*Tj")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n]+")
_WHITESPACE = re.compile(r"\s+")
# A period ends a block unless it is part of "..", or followed by a digit ("3.14").
_SENTENCE_BREAK = re.compile(r"(?<!\.)\.(?!\d)")

_ESCAPES = (
    ("\\(", "("),
    ("\\)", ")"),
    ("\\n", "\n"),
    ("\\r", "\r"),
)


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _unescape(value: str) -> str:
    for escaped, plain in _ESCAPES:
        value = value.replace(escaped, plain)
    return value


def extract_text_segments(pdf_bytes: bytes) -> List[str]:
    """Return the text of every `Tj` operator, or a filtered dump of the bytes."""
    raw = pdf_bytes.decode("latin-1")

    matches = []
    for match in _TEXT_SHOW.finditer(raw):
        cleaned = normalize_whitespace(_unescape(match.group(1)))
        if cleaned:
            matches.append(cleaned)

    if matches:
        return matches

    fallback = _NON_PRINTABLE.sub(" ", raw).strip()
    return [fallback] if fallback else [NO_TEXT_PLACEHOLDER]


def split_into_blocks(text: str) -> List[str]:
    """
    Split text into sentence-like blocks, each terminated by a period.

    >>> split_into_blocks("Pi is 3.14. Next")
    ['Pi is 3.14.', 'Next.']
    """
    normalized = normalize_whitespace(text or "")
    if not normalized:
        return []

    parts = [part.strip() for part in _SENTENCE_BREAK.split(normalized)]
    parts = [part for part in parts if part]
    if not parts:
        return [normalized]
    return [part if part.endswith(".") else f"{part}." for part in parts]


def build_fallback_pages(pdf_bytes: bytes) -> List[PreparedPage]:
    """Treat the whole document as one default-sized page."""
    segments = extract_text_segments(pdf_bytes)
    return [PreparedPage(page_number=1, text_content="\n\n".join(segments))]


def blueprints_from_page_text(pages: Sequence[PreparedPage]) -> List[SegmentBlueprint]:
    blueprints = []
    for page in pages:
        for index, block in enumerate(split_into_blocks(page.text_content or "")):
            blueprints.append(SegmentBlueprint(
                page_number=page.page_number,
                block_id=f"page{page.page_number}_block_{index}",
                text=block,
                bounding_box=fallback_bounding_box(index, page),
            ))
    return blueprints
