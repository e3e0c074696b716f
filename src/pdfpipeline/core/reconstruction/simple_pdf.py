"""
Minimal single-page PDF writer used when no browser renderer is available.

Text is set in Helvetica at the default font size, one `Tj` per line.
Characters outside latin-1 are replaced with "?".
"""

import re
from typing import List

from ..schemas.pipeline import DEFAULT_FONT_SIZE, DEFAULT_PAGE_HEIGHT, DEFAULT_PAGE_WIDTH

PDF_HEADER = b"%PDF-1.4\n"
TEXT_ORIGIN = (50, 750)
LINE_ADVANCE = DEFAULT_FONT_SIZE + 4

_LINE_BREAK = re.compile(r"\r?\n")


def escape_pdf_literal(value: str) -> str:
    """Escape backslashes and parentheses for a PDF literal string."""
    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _content_stream(text: str) -> bytes:
    lines = [
        "BT",
        f"/F1 {DEFAULT_FONT_SIZE} Tf",
        f"{TEXT_ORIGIN[0]} {TEXT_ORIGIN[1]} Td",
    ]
    for line in _LINE_BREAK.split(text):
        lines.append(f"0 -{LINE_ADVANCE} Td ({escape_pdf_literal(line)}) Tj")
    lines.append("ET")
    return "\n".join(lines).encode("latin-1", errors="replace")


def create_simple_pdf(text: str) -> bytes:
    """
    Build a one page PDF showing `text`.

    Objects are numbered 1..5 (catalog, pages, page, content, font) and the
    cross-reference table lists their byte offsets in that order.
    """
    stream = _content_stream(text or "")
    objects: List[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        (
            f"<< /Type /Page /Parent 2 0 R /Resources << /Font << /F1 5 0 R >> >> "
            f"/MediaBox [0 0 {DEFAULT_PAGE_WIDTH} {DEFAULT_PAGE_HEIGHT}] /Contents 4 0 R >>"
        ).encode("ascii"),
        f"<< /Length {len(stream)} >>\nstream\n".encode("ascii") + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    output = bytearray(PDF_HEADER)
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(output))
        output += f"{number} 0 obj\n".encode("ascii") + body + b"\nendobj\n"

    xref_offset = len(output)
    xref = [f"xref\n0 {len(objects) + 1}\n", "0000000000 65535 f \n"]
    xref.extend(f"{offset:010d} 00000 n \n" for offset in offsets)
    output += "".join(xref).encode("ascii")
    output += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF"
    ).encode("ascii")
    return bytes(output)
