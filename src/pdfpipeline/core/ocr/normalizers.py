"""
Normalizers turning provider specific OCR payloads into `OcrResult`.

Both return None when the payload does not have the expected shape so the
resolver can move on to the next provider.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..extractors.pdf_text import split_into_blocks
from ..geometry import bounding_box_from_vertices, normalize_bounding_box
from ..schemas.pipeline import SegmentBlueprint


@dataclass
class OcrPage:
    page_number: int
    json: Any = None
    blocks: Optional[List[Dict[str, Any]]] = None


@dataclass
class OcrResult:
    provider: str
    pages: List[OcrPage] = field(default_factory=list)


def normalize_external_ocr(payload: Any) -> Optional[OcrResult]:
    """Custom OCR service: `{"pages": [{pageNumber|number, json|raw, blocks|segments}]}`."""
    if not isinstance(payload, dict) or not isinstance(payload.get("pages"), list):
        return None

    pages = []
    for index, page in enumerate(payload["pages"]):
        page = page if isinstance(page, dict) else {}
        blocks = page.get("blocks")
        if not isinstance(blocks, list):
            blocks = page.get("segments") if isinstance(page.get("segments"), list) else None

        raw = page.get("json")
        if raw is None:
            raw = page.get("raw")
        if raw is None:
            raw = page

        pages.append(OcrPage(
            page_number=int(page.get("pageNumber") or page.get("number") or index + 1),
            json=raw,
            blocks=blocks,
        ))
    return OcrResult(provider="custom", pages=pages)


def paragraph_text(paragraph: Any) -> str:
    """Words are the concatenation of their symbols, joined by single spaces."""
    if not isinstance(paragraph, dict) or not paragraph.get("words"):
        return ""
    words = [
        "".join((symbol or {}).get("text", "") for symbol in (word or {}).get("symbols") or [])
        for word in paragraph["words"]
    ]
    return " ".join(word for word in words if word)


def _annotation_pages(annotation: Dict[str, Any], first_page_number: int) -> List[OcrPage]:
    pages = []
    for page_index, page in enumerate(annotation.get("pages") or []):
        page_number = first_page_number + page_index
        blocks = []
        for block_index, block in enumerate(page.get("blocks") or []):
            for paragraph_index, paragraph in enumerate(block.get("paragraphs") or []):
                text = paragraph_text(paragraph)
                if not text.strip():
                    continue
                vertices = ((paragraph.get("boundingBox") or {}).get("vertices")) or []
                blocks.append({
                    "text": text,
                    "blockId": f"gcv_{page_number}_{block_index}_{paragraph_index}",
                    "boundingBox": bounding_box_from_vertices(vertices),
                })

        pages.append(OcrPage(
            page_number=int(page.get("pageNumber") or page_number),
            json={
                "confidence": page.get("confidence"),
                "blockCount": len(page.get("blocks") or []),
            },
            blocks=blocks,
        ))
    return pages


def normalize_google_ocr(payload: Any) -> Optional[OcrResult]:
    """
    Google Vision `files:annotate` response.

    Accepts the batch shape `responses[0].fullTextAnnotation` as well as the
    per-file shape `responses[0].responses[]` (one entry per page).
    """
    if not isinstance(payload, dict):
        return None
    responses = payload.get("responses")
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        return None
    first = responses[0]

    if isinstance(first.get("responses"), list) and first["responses"]:
        pages = []
        for index, entry in enumerate(first["responses"]):
            annotation = (entry or {}).get("fullTextAnnotation")
            if not annotation:
                continue
            page_number = ((entry.get("context") or {}).get("pageNumber")) or index + 1
            pages.extend(_annotation_pages(annotation, page_number))
        return OcrResult(provider="google-vision", pages=pages) if pages else None

    annotation = first.get("fullTextAnnotation")
    if not annotation:
        return None

    if not annotation.get("pages"):
        blocks = [
            {"text": entry, "blockId": f"gcv_fallback_{index}"}
            for index, entry in enumerate(split_into_blocks(annotation.get("text") or ""))
        ]
        return OcrResult(provider="google-vision", pages=[OcrPage(page_number=1, json=payload, blocks=blocks)])

    return OcrResult(provider="google-vision", pages=_annotation_pages(annotation, 1))


def blueprints_from_ocr(result: OcrResult) -> List[SegmentBlueprint]:
    blueprints = []
    for page in result.pages:
        for index, block in enumerate(page.blocks or []):
            if not isinstance(block, dict):
                continue
            text = (block.get("text") or "").strip()
            if not text:
                continue
            blueprints.append(SegmentBlueprint(
                page_number=page.page_number,
                block_id=block.get("blockId") or block.get("id") or f"ocr_{page.page_number}_{index}",
                text=text,
                bounding_box=normalize_bounding_box(block.get("boundingBox") or block.get("bbox")),
                metadata=block.get("metadata"),
            ))
    return blueprints
