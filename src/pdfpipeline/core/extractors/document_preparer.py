"""
Document Preparer - obtains page geometry, backgrounds and text blocks.

Uses the external document preparation service when one is configured and
falls back to scanning the raw PDF bytes otherwise.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..artifacts import build_data_uri
from ..config import Settings
from ..geometry import as_float, normalize_bounding_box
from ..http import build_service_headers, raise_for_provider, to_base64
from ..schemas.job import TranslationJob
from ..schemas.pipeline import (
    DEFAULT_PAGE_HEIGHT,
    DEFAULT_PAGE_WIDTH,
    PreparedPage,
    SegmentBlueprint,
)
from .pdf_text import blueprints_from_page_text, build_fallback_pages

logger = logging.getLogger(__name__)


@dataclass
class PreparedDocument:
    """Result of document preparation (pages are not yet persisted)."""
    pages: List[PreparedPage]
    blueprints: List[SegmentBlueprint]
    requires_ocr: bool
    used_service: bool = False
    service_metadata: Dict[str, Any] = field(default_factory=dict)


class DocumentPreparer:
    """
    Turns source PDF bytes into pages and segment blueprints.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    @property
    def service_configured(self) -> bool:
        return bool(self.settings.document_prepare_service_url)

    async def prepare(self, job: TranslationJob, pdf_bytes: bytes,
                      requires_ocr: bool) -> PreparedDocument:
        """
        Prepare the document for segmentation.

        Args:
            job: Job being processed
            pdf_bytes: Source PDF bytes
            requires_ocr: Current OCR flag, may be overridden by the service

        Returns:
            PreparedDocument with pages, blueprints and the resolved OCR flag
        """
        service_result: Optional[Dict[str, Any]] = None
        if self.service_configured:
            try:
                service_result = await self._call_prepare_service(job, pdf_bytes)
            except Exception as e:
                logger.warning(f"Document prepare service failed for job {job.id}: {e}")

        raw_pages = (service_result or {}).get("pages") or []
        if not isinstance(raw_pages, list):
            raw_pages = []

        pages = normalize_prepared_pages(raw_pages)
        blueprints = blueprints_from_service_pages(raw_pages)

        service_requires_ocr = (service_result or {}).get("requiresOcr")
        if isinstance(service_requires_ocr, bool):
            requires_ocr = service_requires_ocr

        used_service = bool(pages)
        if not pages:
            logger.info(f"Job {job.id}: using fallback text extraction")
            pages = build_fallback_pages(pdf_bytes)
            blueprints = blueprints_from_page_text(pages)

        if not blueprints:
            blueprints = blueprints_from_page_text(pages)

        metadata = {}
        if service_result and service_result.get("pageCount") is not None:
            metadata["pageCount"] = service_result.get("pageCount")

        return PreparedDocument(
            pages=pages,
            blueprints=blueprints,
            requires_ocr=requires_ocr,
            used_service=used_service,
            service_metadata=metadata,
        )

    async def _call_prepare_service(self, job: TranslationJob, pdf_bytes: bytes) -> Dict[str, Any]:
        response = await self.http_client.post(
            self.settings.document_prepare_service_url,
            headers=build_service_headers(self.settings.document_prepare_service_token),
            json={
                "jobId": job.id,
                "fileName": job.source_file_name or f"{job.id}.pdf",
                "fileBase64": to_base64(pdf_bytes),
                "ocrPreferred": bool(job.ocr_enabled),
            },
        )
        raise_for_provider("Document prepare service", response)
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Document prepare service returned a non-object payload")
        return payload


def _positive(value: Any, default):
    number = as_float(value)
    return number if number is not None and number > 0 else default


def _page_number(raw: Dict[str, Any], index: int) -> int:
    return int(_positive(raw.get("pageNumber"), index + 1))


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _background_data_uri(background: Any) -> Optional[str]:
    if not isinstance(background, dict):
        return None
    if _text(background.get("dataUri")):
        return background["dataUri"]
    if _text(background.get("data")):
        return build_data_uri(_text(background.get("contentType")) or "image/png", background["data"])
    return None


def normalize_prepared_pages(raw_pages: List[Any]) -> List[PreparedPage]:
    """
    Coerce service pages into `PreparedPage`s.

    Missing or non-numeric values fall back to the defaults instead of failing.
    """
    pages = []
    for index, raw in enumerate(raw_pages):
        raw = raw if isinstance(raw, dict) else {}
        dpi = _positive(raw.get("dpi"), None)
        pages.append(PreparedPage(
            page_number=_page_number(raw, index),
            width=float(_positive(raw.get("width"), DEFAULT_PAGE_WIDTH)),
            height=float(_positive(raw.get("height"), DEFAULT_PAGE_HEIGHT)),
            rotation=int(as_float(raw.get("rotation")) or 0),
            dpi=int(dpi) if dpi else None,
            background_data_uri=_background_data_uri(raw.get("backgroundImage")),
            text_content=_text(raw.get("textContent")),
        ))
    return pages


def blueprints_from_service_pages(raw_pages: List[Any]) -> List[SegmentBlueprint]:
    blueprints = []
    for page_index, raw in enumerate(raw_pages):
        if not isinstance(raw, dict) or not isinstance(raw.get("blocks"), list):
            continue
        page_number = _page_number(raw, page_index)

        for block_index, block in enumerate(raw["blocks"]):
            if not isinstance(block, dict):
                continue
            text = (_text(block.get("text")) or "").strip()
            if not text:
                continue
            blueprints.append(SegmentBlueprint(
                page_number=page_number,
                block_id=str(block.get("blockId") or block.get("id") or f"blk_{page_number}_{block_index}"),
                text=text,
                bounding_box=normalize_bounding_box(block.get("bbox") or block.get("boundingBox")),
                metadata=block.get("metadata") if isinstance(block.get("metadata"), dict) else None,
            ))
    return blueprints
