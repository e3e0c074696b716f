"""
OCR providers and the resolver that chains them.

A provider that is not configured is passed over. A provider that raises or
returns an unexpected payload is logged and the next one is tried.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import httpx

from ..config import Settings
from ..http import build_service_headers, raise_for_provider, to_base64
from ..schemas.job import TranslationJob
from .normalizers import OcrResult, normalize_external_ocr, normalize_google_ocr

logger = logging.getLogger(__name__)


class OcrProvider(ABC):
    name = "ocr"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    @property
    @abstractmethod
    def configured(self) -> bool:
        ...

    @abstractmethod
    async def recognize(self, job: TranslationJob, pdf_bytes: bytes,
                        page_count: int) -> Optional[OcrResult]:
        ...


class CustomOcrProvider(OcrProvider):
    """Self-hosted OCR service reachable at `OCR_SERVICE_URL`."""
    name = "custom"

    @property
    def configured(self) -> bool:
        return bool(self.settings.ocr_service_url)

    async def recognize(self, job: TranslationJob, pdf_bytes: bytes,
                        page_count: int) -> Optional[OcrResult]:
        response = await self.http_client.post(
            self.settings.ocr_service_url,
            headers=build_service_headers(self.settings.ocr_service_token),
            json={
                "jobId": job.id,
                "fileName": job.source_file_name or job.id,
                "fileBase64": to_base64(pdf_bytes),
                "pageCount": page_count,
            },
        )
        raise_for_provider("Custom OCR service", response)
        return normalize_external_ocr(response.json())


class GoogleVisionOcrProvider(OcrProvider):
    """Google Cloud Vision `files:annotate` with DOCUMENT_TEXT_DETECTION."""
    name = "google-vision"

    @property
    def configured(self) -> bool:
        return bool(self.settings.google_vision_api_key)

    async def recognize(self, job: TranslationJob, pdf_bytes: bytes,
                        page_count: int) -> Optional[OcrResult]:
        request_body = {
            "requests": [
                {
                    "inputConfig": {
                        "content": to_base64(pdf_bytes),
                        "mimeType": "application/pdf",
                    },
                    "features": [{"type": "DOCUMENT_TEXT_DETECTION"}],
                }
            ]
        }
        response = await self.http_client.post(
            self.settings.google_vision_url,
            params={"key": self.settings.google_vision_api_key},
            headers={"Content-Type": "application/json"},
            json=request_body,
        )
        raise_for_provider("Google Vision OCR", response)
        return normalize_google_ocr(response.json())


class OcrResolver:
    """Tries each configured provider in order until one yields pages."""

    def __init__(self, providers: Sequence[OcrProvider]):
        self.providers: List[OcrProvider] = list(providers)

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "OcrResolver":
        return cls([
            CustomOcrProvider(settings, http_client),
            GoogleVisionOcrProvider(settings, http_client),
        ])

    async def resolve(self, job: TranslationJob, pdf_bytes: bytes,
                      page_count: int) -> Optional[OcrResult]:
        for provider in self.providers:
            if not provider.configured:
                continue
            try:
                result = await provider.recognize(job, pdf_bytes, page_count)
            except Exception as e:
                logger.warning(f"OCR provider {provider.name} failed for job {job.id}: {e}")
                continue

            if result and result.pages:
                logger.info(f"OCR provider {provider.name} returned {len(result.pages)} page(s) for job {job.id}")
                return result
            logger.warning(f"OCR provider {provider.name} returned no usable pages for job {job.id}")
        return None
