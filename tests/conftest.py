"""
Pytest configuration and shared fixtures for the translation pipeline tests.
"""

from typing import Callable, Optional

import httpx
import pytest

from pdfpipeline.core.config import Settings
from pdfpipeline.core.schemas.job import TranslationJob
from pdfpipeline.core.storage import BlobStores, InMemoryBlobStore, InMemoryJobStore

SERVICE_ENV_VARS = (
    "DOCUMENT_PREPARE_SERVICE_URL",
    "DOCUMENT_PREPARE_SERVICE_TOKEN",
    "OCR_SERVICE_URL",
    "OCR_SERVICE_TOKEN",
    "GOOGLE_VISION_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_CLOUD_VISION_KEY",
    "GOOGLE_TRANSLATE_API_KEY",
    "GOOGLE_CLOUD_TRANSLATE_KEY",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "DEEPL_API_KEY",
    "DEEPL_API_URL",
    "CUSTOM_TRANSLATION_ENDPOINT",
    "CUSTOM_TRANSLATION_TOKEN",
    "LIBRE_TRANSLATE_URL",
    "BROWSER_RENDER_SERVICE_URL",
    "BROWSER_RENDER_SERVICE_TOKEN",
    "CF_BROWSER_RENDER_ACCOUNT_ID",
    "CLOUDFLARE_ACCOUNT_ID",
    "CF_BROWSER_RENDER_TOKEN",
    "CLOUDFLARE_API_TOKEN",
    "BLOB_STORAGE_DIR",
    "LOG_FILE",
    "MAX_UPLOAD_BYTES",
)

# Uncompressed single page PDF whose content stream shows one sentence pair.
HELLO_PDF = (
    b"%PDF-1.4\n"
    b"1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\n"
    b"2 0 obj << /Type /Pages /Kids [3 0 R] /Count 1 >> endobj\n"
    b"3 0 obj << /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >> endobj\n"
    b"4 0 obj << /Length 58 >> stream\n"
    b"BT /F1 12 Tf 72 720 Td (Hello world. Nice to meet you.) Tj ET\n"
    b"endstream endobj\n"
    b"trailer << /Root 1 0 R >>\n"
    b"%%EOF"
)

SOURCE_KEY = "sources/anonymous/test/source.pdf"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep provider credentials from the host environment out of the tests."""
    for name in SERVICE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)
    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def blobs() -> BlobStores:
    return BlobStores(source=InMemoryBlobStore())


@pytest.fixture
def create_job(store, blobs):
    """Store a source PDF and a queued job referencing it."""
    async def _create(pdf_bytes: Optional[bytes] = HELLO_PDF, **fields) -> TranslationJob:
        fields.setdefault("target_language", "fr")
        fields.setdefault("source_file_key", SOURCE_KEY)
        fields.setdefault("source_file_name", "hello.pdf")
        if pdf_bytes is not None:
            await blobs.source.put(fields["source_file_key"], pdf_bytes, "application/pdf")
        job = TranslationJob(**fields)
        await store.create_job(job)
        return job
    return _create


def offline_handler(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected HTTP request to {request.url}")


@pytest.fixture
def mock_http():
    """Factory for AsyncClients backed by `httpx.MockTransport`."""
    def _make(handler: Callable[[httpx.Request], httpx.Response] = offline_handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
