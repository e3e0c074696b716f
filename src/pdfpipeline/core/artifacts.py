"""
Artifact keys, data URIs and inline artifacts.

When no object store is configured for previews or outputs the bytes are
embedded in the reference string itself (`inline-html:<b64>` /
`inline-pdf:<b64>`), so consumers can serve them without storage.
"""

import base64
import binascii
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from .schemas.job import TranslationJob
from .storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

INLINE_HTML_PREFIX = "inline-html:"
INLINE_PDF_PREFIX = "inline-pdf:"

_DATA_URI = re.compile(r"^data:(.+?);base64,(.+)$", re.DOTALL)


@dataclass(frozen=True)
class DataUri:
    content_type: str
    data: bytes


def parse_data_uri(value: str) -> Optional[DataUri]:
    match = _DATA_URI.match(value or "")
    if not match:
        return None
    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError):
        return None
    return DataUri(content_type=match.group(1), data=data)


def build_data_uri(content_type: str, b64_data: str) -> str:
    return f"data:{content_type};base64,{b64_data}"


def _owner(job: TranslationJob) -> str:
    return job.user_id or "anonymous"


def build_page_asset_key(job: TranslationJob, page_number: int, file_name: str, scope: str) -> str:
    return f"{scope}/{_owner(job)}/{job.id}/page-{page_number}/{file_name}"


def build_job_asset_key(job: TranslationJob, scope: str, extension: str) -> str:
    return f"{scope}/{_owner(job)}/{job.id}/{int(time.time() * 1000)}.{extension}"


def inline_artifact(prefix: str, data: bytes) -> str:
    return prefix + base64.b64encode(data).decode("ascii")


def decode_inline_artifact(reference: str) -> Optional[bytes]:
    """Return the embedded bytes for an inline reference, None for a storage key."""
    for prefix in (INLINE_HTML_PREFIX, INLINE_PDF_PREFIX):
        if reference.startswith(prefix):
            return base64.b64decode(reference[len(prefix):])
    return None


def download_filename(job: TranslationJob) -> str:
    return job.title or job.source_file_name or "translated.pdf"


def attachment_disposition(job: TranslationJob) -> str:
    return f'attachment; filename="{quote(download_filename(job))}"'


async def upload_preview(store: Optional[BlobStore], job: TranslationJob, html: str) -> str:
    payload = html.encode("utf-8")
    if store is None:
        return inline_artifact(INLINE_HTML_PREFIX, payload)

    key = build_job_asset_key(job, "previews", "html")
    try:
        await store.put(key, payload, "text/html; charset=utf-8")
        return key
    except Exception as e:
        logger.warning(f"Failed to upload preview HTML for job {job.id}, using inline artifact: {e}")
        return inline_artifact(INLINE_HTML_PREFIX, payload)


async def upload_output_pdf(store: Optional[BlobStore], job: TranslationJob, data: bytes) -> str:
    if store is None:
        return inline_artifact(INLINE_PDF_PREFIX, data)

    key = build_job_asset_key(job, "outputs", "pdf")
    disposition = attachment_disposition(job)
    try:
        await store.put(key, data, "application/pdf", disposition)
        return key
    except Exception as e:
        logger.warning(f"Failed to upload output PDF for job {job.id}, using inline artifact: {e}")
        return inline_artifact(INLINE_PDF_PREFIX, data)


async def upload_json_artifact(store: Optional[BlobStore], key: str, payload: Any) -> Optional[str]:
    if store is None:
        return None
    body = json.dumps(payload if payload is not None else {}, ensure_ascii=False, default=str)
    await store.put(key, body.encode("utf-8"), "application/json")
    return key


async def upload_binary_asset(store: Optional[BlobStore], key: str, data: bytes,
                              content_type: str) -> Optional[str]:
    if store is None:
        return None
    await store.put(key, data, content_type)
    return key
