"""
Job Manager - job lifecycle around the translation pipeline.
Creates jobs, reports their status, cancels them and serves their artifacts.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .artifacts import attachment_disposition, decode_inline_artifact
from .config import Settings, get_settings
from .pipeline import TranslationPipeline
from .schemas.job import (
    JobResult,
    JobStage,
    JobStatus,
    TranslationJob,
    TranslationRequest,
    new_id,
    utcnow,
)
from .storage import (
    BlobStore,
    BlobStores,
    InMemoryBlobStore,
    InMemoryJobStore,
    JobStore,
    LocalBlobStore,
)

logger = logging.getLogger(__name__)

JOB_CREATED_MESSAGE = "Job created and awaiting processing"
JOB_CANCELLED_BY_USER_MESSAGE = "Job cancelled by user"


class CancelOutcome(str, Enum):
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    ALREADY_FINISHED = "already_finished"


class ArtifactNotReady(Exception):
    """The job has not produced the requested artifact yet."""


@dataclass
class Artifact:
    data: bytes
    content_type: str
    content_disposition: Optional[str] = None


class JobManager:
    """
    Front door to the pipeline for API callers.
    Manages job lifecycle from submission to completion.
    """

    def __init__(self, store: JobStore, blobs: BlobStores, settings: Optional[Settings] = None,
                 pipeline: Optional[TranslationPipeline] = None):
        self.store = store
        self.blobs = blobs
        self.settings = settings or get_settings()
        self.pipeline = pipeline or TranslationPipeline(store, blobs, self.settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "JobManager":
        """
        Build a manager backed by the in-memory job store.

        With `BLOB_STORAGE_DIR` set, sources, previews and outputs are kept on
        disk; otherwise sources stay in memory and artifacts are inlined.
        """
        settings = settings or get_settings()
        if settings.blob_storage_dir:
            root = Path(settings.blob_storage_dir)
            blobs = BlobStores(
                source=LocalBlobStore(root / "sources"),
                previews=LocalBlobStore(root / "previews"),
                outputs=LocalBlobStore(root / "outputs"),
            )
        else:
            blobs = BlobStores(source=InMemoryBlobStore())
        return cls(InMemoryJobStore(), blobs, settings)

    async def submit_job(self, filename: str, file_data: bytes,
                         mime_type: str, request: TranslationRequest) -> TranslationJob:
        """
        Store the source PDF and create a queued job.

        Args:
            filename: Original filename
            file_data: PDF file bytes
            mime_type: MIME type of the file
            request: Translation request parameters

        Returns:
            The created job (not yet processed)
        """
        job_id = new_id("job")
        owner = request.user_id or "anonymous"
        source_key = f"sources/{owner}/{job_id}/{job_id}.pdf"

        await self.blobs.source.put(source_key, file_data, mime_type or "application/pdf")

        job = TranslationJob(
            id=job_id,
            user_id=request.user_id,
            team_id=request.team_id,
            title=request.title,
            source_language=request.source_lang,
            target_language=request.target_lang,
            industry=request.industry,
            glossary_id=request.glossary_id,
            engine_preference=request.engine_preference,
            ocr_enabled=request.ocr_enabled,
            source_file_key=source_key,
            source_file_name=filename,
            source_file_size=len(file_data),
            source_file_mime=mime_type,
        )
        await self.store.create_job(job)
        await self.store.insert_event(job_id, JobStage.PREPARE, JobStatus.QUEUED, JOB_CREATED_MESSAGE)

        logger.info(f"Submitted new job {job_id} for file {filename}")
        return job

    async def run_job(self, job_id: str) -> None:
        await self.pipeline.run(job_id)

    async def get_job(self, job_id: str) -> Optional[TranslationJob]:
        return await self.store.find_job(job_id)

    async def get_job_status(self, job_id: str) -> Optional[JobResult]:
        """
        Get current status of a job.

        Returns:
            JobResult with current status and events, or None if not found
        """
        job = await self.store.find_job(job_id)
        if job is None:
            return None

        return JobResult(
            job_id=job.id,
            status=job.status,
            current_stage=job.current_stage,
            progress=job.progress,
            page_count=job.page_count,
            segment_count=job.segment_count,
            output_file_key=job.output_file_key,
            preview_bundle_key=job.preview_bundle_key,
            error_code=job.error_code,
            error_message=job.error_message,
            events=await self.store.find_events(job_id),
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            cancelled_at=job.cancelled_at,
        )

    async def cancel_job(self, job_id: str) -> CancelOutcome:
        """
        Mark a job cancelled. A running pipeline notices at its next check.
        """
        job = await self.store.find_job(job_id)
        if job is None:
            return CancelOutcome.NOT_FOUND
        if job.is_terminal:
            return CancelOutcome.ALREADY_FINISHED

        now = utcnow()
        await self.store.update_job(job_id, status=JobStatus.CANCELLED, cancelled_at=now, updated_at=now)
        await self.store.insert_event(
            job_id, job.current_stage, JobStatus.CANCELLED, JOB_CANCELLED_BY_USER_MESSAGE,
            meta={"userId": job.user_id} if job.user_id else None,
        )
        logger.info(f"Cancelled job {job_id}")
        return CancelOutcome.CANCELLED

    async def load_output(self, job: TranslationJob) -> Optional[Artifact]:
        """
        Translated PDF of a job.

        Raises:
            ArtifactNotReady: when the job has no output yet

        Returns:
            The artifact, or None when the stored object is missing
        """
        if not job.output_file_key:
            raise ArtifactNotReady(job.id)

        disposition = attachment_disposition(job)
        inline = decode_inline_artifact(job.output_file_key)
        if inline is not None:
            return Artifact(data=inline, content_type="application/pdf", content_disposition=disposition)

        return await _load_stored(self.blobs.outputs, job.output_file_key, "application/pdf", disposition)

    async def load_preview(self, job: TranslationJob) -> Optional[Artifact]:
        if not job.preview_bundle_key:
            raise ArtifactNotReady(job.id)

        inline = decode_inline_artifact(job.preview_bundle_key)
        if inline is not None:
            return Artifact(data=inline, content_type="text/html; charset=utf-8")

        return await _load_stored(self.blobs.previews, job.preview_bundle_key, "text/html; charset=utf-8")


async def _load_stored(store: Optional[BlobStore], key: str, default_type: str,
                       default_disposition: Optional[str] = None) -> Optional[Artifact]:
    if store is None:
        return None
    data = await store.get(key)
    if data is None:
        return None
    metadata = await store.get_metadata(key)
    return Artifact(
        data=data,
        content_type=metadata.get("content_type") or default_type,
        content_disposition=metadata.get("content_disposition") or default_disposition,
    )
