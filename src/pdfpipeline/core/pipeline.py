"""
Translation Pipeline - runs a job through the seven processing stages.

The pipeline is a single run-to-completion coroutine per job. Progress,
stage transitions and events are written to the job store as it goes;
cancellation is observed by polling the job status.
"""

import logging
from typing import Dict, Optional

import httpx

from .config import Settings, get_settings
from .exceptions import JobCancelledError
from .schemas.job import JobStage, JobStatus, utcnow
from .schemas.pipeline import PipelineState, StageResult
from .stages import STAGE_HANDLERS, PipelineServices, StageContext
from .storage import BlobStores, JobStore
from .translation import load_glossary

logger = logging.getLogger(__name__)

STAGE_SEQUENCE = (
    JobStage.PREPARE,
    JobStage.OCR,
    JobStage.SEGMENT,
    JobStage.TRANSLATE,
    JobStage.LAYOUT,
    JobStage.RENDER,
    JobStage.PUBLISH,
)

STAGE_LABELS: Dict[JobStage, str] = {
    JobStage.PREPARE: "Prepare",
    JobStage.OCR: "OCR",
    JobStage.SEGMENT: "Segment",
    JobStage.TRANSLATE: "Translate",
    JobStage.LAYOUT: "Layout",
    JobStage.RENDER: "Render",
    JobStage.PUBLISH: "Publish",
}

STAGE_START_MESSAGES: Dict[JobStage, str] = {
    JobStage.PREPARE: "Preparing source document",
    JobStage.OCR: "Running OCR for scanned content",
    JobStage.SEGMENT: "Generating translation segments",
    JobStage.TRANSLATE: "Translating text",
    JobStage.LAYOUT: "Reconstructing translated layout",
    JobStage.RENDER: "Rendering translated PDF",
    JobStage.PUBLISH: "Publishing translated artifacts",
}

CANCELLED_MESSAGE = "Job cancelled during processing"
DEFAULT_FAILURE_MESSAGE = "Translation pipeline failed"


def compute_progress(completed_stages: int) -> int:
    """
    Percentage of completed stages.

    >>> [compute_progress(n) for n in range(8)]
    [0, 14, 29, 43, 57, 71, 86, 100]
    """
    return min(100, round(100 * completed_stages / len(STAGE_SEQUENCE)))


def completion_message(stage: JobStage, result: StageResult) -> str:
    if result.message:
        return result.message
    label = STAGE_LABELS[stage]
    if result.skipped:
        return f"{label} skipped: {result.skip_reason}" if result.skip_reason else f"{label} skipped"
    return f"{label} complete"


class CancellationToken:
    """
    Observes external cancellation of a job.

    `stage` is the stage a detected cancellation is attributed to; the
    orchestrator moves it forward as the run progresses.
    """

    def __init__(self, store: JobStore, job_id: str):
        self.store = store
        self.job_id = job_id
        self.stage: Optional[JobStage] = None

    async def is_cancelled(self) -> bool:
        job = await self.store.find_job(self.job_id)
        return job is not None and job.status == JobStatus.CANCELLED

    async def check(self) -> None:
        if await self.is_cancelled():
            raise JobCancelledError(self.job_id, self.stage)


class TranslationPipeline:
    """
    Orchestrates the stage handlers for one job at a time.

    When no `http_client` is supplied, a client is opened for the duration
    of each run with the configured timeout.
    """

    def __init__(self, store: JobStore, blobs: BlobStores, settings: Optional[Settings] = None,
                 http_client: Optional[httpx.AsyncClient] = None,
                 services: Optional[PipelineServices] = None):
        self.store = store
        self.blobs = blobs
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.services = services

    async def run(self, job_id: str) -> None:
        if self.services is not None:
            await self._run(job_id, self.services)
            return

        if self.http_client is not None:
            await self._run(job_id, PipelineServices.from_settings(self.settings, self.http_client))
            return

        async with httpx.AsyncClient(timeout=self.settings.http_timeout) as client:
            await self._run(job_id, PipelineServices.from_settings(self.settings, client))

    async def _run(self, job_id: str, services: PipelineServices) -> None:
        job = await self.store.find_job(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, nothing to run")
            return
        if job.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            logger.info(f"Job {job_id} is {job.status.value}, skipping run")
            return

        glossary = await load_glossary(self.store, job.glossary_id)
        state = PipelineState(
            requires_ocr=bool(job.ocr_enabled),
            preview_key=job.preview_bundle_key,
            output_key=job.output_file_key,
            glossary=tuple(glossary),
        )

        await self.store.update_job(job_id, status=JobStatus.PROCESSING,
                                    started_at=job.started_at or utcnow())
        logger.info(f"Starting pipeline for job {job_id}")

        token = CancellationToken(self.store, job_id)
        ctx = StageContext(
            job_id=job_id,
            job=job,
            store=self.store,
            blobs=self.blobs,
            settings=self.settings,
            services=services,
            state=state,
            check_cancelled=token.check,
        )

        completed_stages = 0
        current_stage = STAGE_SEQUENCE[0]

        try:
            for index, stage in enumerate(STAGE_SEQUENCE):
                current_stage = stage
                token.stage = stage
                await token.check()

                await self.store.update_job(job_id, current_stage=stage, status=JobStatus.PROCESSING)
                await self.store.insert_event(job_id, stage, JobStatus.PROCESSING, STAGE_START_MESSAGES[stage])
                logger.info(f"Job {job_id}: {STAGE_START_MESSAGES[stage]}")

                result = await STAGE_HANDLERS[stage](ctx)
                ctx.state = ctx.state.merge(result.updates)

                if not result.quiet_completion:
                    message = completion_message(stage, result)
                    await self.store.insert_event(job_id, stage, JobStatus.PROCESSING, message)
                    logger.info(f"Job {job_id}: {message}")

                completed_stages += 1
                await self.store.update_job(job_id, progress=compute_progress(completed_stages))

                # A cancellation seen here belongs to the stage about to begin.
                if index + 1 < len(STAGE_SEQUENCE):
                    token.stage = STAGE_SEQUENCE[index + 1]
                await token.check()

        except JobCancelledError as e:
            stage = e.stage or current_stage
            logger.info(f"Job {job_id} cancelled at stage {stage.value}")
            await self.store.insert_event(job_id, stage, JobStatus.CANCELLED, CANCELLED_MESSAGE)

        except Exception as e:
            logger.exception(f"Pipeline failed for job {job_id} at stage {current_stage.value}")
            message = (str(e) or DEFAULT_FAILURE_MESSAGE)[:self.settings.error_message_limit]
            await self.store.update_job(
                job_id,
                status=JobStatus.FAILED,
                current_stage=current_stage,
                error_code=type(e).__name__,
                error_message=message,
            )
            await self.store.insert_event(job_id, current_stage, JobStatus.FAILED, message)
