"""
Job Store - persistence contract for jobs and their child records.

The pipeline only talks to the abstract `JobStore`; `InMemoryJobStore`
backs the API and the test-suite.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..schemas.job import (
    GlossaryEntry,
    JobEvent,
    JobPage,
    JobStage,
    JobStatus,
    Segment,
    SegmentTranslation,
    TranslationJob,
    utcnow,
)

logger = logging.getLogger(__name__)


class JobNotFoundError(LookupError):
    pass


class JobStore(ABC):
    """Narrow persistence contract consumed by the pipeline."""

    @abstractmethod
    async def create_job(self, job: TranslationJob) -> TranslationJob:
        ...

    @abstractmethod
    async def find_job(self, job_id: str) -> Optional[TranslationJob]:
        ...

    @abstractmethod
    async def update_job(self, job_id: str, **fields: Any) -> TranslationJob:
        ...

    @abstractmethod
    async def insert_event(self, job_id: str, stage: JobStage, status: JobStatus,
                           message: str, meta: Optional[Dict[str, Any]] = None) -> JobEvent:
        ...

    @abstractmethod
    async def replace_pages(self, job_id: str, pages: Sequence[JobPage]) -> None:
        ...

    @abstractmethod
    async def update_page(self, page_id: str, **fields: Any) -> None:
        ...

    @abstractmethod
    async def delete_segments(self, job_id: str) -> None:
        """Delete the job's segments along with their translations."""

    @abstractmethod
    async def replace_segments(self, job_id: str, segments: Sequence[Segment]) -> None:
        ...

    @abstractmethod
    async def replace_translations(self, job_id: str,
                                   translations: Sequence[SegmentTranslation]) -> None:
        ...

    @abstractmethod
    async def load_glossary_entries(self, glossary_id: str) -> List[GlossaryEntry]:
        ...

    async def find_events(self, job_id: str) -> List[JobEvent]:
        """Events of a job in insertion order. Stores without an event log return nothing."""
        return []


class InMemoryJobStore(JobStore):
    """Dictionary backed store. Returned models are copies."""

    def __init__(self):
        self.jobs: Dict[str, TranslationJob] = {}
        self.events: List[JobEvent] = []
        self.pages: Dict[str, List[JobPage]] = {}
        self.segments: Dict[str, List[Segment]] = {}
        self.translations: Dict[str, List[SegmentTranslation]] = {}
        self.glossaries: Dict[str, List[GlossaryEntry]] = {}

    async def create_job(self, job: TranslationJob) -> TranslationJob:
        self.jobs[job.id] = job.model_copy(deep=True)
        return job

    async def find_job(self, job_id: str) -> Optional[TranslationJob]:
        job = self.jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def update_job(self, job_id: str, **fields: Any) -> TranslationJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        fields.setdefault("updated_at", utcnow())
        updated = job.model_copy(update=fields)
        self.jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def insert_event(self, job_id: str, stage: JobStage, status: JobStatus,
                           message: str, meta: Optional[Dict[str, Any]] = None) -> JobEvent:
        event = JobEvent(job_id=job_id, stage=stage, status=status, message=message, meta=meta)
        self.events.append(event)
        logger.debug(f"Job {job_id} event [{stage.value}/{status.value}] {message}")
        return event

    async def replace_pages(self, job_id: str, pages: Sequence[JobPage]) -> None:
        self.pages[job_id] = [page.model_copy(deep=True) for page in pages]

    async def update_page(self, page_id: str, **fields: Any) -> None:
        fields.setdefault("updated_at", utcnow())
        for job_id, pages in self.pages.items():
            for index, page in enumerate(pages):
                if page.id == page_id:
                    pages[index] = page.model_copy(update=fields)
                    return
        raise LookupError(f"Page {page_id} not found")

    async def delete_segments(self, job_id: str) -> None:
        self.segments.pop(job_id, None)
        self.translations.pop(job_id, None)

    async def replace_segments(self, job_id: str, segments: Sequence[Segment]) -> None:
        self.segments[job_id] = [segment.model_copy(deep=True) for segment in segments]

    async def replace_translations(self, job_id: str,
                                   translations: Sequence[SegmentTranslation]) -> None:
        self.translations[job_id] = [item.model_copy(deep=True) for item in translations]

    async def load_glossary_entries(self, glossary_id: str) -> List[GlossaryEntry]:
        return [entry.model_copy() for entry in self.glossaries.get(glossary_id, [])]

    async def find_events(self, job_id: str) -> List[JobEvent]:
        return [event.model_copy() for event in self.list_events(job_id)]

    def add_glossary_entries(self, glossary_id: str, entries: Sequence[GlossaryEntry]) -> None:
        self.glossaries.setdefault(glossary_id, []).extend(entries)

    def list_events(self, job_id: str) -> List[JobEvent]:
        return [event for event in self.events if event.job_id == job_id]

    def list_pages(self, job_id: str) -> List[JobPage]:
        return list(self.pages.get(job_id, []))

    def list_segments(self, job_id: str) -> List[Segment]:
        return list(self.segments.get(job_id, []))

    def list_translations(self, job_id: str) -> List[SegmentTranslation]:
        return list(self.translations.get(job_id, []))
