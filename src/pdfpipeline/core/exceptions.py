"""Exception types raised inside the translation pipeline."""

from typing import Any, Optional

from .schemas.job import JobStage


class PipelineError(Exception):
    """Base class for pipeline errors."""


class JobCancelledError(PipelineError):
    """Raised when the job was cancelled from the outside while running."""

    def __init__(self, job_id: str, stage: Optional[JobStage] = None):
        super().__init__(f"Job {job_id} was cancelled")
        self.job_id = job_id
        self.stage = stage


class SourceDocumentError(PipelineError):
    """The source PDF could not be loaded."""


class ProviderError(PipelineError):
    """An external service answered with a non-success response."""

    def __init__(self, provider: str, status_code: int, body: Any = None):
        super().__init__(f"{provider} failed ({status_code}): {body!r}")
        self.provider = provider
        self.status_code = status_code
        self.body = body
