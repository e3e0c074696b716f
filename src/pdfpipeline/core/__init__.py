"""
Core PDF Translation Pipeline Components.
"""

from .job_manager import CancelOutcome, JobManager
from .pipeline import CancellationToken, TranslationPipeline
from .schemas.job import JobResult, JobStage, JobStatus, TranslationJob, TranslationRequest

__all__ = [
    'CancelOutcome',
    'CancellationToken',
    'JobManager',
    'JobResult',
    'JobStage',
    'JobStatus',
    'TranslationJob',
    'TranslationPipeline',
    'TranslationRequest',
]
