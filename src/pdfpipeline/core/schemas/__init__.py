from .job import (
    BoundingBox,
    GlossaryEntry,
    GlossaryMatch,
    JobEvent,
    JobPage,
    JobResult,
    JobStage,
    JobStatus,
    Segment,
    SegmentTranslation,
    SegmentType,
    TranslationEngine,
    TranslationJob,
    TranslationRequest,
)
from .pipeline import (
    GlossaryTerm,
    OcrArtifact,
    PipelineSegment,
    PipelineState,
    PreparedPage,
    SegmentBlueprint,
    StageResult,
    TranslatedSegment,
)

__all__ = [
    'BoundingBox',
    'GlossaryEntry',
    'GlossaryMatch',
    'GlossaryTerm',
    'JobEvent',
    'JobPage',
    'JobResult',
    'JobStage',
    'JobStatus',
    'OcrArtifact',
    'PipelineSegment',
    'PipelineState',
    'PreparedPage',
    'Segment',
    'SegmentBlueprint',
    'SegmentTranslation',
    'SegmentType',
    'StageResult',
    'TranslatedSegment',
    'TranslationEngine',
    'TranslationJob',
    'TranslationRequest',
]
