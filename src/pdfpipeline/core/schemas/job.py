from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from pydantic import BaseModel, Field
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PREPARING = "preparing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobStage(str, Enum):
    PREPARE = "prepare"
    OCR = "ocr"
    SEGMENT = "segment"
    TRANSLATE = "translate"
    LAYOUT = "layout"
    RENDER = "render"
    PUBLISH = "publish"


class TranslationEngine(str, Enum):
    AUTO = "auto"
    DEEPL = "deepl"
    GOOGLE = "google"
    OPENAI = "openai"
    CUSTOM = "custom"


class SegmentType(str, Enum):
    TEXT = "text"
    TABLE_CELL = "table_cell"
    FIGURE_CAPTION = "figure_caption"
    FOOTNOTE = "footnote"
    OTHER = "other"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float
    rotation: Optional[float] = None


class TranslationRequest(BaseModel):
    """Parameters supplied when a job is created."""
    target_lang: str = Field(..., min_length=2, max_length=16)
    source_lang: Optional[str] = Field(default=None, min_length=2, max_length=16)
    title: Optional[str] = Field(default=None, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=100)
    glossary_id: Optional[str] = None
    engine_preference: TranslationEngine = TranslationEngine.AUTO
    ocr_enabled: bool = False
    user_id: Optional[str] = None
    team_id: Optional[str] = None


class TranslationJob(BaseModel):
    id: str = Field(default_factory=lambda: new_id("job"))
    user_id: Optional[str] = None
    team_id: Optional[str] = None
    title: Optional[str] = None
    source_language: Optional[str] = None
    target_language: str
    industry: Optional[str] = None
    glossary_id: Optional[str] = None
    engine_preference: TranslationEngine = TranslationEngine.AUTO
    ocr_enabled: bool = False
    status: JobStatus = JobStatus.QUEUED
    current_stage: JobStage = JobStage.PREPARE
    progress: int = Field(default=0, ge=0, le=100)
    page_count: int = 0
    segment_count: int = 0
    source_file_key: str
    source_file_name: Optional[str] = None
    source_file_size: int = 0
    source_file_mime: Optional[str] = None
    output_file_key: Optional[str] = None
    preview_bundle_key: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JobPage(BaseModel):
    id: str = Field(default_factory=lambda: new_id("pg"))
    job_id: str
    page_number: int = Field(..., ge=1)
    width: int
    height: int
    rotation: int = 0
    dpi: Optional[int] = None
    original_asset_key: Optional[str] = None
    background_asset_key: Optional[str] = None
    text_layer_asset_key: Optional[str] = None
    ocr_json_asset_key: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Segment(BaseModel):
    id: str = Field(default_factory=lambda: new_id("seg"))
    job_id: str
    page_id: str
    page_number: int
    block_id: str
    sequence: int
    type: SegmentType = SegmentType.TEXT
    source_locale: Optional[str] = None
    source_text: str
    normalized_source_text: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GlossaryMatch(BaseModel):
    source: str
    target: str


class SegmentTranslation(BaseModel):
    id: str = Field(default_factory=lambda: new_id("trn"))
    job_id: str
    segment_id: str
    engine: TranslationEngine
    target_locale: str
    target_text: str
    raw_response: Optional[str] = None
    glossary_matches: Optional[Dict[str, List[GlossaryMatch]]] = None
    review_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class JobEvent(BaseModel):
    id: str = Field(default_factory=lambda: new_id("evt"))
    job_id: str
    stage: JobStage
    status: JobStatus
    message: str
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)


class GlossaryEntry(BaseModel):
    id: str = Field(default_factory=lambda: new_id("gle"))
    glossary_id: str
    source_term: str
    target_term: str
    part_of_speech: Optional[str] = None
    synonyms: Optional[List[str]] = None
    attributes: Optional[Dict[str, Any]] = None


class JobResult(BaseModel):
    """Read model returned to API callers."""
    job_id: str
    status: JobStatus
    current_stage: JobStage
    progress: int
    page_count: int
    segment_count: int
    output_file_key: Optional[str] = None
    preview_bundle_key: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    events: List[JobEvent] = Field(default_factory=list)
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
