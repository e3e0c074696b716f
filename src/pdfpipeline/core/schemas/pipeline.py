"""
In-memory pipeline state passed between stage handlers.

Each stage receives the current `PipelineState` and returns a `StageResult`
whose `updates` are merged into a new state by the orchestrator. The state
itself is never mutated in place.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .job import BoundingBox, GlossaryMatch, TranslationEngine

DEFAULT_PAGE_WIDTH = 612
DEFAULT_PAGE_HEIGHT = 792
DEFAULT_FONT_SIZE = 12


@dataclass(frozen=True)
class PreparedPage:
    """A page as seen by the pipeline, before or after persistence."""
    page_number: int
    width: float = DEFAULT_PAGE_WIDTH
    height: float = DEFAULT_PAGE_HEIGHT
    rotation: int = 0
    dpi: Optional[int] = None
    background_data_uri: Optional[str] = None
    background_asset_key: Optional[str] = None
    page_id: Optional[str] = None
    text_content: Optional[str] = None


@dataclass(frozen=True)
class SegmentBlueprint:
    """Unpersisted text block coming from preparation or OCR."""
    page_number: int
    text: str
    block_id: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PipelineSegment:
    id: str
    page_id: str
    page_number: int
    block_id: str
    sequence: int
    source_text: str
    normalized_source_text: str
    bounding_box: Optional[BoundingBox] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class OcrArtifact:
    page_number: int
    page_id: str
    json_key: str


@dataclass(frozen=True)
class GlossaryTerm:
    source: str
    target: str


@dataclass(frozen=True)
class TranslatedSegment:
    segment_id: str
    page_id: str
    page_number: int
    target_text: str
    engine: TranslationEngine
    glossary_matches: Tuple[GlossaryMatch, ...] = ()
    raw_response: Any = None


@dataclass(frozen=True)
class PipelineState:
    source_pdf: Optional[bytes] = None
    pages: Tuple[PreparedPage, ...] = ()
    page_id_by_number: Mapping[int, str] = field(default_factory=dict)
    segment_blueprints: Tuple[SegmentBlueprint, ...] = ()
    segments: Tuple[PipelineSegment, ...] = ()
    translations: Tuple[TranslatedSegment, ...] = ()
    ocr_artifacts: Tuple[OcrArtifact, ...] = ()
    requires_ocr: bool = False
    layout_html: Optional[str] = None
    preview_key: Optional[str] = None
    output_key: Optional[str] = None
    glossary: Tuple[GlossaryTerm, ...] = ()

    def merge(self, updates: Optional[Mapping[str, Any]]) -> "PipelineState":
        """Return a new state with `updates` applied; unknown keys are rejected."""
        if not updates:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise KeyError(f"Unknown pipeline state fields: {sorted(unknown)}")
        normalized = {
            key: tuple(value) if isinstance(value, list) else value
            for key, value in updates.items()
        }
        return replace(self, **normalized)


@dataclass
class StageResult:
    updates: Dict[str, Any] = field(default_factory=dict)
    skipped: bool = False
    skip_reason: Optional[str] = None
    message: Optional[str] = None
    quiet_completion: bool = False


def skipped(reason: str, **updates: Any) -> StageResult:
    return StageResult(updates=updates, skipped=True, skip_reason=reason)


def page_ids(pages: List[PreparedPage]) -> Dict[int, str]:
    return {page.page_number: page.page_id for page in pages if page.page_id}
