"""
Segmenter - turns blueprints into persisted, sequenced segments.
"""

import logging
from typing import Awaitable, Callable, List, Mapping, Optional, Sequence

from ..extractors.pdf_text import normalize_whitespace
from ..geometry import clamp_bounding_box
from ..schemas.job import Segment, SegmentType, new_id
from ..schemas.pipeline import PipelineSegment, PreparedPage, SegmentBlueprint

logger = logging.getLogger(__name__)

CANCELLATION_CHECK_INTERVAL = 50


class Segmenter:
    """
    Assigns ids, sequence numbers and clamped boxes to blueprints.

    Blueprints pointing at an unknown page or carrying only whitespace are
    dropped. Sequence numbers are contiguous over the kept blueprints.
    """

    def __init__(self, check_cancelled: Optional[Callable[[], Awaitable[None]]] = None):
        self.check_cancelled = check_cancelled

    async def build(self, blueprints: Sequence[SegmentBlueprint], pages: Sequence[PreparedPage],
                    page_id_by_number: Mapping[int, str]) -> List[PipelineSegment]:
        pages_by_number = {page.page_number: page for page in pages}
        segments: List[PipelineSegment] = []
        sequence = 0

        for blueprint in blueprints:
            page_id = page_id_by_number.get(blueprint.page_number)
            if not page_id:
                continue
            source_text = (blueprint.text or "").strip()
            if not source_text:
                continue

            box = blueprint.bounding_box
            if box is not None:
                box = clamp_bounding_box(box, pages_by_number.get(blueprint.page_number))

            segments.append(PipelineSegment(
                id=new_id("seg"),
                page_id=page_id,
                page_number=blueprint.page_number,
                block_id=blueprint.block_id or f"block_{blueprint.page_number}_{sequence}",
                sequence=sequence,
                source_text=source_text,
                normalized_source_text=normalize_whitespace(source_text),
                bounding_box=box,
                metadata=blueprint.metadata,
            ))

            sequence += 1
            if self.check_cancelled and sequence % CANCELLATION_CHECK_INTERVAL == 0:
                await self.check_cancelled()

        logger.debug(f"Built {len(segments)} segment(s) from {len(blueprints)} blueprint(s)")
        return segments


def to_segment_record(job_id: str, segment: PipelineSegment,
                      source_locale: Optional[str] = None) -> Segment:
    return Segment(
        id=segment.id,
        job_id=job_id,
        page_id=segment.page_id,
        page_number=segment.page_number,
        block_id=segment.block_id,
        sequence=segment.sequence,
        type=SegmentType.TEXT,
        source_locale=source_locale,
        source_text=segment.source_text,
        normalized_source_text=segment.normalized_source_text,
        bounding_box=segment.bounding_box,
        metadata=segment.metadata,
    )
