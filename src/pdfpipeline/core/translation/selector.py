"""
Engine Selector - picks the engine order for a job and translates segments.

Every engine is tried through `try_engine`, which never raises: unconfigured
engines come back as `unavailable`, provider errors as `failed`.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..schemas.job import SegmentTranslation, TranslationEngine, TranslationJob
from ..schemas.pipeline import GlossaryTerm, PipelineSegment, TranslatedSegment
from .engines import EngineClient, EngineReply, EngineRequest
from .glossary import enforce_glossary

logger = logging.getLogger(__name__)

ENGINE_TAIL = (
    TranslationEngine.OPENAI,
    TranslationEngine.DEEPL,
    TranslationEngine.GOOGLE,
    TranslationEngine.CUSTOM,
    TranslationEngine.AUTO,
)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass
class EngineAttempt:
    engine: TranslationEngine
    outcome: AttemptOutcome
    reply: Optional[EngineReply] = None
    error: Optional[str] = None


def determine_engine_order(job: TranslationJob) -> List[TranslationEngine]:
    """
    Preferred engine first, then every other engine, with `auto` always last.

    >>> [e.value for e in determine_engine_order(TranslationJob(target_language="de", source_file_key="k"))]
    ['deepl', 'google', 'openai', 'custom', 'auto']
    """
    order: List[TranslationEngine] = []

    def push(engine: TranslationEngine) -> None:
        if engine not in order:
            order.append(engine)

    preference = TranslationEngine(job.engine_preference or TranslationEngine.AUTO)
    if preference != TranslationEngine.AUTO:
        push(preference)
    else:
        if job.industry:
            push(TranslationEngine.OPENAI)
        push(TranslationEngine.DEEPL)
        push(TranslationEngine.GOOGLE)

    for engine in ENGINE_TAIL:
        push(engine)
    return order


def serialize_raw_response(raw: Any, limit: int) -> Optional[str]:
    if raw is None:
        return None
    return json.dumps(raw, ensure_ascii=False, default=str)[:limit]


class EngineSelector:
    """
    Translates segments one at a time, walking the engine order until an
    engine succeeds. Falls back to the glossary-enforced source text.
    """

    def __init__(self, clients: Mapping[TranslationEngine, EngineClient]):
        self.clients: Dict[TranslationEngine, EngineClient] = dict(clients)

    async def try_engine(self, kind: TranslationEngine, request: EngineRequest) -> EngineAttempt:
        client = self.clients.get(kind)
        if client is None or not client.configured:
            return EngineAttempt(engine=kind, outcome=AttemptOutcome.UNAVAILABLE)

        try:
            reply = await client.translate(request)
        except Exception as e:
            logger.warning(f"Translation engine {kind.value} failed: {e}")
            return EngineAttempt(engine=kind, outcome=AttemptOutcome.FAILED, error=str(e))

        if reply is None:
            return EngineAttempt(engine=kind, outcome=AttemptOutcome.FAILED)
        return EngineAttempt(engine=kind, outcome=AttemptOutcome.SUCCESS, reply=reply)

    async def translate_segment(self, job: TranslationJob, segment: PipelineSegment,
                                engine_order: Sequence[TranslationEngine],
                                glossary: Sequence[GlossaryTerm]) -> TranslatedSegment:
        attempts = list(engine_order) or [TranslationEngine.AUTO]
        text = segment.source_text.strip()

        if not text:
            return self._translated(segment, EngineReply(text="", engine=attempts[0]))

        request = EngineRequest(
            text=text,
            target_language=job.target_language,
            source_language=job.source_language or "auto",
            industry=job.industry,
            glossary=tuple(glossary),
        )

        last_error: Optional[str] = None
        for kind in attempts:
            attempt = await self.try_engine(kind, request)
            if attempt.outcome == AttemptOutcome.SUCCESS:
                return self._translated(segment, attempt.reply)
            if attempt.error:
                last_error = attempt.error

        if last_error:
            logger.warning(f"All translation engines failed for segment {segment.id}, using source text")

        fallback = enforce_glossary(segment.source_text, glossary)
        return self._translated(segment, EngineReply(
            text=fallback.text,
            engine=TranslationEngine.AUTO,
            raw_response={"fallback": True, "reason": last_error or "no-engine"},
            glossary_matches=fallback.matches,
        ))

    @staticmethod
    def _translated(segment: PipelineSegment, reply: EngineReply) -> TranslatedSegment:
        return TranslatedSegment(
            segment_id=segment.id,
            page_id=segment.page_id,
            page_number=segment.page_number,
            target_text=reply.text,
            engine=reply.engine,
            glossary_matches=tuple(reply.glossary_matches),
            raw_response=reply.raw_response,
        )


def to_translation_record(job: TranslationJob, translation: TranslatedSegment,
                          raw_response_limit: int = 2000) -> SegmentTranslation:
    return SegmentTranslation(
        job_id=job.id,
        segment_id=translation.segment_id,
        engine=translation.engine,
        target_locale=job.target_language,
        target_text=translation.target_text,
        raw_response=serialize_raw_response(translation.raw_response, raw_response_limit),
        glossary_matches={"matches": list(translation.glossary_matches)} if translation.glossary_matches else None,
    )
