"""
Stage handlers for the translation pipeline.

Each handler receives a `StageContext` and returns a `StageResult`. Handlers
never mutate the pipeline state; they return the fields to replace.
"""

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, List, Sequence

import httpx

from .artifacts import (
    INLINE_HTML_PREFIX,
    INLINE_PDF_PREFIX,
    build_page_asset_key,
    parse_data_uri,
    upload_binary_asset,
    upload_json_artifact,
    upload_output_pdf,
    upload_preview,
)
from .config import Settings
from .exceptions import SourceDocumentError
from .extractors import DocumentPreparer, blueprints_from_page_text
from .ocr import OcrResolver, blueprints_from_ocr
from .reconstruction import PdfRenderer, build_html_layout
from .schemas.job import JobPage, JobStage, JobStatus, TranslationJob, new_id, utcnow
from .schemas.pipeline import (
    OcrArtifact,
    PipelineState,
    PreparedPage,
    StageResult,
    page_ids,
    skipped,
)
from .segmentation import Segmenter, to_segment_record
from .storage import BlobStores, JobStore
from .translation import (
    EngineSelector,
    build_engine_clients,
    determine_engine_order,
    to_translation_record,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineServices:
    """External collaborators used by the stage handlers."""
    preparer: DocumentPreparer
    ocr: OcrResolver
    selector: EngineSelector
    renderer: PdfRenderer

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "PipelineServices":
        return cls(
            preparer=DocumentPreparer(settings, http_client),
            ocr=OcrResolver.from_settings(settings, http_client),
            selector=EngineSelector(build_engine_clients(settings, http_client)),
            renderer=PdfRenderer(settings, http_client),
        )


@dataclass
class StageContext:
    job_id: str
    job: TranslationJob
    store: JobStore
    blobs: BlobStores
    settings: Settings
    services: PipelineServices
    state: PipelineState
    check_cancelled: Callable[[], Awaitable[None]]


async def load_source_pdf(ctx: StageContext) -> bytes:
    if not ctx.job.source_file_key:
        raise SourceDocumentError("Source file key missing")
    data = await ctx.blobs.source.get(ctx.job.source_file_key)
    if data is None:
        raise SourceDocumentError(f"Source PDF not found: {ctx.job.source_file_key}")
    return data


async def persist_pages(ctx: StageContext, pages: Sequence[PreparedPage]) -> List[PreparedPage]:
    """Replace the job's pages and upload decoded background images."""
    persisted: List[PreparedPage] = []
    records: List[JobPage] = []

    for page in pages:
        page_id = new_id("pg")
        background_key = None

        if page.background_data_uri:
            parsed = parse_data_uri(page.background_data_uri)
            if parsed:
                background_key = await upload_binary_asset(
                    ctx.blobs.previews,
                    build_page_asset_key(ctx.job, page.page_number, f"{page_id}.png", "backgrounds"),
                    parsed.data,
                    parsed.content_type,
                )

        records.append(JobPage(
            id=page_id,
            job_id=ctx.job_id,
            page_number=page.page_number,
            width=round(page.width),
            height=round(page.height),
            rotation=page.rotation or 0,
            dpi=page.dpi,
            original_asset_key=ctx.job.source_file_key,
            background_asset_key=background_key,
        ))
        persisted.append(replace(page, page_id=page_id, background_asset_key=background_key))

    await ctx.store.replace_pages(ctx.job_id, records)
    return persisted


async def stage_prepare(ctx: StageContext) -> StageResult:
    pdf_bytes = ctx.state.source_pdf or await load_source_pdf(ctx)
    await ctx.check_cancelled()

    prepared = await ctx.services.preparer.prepare(ctx.job, pdf_bytes, ctx.state.requires_ocr)
    pages = await persist_pages(ctx, prepared.pages)

    return StageResult(
        updates={
            "source_pdf": pdf_bytes,
            "pages": pages,
            "page_id_by_number": page_ids(pages),
            "segment_blueprints": prepared.blueprints,
            "requires_ocr": prepared.requires_ocr,
        },
        message=f"Detected {len(pages)} page(s).",
    )


async def stage_ocr(ctx: StageContext) -> StageResult:
    if not ctx.state.requires_ocr:
        return skipped("OCR not requested", requires_ocr=False)

    pdf_bytes = ctx.state.source_pdf or await load_source_pdf(ctx)
    await ctx.check_cancelled()

    result = await ctx.services.ocr.resolve(ctx.job, pdf_bytes, len(ctx.state.pages))
    if not result or not result.pages:
        return skipped("No OCR provider configured or no OCR data returned",
                       source_pdf=pdf_bytes, requires_ocr=False)

    artifacts: List[OcrArtifact] = []
    for page in result.pages:
        page_id = ctx.state.page_id_by_number.get(page.page_number)
        if not page_id or page.json is None:
            continue
        key = await upload_json_artifact(
            ctx.blobs.previews,
            build_page_asset_key(ctx.job, page.page_number, f"{page_id}-ocr.json", "ocr"),
            page.json,
        )
        if key:
            artifacts.append(OcrArtifact(page_number=page.page_number, page_id=page_id, json_key=key))
            await ctx.store.update_page(page_id, ocr_json_asset_key=key)

    blueprints = [
        blueprint for blueprint in blueprints_from_ocr(result)
        if blueprint.page_number in ctx.state.page_id_by_number
    ]

    return StageResult(
        updates={
            "source_pdf": pdf_bytes,
            "segment_blueprints": blueprints or ctx.state.segment_blueprints,
            "ocr_artifacts": artifacts,
            "requires_ocr": False,
        },
        message=f"OCR completed for {len(artifacts) or len(result.pages)} page(s).",
    )


async def stage_segment(ctx: StageContext) -> StageResult:
    await ctx.store.delete_segments(ctx.job_id)

    blueprints = ctx.state.segment_blueprints or tuple(blueprints_from_page_text(ctx.state.pages))
    if not blueprints:
        return skipped("No textual content detected")

    segmenter = Segmenter(check_cancelled=ctx.check_cancelled)
    segments = await segmenter.build(blueprints, ctx.state.pages, ctx.state.page_id_by_number)
    if not segments:
        return skipped("No segments persisted")

    await ctx.store.replace_segments(
        ctx.job_id,
        [to_segment_record(ctx.job_id, segment, ctx.job.source_language) for segment in segments],
    )

    return StageResult(
        updates={"segments": segments, "segment_blueprints": blueprints},
        message=f"Persisted {len(segments)} segment(s).",
    )


async def stage_translate(ctx: StageContext) -> StageResult:
    if not ctx.state.segments:
        await ctx.store.replace_translations(ctx.job_id, [])
        return skipped("No segments available for translation")

    engine_order = determine_engine_order(ctx.job)
    logger.info(f"Job {ctx.job_id}: engine order {[engine.value for engine in engine_order]}")

    translations = []
    for segment in ctx.state.segments:
        await ctx.check_cancelled()
        translations.append(await ctx.services.selector.translate_segment(
            ctx.job, segment, engine_order, ctx.state.glossary,
        ))

    await ctx.store.replace_translations(
        ctx.job_id,
        [to_translation_record(ctx.job, item, ctx.settings.raw_response_limit) for item in translations],
    )

    engines_used: Dict[str, None] = {}
    for item in translations:
        engines_used.setdefault(item.engine.value, None)

    return StageResult(
        updates={"translations": translations},
        message=f"Translated {len(translations)} segment(s) via {', '.join(engines_used) or 'auto'}.",
    )


async def stage_layout(ctx: StageContext) -> StageResult:
    if not ctx.state.translations:
        return skipped("Translations not ready")

    html = build_html_layout(ctx.state.pages, ctx.state.segments, ctx.state.translations)
    preview_key = await upload_preview(ctx.blobs.previews, ctx.job, html)
    uploaded = not preview_key.startswith(INLINE_HTML_PREFIX)

    return StageResult(
        updates={"layout_html": html, "preview_key": preview_key},
        message="Generated HTML preview and uploaded" if uploaded else "Generated HTML preview",
    )


async def stage_render(ctx: StageContext) -> StageResult:
    html = ctx.state.layout_html or build_html_layout(
        ctx.state.pages, ctx.state.segments, ctx.state.translations,
    )
    translated_text = "\n\n".join(item.target_text for item in ctx.state.translations)

    rendered = await ctx.services.renderer.render(html, translated_text)
    output_key = await upload_output_pdf(ctx.blobs.outputs, ctx.job, rendered.data)
    uploaded = not output_key.startswith(INLINE_PDF_PREFIX)

    return StageResult(
        updates={"output_key": output_key},
        message="Rendered PDF uploaded" if uploaded else "Rendered PDF (local fallback)",
    )


async def stage_publish(ctx: StageContext) -> StageResult:
    now = utcnow()
    await ctx.store.update_job(
        ctx.job_id,
        status=JobStatus.COMPLETED,
        current_stage=JobStage.PUBLISH,
        progress=100,
        completed_at=now,
        updated_at=now,
        output_file_key=ctx.state.output_key or ctx.job.output_file_key,
        preview_bundle_key=ctx.state.preview_key or ctx.job.preview_bundle_key,
        page_count=len(ctx.state.pages),
        segment_count=len(ctx.state.segments),
    )
    await ctx.store.insert_event(ctx.job_id, JobStage.PUBLISH, JobStatus.COMPLETED, "Translation published")
    logger.info(f"Job {ctx.job_id} published")

    return StageResult(quiet_completion=True, message="Job completed")


STAGE_HANDLERS: Dict[JobStage, Callable[[StageContext], Awaitable[StageResult]]] = {
    JobStage.PREPARE: stage_prepare,
    JobStage.OCR: stage_ocr,
    JobStage.SEGMENT: stage_segment,
    JobStage.TRANSLATE: stage_translate,
    JobStage.LAYOUT: stage_layout,
    JobStage.RENDER: stage_render,
    JobStage.PUBLISH: stage_publish,
}
