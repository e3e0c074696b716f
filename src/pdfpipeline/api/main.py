"""
FastAPI Service - PDF Translation Pipeline API
Upload a PDF, follow the job through its stages, download the result.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .. import __version__
from ..core import CancelOutcome, JobManager, JobResult, TranslationRequest
from ..core.config import Settings, get_settings
from ..core.job_manager import Artifact, ArtifactNotReady
from ..core.logging_config import setup_logging
from ..core.schemas.job import JobEvent, TranslationEngine

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = [
    {"code": "en", "name": "English"},
    {"code": "zh", "name": "Chinese"},
    {"code": "es", "name": "Spanish"},
    {"code": "fr", "name": "French"},
    {"code": "de", "name": "German"},
    {"code": "ja", "name": "Japanese"},
    {"code": "ko", "name": "Korean"},
    {"code": "ar", "name": "Arabic"},
    {"code": "ru", "name": "Russian"},
    {"code": "pt", "name": "Portuguese"},
]


# Pydantic models
class JobStatusModel(BaseModel):
    """Job status response"""
    job_id: str
    status: str
    current_stage: str
    progress: int
    message: Optional[str]
    page_count: int
    segment_count: int
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    result_url: Optional[str] = None
    preview_url: Optional[str] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    events: List[JobEvent] = []


class TranslationResponse(BaseModel):
    """Translation job creation response"""
    job_id: str
    status: str
    message: str


class HealthCheck(BaseModel):
    """Health check response"""
    status: str
    version: str
    services: Dict[str, bool]
    timestamp: datetime


def build_status_model(result: JobResult) -> JobStatusModel:
    latest = result.events[-1].message if result.events else None
    return JobStatusModel(
        job_id=result.job_id,
        status=result.status.value,
        current_stage=result.current_stage.value,
        progress=result.progress,
        message=latest,
        page_count=result.page_count,
        segment_count=result.segment_count,
        created_at=result.created_at,
        started_at=result.started_at,
        completed_at=result.completed_at,
        cancelled_at=result.cancelled_at,
        result_url=f"/download/{result.job_id}" if result.output_file_key else None,
        preview_url=f"/preview/{result.job_id}" if result.preview_bundle_key else None,
        error_code=result.error_code,
        error=result.error_message,
        events=result.events,
    )


def configured_services(settings: Settings) -> Dict[str, bool]:
    return {
        "document_prepare": bool(settings.document_prepare_service_url),
        "ocr_custom": bool(settings.ocr_service_url),
        "ocr_google_vision": bool(settings.google_vision_api_key),
        "openai": bool(settings.openai_api_key),
        "deepl": bool(settings.deepl_api_key),
        "google_translate": bool(settings.google_translate_api_key),
        "custom_translation": bool(settings.custom_translation_endpoint),
        "libre_translate": bool(settings.libre_translate_url),
        "browser_render": bool(settings.browser_render_service_url),
        "cloudflare_render": bool(settings.cf_browser_render_account_id and settings.cf_browser_render_token),
    }


def artifact_response(artifact: Artifact) -> Response:
    headers = {}
    if artifact.content_disposition:
        headers["Content-Disposition"] = artifact.content_disposition
    return Response(content=artifact.data, media_type=artifact.content_type, headers=headers)


def create_app(job_manager: Optional[JobManager] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        job_manager: Manager to serve; built from settings when omitted
        settings: Configuration; read from the environment when omitted
    """
    settings = settings or (job_manager.settings if job_manager else get_settings())
    job_manager = job_manager or JobManager.from_settings(settings)

    app = FastAPI(
        title=settings.app_name,
        description="PDF translation with layout reconstruction",
        version=__version__,
    )
    app.state.job_manager = job_manager
    app.state.settings = settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        setup_logging(settings.log_level, settings.log_file)
        logger.info(f"{settings.app_name} starting")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(f"{settings.app_name} shutting down")

    @app.get("/", response_model=Dict[str, str])
    async def root():
        """Root endpoint"""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
        }

    @app.get("/health", response_model=HealthCheck)
    async def health_check():
        """Health check endpoint. Unconfigured providers do not degrade health."""
        return HealthCheck(
            status="healthy",
            version=__version__,
            services={"api": True, "job_manager": True, **configured_services(settings)},
            timestamp=datetime.now(timezone.utc),
        )

    @app.post("/translate", response_model=TranslationResponse)
    async def create_translation_job(
        background_tasks: BackgroundTasks,
        file: UploadFile = File(...),
        target_lang: str = Form(...),
        source_lang: Optional[str] = Form(default=None),
        title: Optional[str] = Form(default=None),
        industry: Optional[str] = Form(default=None),
        glossary_id: Optional[str] = Form(default=None),
        engine_preference: TranslationEngine = Form(default=TranslationEngine.AUTO),
        ocr_enabled: bool = Form(default=False),
        user_id: Optional[str] = Form(default=None),
        team_id: Optional[str] = Form(default=None),
    ):
        """
        Create a new PDF translation job.

        - **file**: PDF file to translate
        - **target_lang**: Target language code (required)
        - **source_lang**: Source language code, omit or 'auto' for detection
        - **engine_preference**: auto, openai, deepl, google or custom
        - **ocr_enabled**: Run OCR for scanned documents
        """
        # Validate file
        if not (file.filename or "").lower().endswith(".pdf"):
            raise HTTPException(status_code=400, detail="Only PDF files are allowed")

        contents = await file.read()
        if not contents:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if len(contents) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB",
            )

        translation_request = TranslationRequest(
            target_lang=target_lang,
            source_lang=source_lang or None,
            title=title or None,
            industry=industry or None,
            glossary_id=glossary_id or None,
            engine_preference=engine_preference,
            ocr_enabled=ocr_enabled,
            user_id=user_id or None,
            team_id=team_id or None,
        )

        job = await job_manager.submit_job(
            filename=file.filename,
            file_data=contents,
            mime_type=file.content_type or "application/pdf",
            request=translation_request,
        )
        background_tasks.add_task(job_manager.run_job, job.id)

        return TranslationResponse(
            job_id=job.id,
            status=job.status.value,
            message="Translation job created successfully",
        )

    @app.get("/jobs/{job_id}", response_model=JobStatusModel)
    async def get_job_status(job_id: str):
        """
        Get translation job status, progress and event log.
        """
        job_result = await job_manager.get_job_status(job_id)
        if not job_result:
            raise HTTPException(status_code=404, detail="Job not found")
        return build_status_model(job_result)

    @app.delete("/jobs/{job_id}")
    async def cancel_job(job_id: str):
        """
        Cancel a translation job.
        """
        outcome = await job_manager.cancel_job(job_id)

        if outcome == CancelOutcome.NOT_FOUND:
            raise HTTPException(status_code=404, detail="Job not found")
        if outcome == CancelOutcome.ALREADY_FINISHED:
            raise HTTPException(status_code=400, detail="Job already finished")

        return {"message": "Job cancelled successfully"}

    @app.get("/download/{job_id}")
    async def download_result(job_id: str):
        """
        Download translated PDF.
        """
        job = await job_manager.get_job(job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")

        try:
            artifact = await job_manager.load_output(job)
        except ArtifactNotReady:
            raise HTTPException(status_code=400, detail="Translation not ready")

        if artifact is None:
            raise HTTPException(status_code=404, detail="Output file not available")
        return artifact_response(artifact)

    @app.get("/preview/{job_id}")
    async def preview_result(job_id: str):
        """
        HTML preview of the translated layout.
        """
        job = await job_manager.get_job(job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")

        try:
            artifact = await job_manager.load_preview(job)
        except ArtifactNotReady:
            raise HTTPException(status_code=400, detail="Preview not ready")

        if artifact is None:
            raise HTTPException(status_code=404, detail="Preview not available")
        return artifact_response(artifact)

    @app.get("/languages")
    async def get_supported_languages() -> Dict[str, Any]:
        """Get list of supported languages"""
        return {
            "source_languages": [{"code": "auto", "name": "Auto-detect"}, *SUPPORTED_LANGUAGES],
            "target_languages": SUPPORTED_LANGUAGES,
            "engines": [engine.value for engine in TranslationEngine],
        }

    # Exception handlers

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
