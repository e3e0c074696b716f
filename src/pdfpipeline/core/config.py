"""
Settings - environment driven configuration for the pipeline and API.

Every external service is optional; an empty URL or key means the service
is not configured and the matching provider is passed over.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "PDF Translation Pipeline API"

    # ========== Document preparation ==========
    document_prepare_service_url: str = ""
    document_prepare_service_token: str = ""

    # ========== OCR ==========
    ocr_service_url: str = ""
    ocr_service_token: str = ""
    google_vision_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GOOGLE_VISION_API_KEY", "GOOGLE_API_KEY", "GOOGLE_CLOUD_VISION_KEY"
        ),
    )
    google_vision_url: str = "https://vision.googleapis.com/v1/files:annotate"

    # ========== Translation engines ==========
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    deepl_api_key: str = ""
    deepl_api_url: str = "https://api-free.deepl.com/v2/translate"
    google_translate_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GOOGLE_TRANSLATE_API_KEY", "GOOGLE_API_KEY", "GOOGLE_CLOUD_TRANSLATE_KEY"
        ),
    )
    google_translate_url: str = "https://translation.googleapis.com/language/translate/v2"
    custom_translation_endpoint: str = ""
    custom_translation_token: str = ""
    libre_translate_url: str = ""

    # ========== Rendering ==========
    browser_render_service_url: str = ""
    browser_render_service_token: str = ""
    cf_browser_render_account_id: str = Field(
        default="",
        validation_alias=AliasChoices("CF_BROWSER_RENDER_ACCOUNT_ID", "CLOUDFLARE_ACCOUNT_ID"),
    )
    cf_browser_render_token: str = Field(
        default="",
        validation_alias=AliasChoices("CF_BROWSER_RENDER_TOKEN", "CLOUDFLARE_API_TOKEN"),
    )
    cf_api_base_url: str = "https://api.cloudflare.com/client/v4"

    # ========== Limits ==========
    http_timeout: float = 60.0
    raw_response_limit: int = 2000
    error_message_limit: int = 2000
    max_upload_bytes: int = 75 * 1024 * 1024

    # ========== Storage ==========
    blob_storage_dir: Optional[Path] = None

    # ========== Logging ==========
    log_level: str = "INFO"
    log_file: Optional[Path] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
