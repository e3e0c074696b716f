"""
Translation Engines - httpx clients for the supported machine translation APIs.

Each client reports whether it is configured and returns an `EngineReply`
(or None when the provider answered with an empty translation). Non-success
HTTP responses raise `ProviderError`.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import Settings
from ..http import build_service_headers, raise_for_provider
from ..schemas.job import TranslationEngine
from ..schemas.pipeline import GlossaryTerm
from .glossary import enforce_glossary

logger = logging.getLogger(__name__)


@dataclass
class EngineRequest:
    """Translation request data."""
    text: str
    target_language: str
    source_language: Optional[str] = None
    industry: Optional[str] = None
    glossary: Sequence[GlossaryTerm] = field(default_factory=tuple)

    @property
    def explicit_source(self) -> Optional[str]:
        """Source language, or None when it should be detected."""
        if self.source_language and self.source_language != "auto":
            return self.source_language
        return None


@dataclass
class EngineReply:
    """Translation response data (glossary already enforced)."""
    text: str
    engine: TranslationEngine
    raw_response: Any = None
    glossary_matches: List[Any] = field(default_factory=list)


def _reply(output: str, engine: TranslationEngine, request: EngineRequest, raw: Any) -> EngineReply:
    enforced = enforce_glossary(output, request.glossary)
    return EngineReply(
        text=enforced.text,
        engine=engine,
        raw_response=raw,
        glossary_matches=enforced.matches,
    )


class EngineClient(ABC):
    engine = TranslationEngine.AUTO

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client

    @property
    @abstractmethod
    def configured(self) -> bool:
        ...

    @abstractmethod
    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        ...


class OpenAIEngine(EngineClient):
    """
    Chat completions client. Industry and glossary are passed as system
    prompt directives.
    """
    engine = TranslationEngine.OPENAI

    @property
    def configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    def _system_prompt(self, request: EngineRequest) -> str:
        parts = ["You are a professional PDF translation assistant."]
        if request.industry:
            parts.append(f"Translate using terminology appropriate for the {request.industry} industry.")
        if request.glossary:
            replacements = "; ".join(f"{term.source} -> {term.target}" for term in request.glossary)
            parts.append(f"Enforce the following terminology replacements where appropriate: {replacements}.")
        parts.append("Return only the translated text without additional commentary.")
        return " ".join(parts)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        request_data = {
            "model": self.settings.openai_model,
            "messages": [
                {"role": "system", "content": self._system_prompt(request)},
                {"role": "user", "content": request.text},
            ],
        }
        response = await self.http_client.post(
            f"{self.settings.openai_base_url.rstrip('/')}/chat/completions",
            headers=build_service_headers(self.settings.openai_api_key),
            json=request_data,
        )
        raise_for_provider("OpenAI translation", response)

        result = response.json()
        choices = result.get("choices") or []
        content = ((choices[0].get("message") or {}).get("content") or "").strip() if choices else ""
        if not content:
            return None
        return _reply(content, self.engine, request, {"id": result.get("id"), "model": result.get("model")})


class DeepLEngine(EngineClient):
    engine = TranslationEngine.DEEPL

    @property
    def configured(self) -> bool:
        return bool(self.settings.deepl_api_key)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        form = {
            "text": request.text,
            "target_lang": request.target_language.upper(),
        }
        if request.explicit_source:
            form["source_lang"] = request.explicit_source.upper()

        response = await self.http_client.post(
            self.settings.deepl_api_url,
            headers={"Authorization": f"DeepL-Auth-Key {self.settings.deepl_api_key}"},
            data=form,
        )
        raise_for_provider("DeepL translation", response)

        translations = response.json().get("translations") or []
        first = translations[0] if translations else {}
        output = (first.get("text") or "").strip()
        if not output:
            return None
        return _reply(output, self.engine, request,
                      {"detectedSourceLanguage": first.get("detected_source_language")})


class GoogleTranslateEngine(EngineClient):
    engine = TranslationEngine.GOOGLE

    @property
    def configured(self) -> bool:
        return bool(self.settings.google_translate_api_key)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        body: Dict[str, Any] = {
            "q": request.text,
            "target": request.target_language,
            "format": "text",
        }
        if request.explicit_source:
            body["source"] = request.explicit_source

        response = await self.http_client.post(
            self.settings.google_translate_url,
            params={"key": self.settings.google_translate_api_key},
            json=body,
        )
        raise_for_provider("Google Translate", response)

        translations = (response.json().get("data") or {}).get("translations") or []
        first = translations[0] if translations else {}
        output = first.get("translatedText") or ""
        if not output:
            return None
        return _reply(output, self.engine, request,
                      {"detectedSourceLanguage": first.get("detectedSourceLanguage")})


class CustomEndpointEngine(EngineClient):
    engine = TranslationEngine.CUSTOM

    @property
    def configured(self) -> bool:
        return bool(self.settings.custom_translation_endpoint)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        response = await self.http_client.post(
            self.settings.custom_translation_endpoint,
            headers=build_service_headers(self.settings.custom_translation_token),
            json={
                "text": request.text,
                "sourceLanguage": request.source_language,
                "targetLanguage": request.target_language,
                "industry": request.industry,
                "glossary": [{"source": term.source, "target": term.target} for term in request.glossary],
            },
        )
        raise_for_provider("Custom translation endpoint", response)

        result = response.json()
        output = (result.get("translation") or result.get("text") or "").strip()
        if not output:
            return None
        return _reply(output, self.engine, request, result)


class LibreTranslateEngine(EngineClient):
    """LibreTranslate instance; only reachable through the `auto` engine."""
    engine = TranslationEngine.AUTO

    @property
    def configured(self) -> bool:
        return bool(self.settings.libre_translate_url)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        response = await self.http_client.post(
            f"{self.settings.libre_translate_url.rstrip('/')}/translate",
            json={
                "q": request.text,
                "source": request.explicit_source or "auto",
                "target": request.target_language,
                "format": "text",
            },
        )
        if not response.is_success:
            logger.warning(f"LibreTranslate returned {response.status_code}")
            return None

        result = response.json()
        output = (result.get("translatedText") or "").strip()
        if not output:
            return None
        return _reply(output, self.engine, request, result)


class AutoEngine(EngineClient):
    """
    Chains the configured commercial engines, then LibreTranslate.

    The reply carries the engine that actually answered.
    """
    engine = TranslationEngine.AUTO

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient,
                 chain: Optional[Sequence[EngineClient]] = None):
        super().__init__(settings, http_client)
        self.chain = list(chain) if chain is not None else [
            OpenAIEngine(settings, http_client),
            DeepLEngine(settings, http_client),
            GoogleTranslateEngine(settings, http_client),
            LibreTranslateEngine(settings, http_client),
        ]

    @property
    def configured(self) -> bool:
        return any(client.configured for client in self.chain)

    async def translate(self, request: EngineRequest) -> Optional[EngineReply]:
        last_error: Optional[Exception] = None
        for client in self.chain:
            if not client.configured:
                continue
            try:
                reply = await client.translate(request)
            except Exception as e:
                logger.warning(f"Auto engine: {client.engine.value} failed, trying next: {e}")
                last_error = e
                continue
            if reply:
                return reply

        # No engine answered; surface the last error so the attempt reads as failed
        if last_error is not None:
            raise last_error
        return None


def build_engine_clients(settings: Settings,
                         http_client: httpx.AsyncClient) -> Dict[TranslationEngine, EngineClient]:
    return {
        TranslationEngine.OPENAI: OpenAIEngine(settings, http_client),
        TranslationEngine.DEEPL: DeepLEngine(settings, http_client),
        TranslationEngine.GOOGLE: GoogleTranslateEngine(settings, http_client),
        TranslationEngine.CUSTOM: CustomEndpointEngine(settings, http_client),
        TranslationEngine.AUTO: AutoEngine(settings, http_client),
    }
