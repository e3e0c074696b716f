"""
Tests for glossary enforcement, engine ordering and engine clients.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from pdfpipeline.core.schemas.job import TranslationEngine, TranslationJob
from pdfpipeline.core.schemas.pipeline import GlossaryTerm, PipelineSegment, TranslatedSegment
from pdfpipeline.core.translation import (
    AttemptOutcome,
    EngineRequest,
    EngineSelector,
    build_engine_clients,
    determine_engine_order,
    enforce_glossary,
    serialize_raw_response,
    to_translation_record,
)


def make_job(**fields):
    fields.setdefault("target_language", "de")
    fields.setdefault("source_file_key", "src.pdf")
    return TranslationJob(**fields)


def make_segment(text="Hello world."):
    return PipelineSegment(
        id="seg_1", page_id="pg_1", page_number=1, block_id="b0", sequence=0,
        source_text=text, normalized_source_text=text,
    )


class TestGlossaryEnforcement:

    def test_whole_word_case_insensitive(self):
        result = enforce_glossary("Cat, CAT and category.", [GlossaryTerm("cat", "Katze")])
        assert result.text == "Katze, Katze and category."
        assert len(result.matches) == 1
        assert result.matches[0].source == "cat"
        assert result.matches[0].target == "Katze"

    def test_regex_characters_are_literal(self):
        result = enforce_glossary("Use C.A.T here, not CXAXT.", [GlossaryTerm("C.A.T", "cat")])
        assert result.text == "Use cat here, not CXAXT."

    def test_backslashes_in_target_are_not_expanded(self):
        result = enforce_glossary("path here", [GlossaryTerm("path", r"C:\new\1")])
        assert result.text == r"C:\new\1 here"

    def test_blank_entries_are_ignored(self):
        result = enforce_glossary("world", [GlossaryTerm("  ", "x"), GlossaryTerm("world", " ")])
        assert result.text == "world"
        assert result.matches == []

    def test_unmatched_entries_not_recorded(self):
        result = enforce_glossary("alpha", [GlossaryTerm("beta", "b"), GlossaryTerm("alpha", "a")])
        assert result.text == "a"
        assert [match.source for match in result.matches] == ["alpha"]

    def test_empty_text(self):
        assert enforce_glossary("", [GlossaryTerm("a", "b")]).text == ""

    def test_term_in_sentence_keeps_punctuation(self):
        result = enforce_glossary("Please review the Invoice.", [GlossaryTerm("invoice", "facture")])
        assert result.text == "Please review the facture."
        assert [(match.source, match.target) for match in result.matches] == [("invoice", "facture")]

    def test_enforcing_twice_changes_nothing(self):
        terms = [GlossaryTerm("invoice", "facture"), GlossaryTerm("due date", "\u00e9ch\u00e9ance")]
        once = enforce_glossary("The Invoice due date is Friday.", terms).text
        assert enforce_glossary(once, terms).text == once


class TestEngineOrder:

    def test_default_order(self):
        order = determine_engine_order(make_job())
        assert [e.value for e in order] == ["deepl", "google", "openai", "custom", "auto"]

    def test_industry_prefers_openai(self):
        order = determine_engine_order(make_job(industry="legal"))
        assert [e.value for e in order] == ["openai", "deepl", "google", "custom", "auto"]

    def test_explicit_preference_first(self):
        order = determine_engine_order(make_job(engine_preference=TranslationEngine.CUSTOM))
        assert [e.value for e in order] == ["custom", "openai", "deepl", "google", "auto"]

    @pytest.mark.parametrize("preference", list(TranslationEngine))
    def test_auto_always_last_without_duplicates(self, preference):
        order = determine_engine_order(make_job(engine_preference=preference, industry="medical"))
        assert order[-1] == TranslationEngine.AUTO
        assert len(order) == len(set(order)) == 5


class TestEngineSelector:

    @pytest.mark.asyncio
    async def test_unconfigured_engines_are_unavailable(self, settings, mock_http):
        selector = EngineSelector(build_engine_clients(settings, mock_http()))
        attempt = await selector.try_engine(TranslationEngine.DEEPL, EngineRequest(text="hi", target_language="de"))
        assert attempt.outcome == AttemptOutcome.UNAVAILABLE
        assert attempt.error is None

    @pytest.mark.asyncio
    async def test_failure_falls_through_to_next_engine(self, make_settings, mock_http):
        settings = make_settings(deepl_api_key="dk", google_translate_api_key="gk")

        def handler(request):
            if request.url.host == "api-free.deepl.com":
                return httpx.Response(503, json={"message": "busy"})
            return httpx.Response(200, json={"data": {"translations": [{"translatedText": "Hallo Welt."}]}})

        selector = EngineSelector(build_engine_clients(settings, mock_http(handler)))
        result = await selector.translate_segment(
            make_job(), make_segment(), determine_engine_order(make_job()), [],
        )

        assert result.engine == TranslationEngine.GOOGLE
        assert result.target_text == "Hallo Welt."

    @pytest.mark.asyncio
    async def test_all_failing_records_last_error(self, make_settings, mock_http):
        settings = make_settings(deepl_api_key="dk")

        def handler(request):
            return httpx.Response(500, json={"message": "down"})

        selector = EngineSelector(build_engine_clients(settings, mock_http(handler)))
        result = await selector.translate_segment(
            make_job(), make_segment(), determine_engine_order(make_job()), [GlossaryTerm("world", "Welt")],
        )

        assert result.engine == TranslationEngine.AUTO
        assert result.target_text == "Hello Welt."
        assert result.raw_response["fallback"] is True
        assert "500" in result.raw_response["reason"]

    @pytest.mark.asyncio
    async def test_empty_source_skips_providers(self, make_settings, mock_http):
        settings = make_settings(deepl_api_key="dk")
        selector = EngineSelector(build_engine_clients(settings, mock_http()))

        result = await selector.translate_segment(make_job(), make_segment("   "), [TranslationEngine.DEEPL], [])

        assert result.target_text == ""
        assert result.engine == TranslationEngine.DEEPL

    @pytest.mark.asyncio
    async def test_auto_reports_concrete_engine(self, make_settings, mock_http):
        settings = make_settings(openai_api_key="sk-test")

        def handler(request):
            return httpx.Response(200, json={
                "id": "cmpl-1", "model": "gpt-4o-mini",
                "choices": [{"message": {"content": " Hallo "}}],
            })

        selector = EngineSelector(build_engine_clients(settings, mock_http(handler)))
        attempt = await selector.try_engine(TranslationEngine.AUTO, EngineRequest(text="Hello", target_language="de"))

        assert attempt.outcome == AttemptOutcome.SUCCESS
        assert attempt.reply.engine == TranslationEngine.OPENAI
        assert attempt.reply.text == "Hallo"
        assert attempt.reply.raw_response == {"id": "cmpl-1", "model": "gpt-4o-mini"}

    @pytest.mark.asyncio
    async def test_auto_moves_past_failing_engine(self, make_settings, mock_http):
        settings = make_settings(openai_api_key="sk-test", libre_translate_url="https://libre.example.com")
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            if request.url.host == "api.openai.com":
                return httpx.Response(500, json={"error": "overloaded"})
            return httpx.Response(200, json={"translatedText": "Bonjour"})

        selector = EngineSelector(build_engine_clients(settings, mock_http(handler)))
        attempt = await selector.try_engine(TranslationEngine.AUTO, EngineRequest(text="Hello", target_language="fr"))

        assert hosts == ["api.openai.com", "libre.example.com"]
        assert attempt.outcome == AttemptOutcome.SUCCESS
        assert attempt.reply.text == "Bonjour"

    @pytest.mark.asyncio
    async def test_auto_fails_when_every_engine_errors(self, make_settings, mock_http):
        settings = make_settings(openai_api_key="sk-test", libre_translate_url="https://libre.example.com")

        def handler(request):
            return httpx.Response(503)

        selector = EngineSelector(build_engine_clients(settings, mock_http(handler)))
        attempt = await selector.try_engine(TranslationEngine.AUTO, EngineRequest(text="Hello", target_language="fr"))

        assert attempt.outcome == AttemptOutcome.FAILED
        assert "OpenAI translation failed (503)" in attempt.error


class TestEngineRequests:

    @pytest.mark.asyncio
    async def test_openai_prompt_carries_industry_and_glossary(self, make_settings, mock_http):
        settings = make_settings(openai_api_key="sk-test", openai_model="gpt-test")
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Vertrag"}}]})

        clients = build_engine_clients(settings, mock_http(handler))
        reply = await clients[TranslationEngine.OPENAI].translate(EngineRequest(
            text="contract", target_language="de", industry="legal",
            glossary=(GlossaryTerm("contract", "Vertrag"),),
        ))

        assert reply.text == "Vertrag"
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-test"
        system_prompt = seen["body"]["messages"][0]["content"]
        assert "legal industry" in system_prompt
        assert "contract -> Vertrag" in system_prompt
        assert system_prompt.endswith("Return only the translated text without additional commentary.")
        assert seen["body"]["messages"][1] == {"role": "user", "content": "contract"}

    @pytest.mark.asyncio
    async def test_deepl_form_upper_cases_languages(self, make_settings, mock_http):
        settings = make_settings(deepl_api_key="dk")
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"translations": [{"text": "Hallo", "detected_source_language": "EN"}]})

        clients = build_engine_clients(settings, mock_http(handler))
        reply = await clients[TranslationEngine.DEEPL].translate(
            EngineRequest(text="Hello", target_language="de", source_language="en"),
        )

        assert seen["auth"] == "DeepL-Auth-Key dk"
        assert seen["form"] == {"text": ["Hello"], "target_lang": ["DE"], "source_lang": ["EN"]}
        assert reply.raw_response == {"detectedSourceLanguage": "EN"}

    @pytest.mark.asyncio
    async def test_deepl_omits_auto_source(self, make_settings, mock_http):
        settings = make_settings(deepl_api_key="dk")
        seen = {}

        def handler(request):
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"translations": [{"text": "Hallo"}]})

        clients = build_engine_clients(settings, mock_http(handler))
        await clients[TranslationEngine.DEEPL].translate(
            EngineRequest(text="Hello", target_language="de", source_language="auto"),
        )
        assert "source_lang" not in seen["form"]

    @pytest.mark.asyncio
    async def test_google_translate_uses_api_key_param(self, make_settings, mock_http):
        settings = make_settings(google_translate_api_key="gk")
        seen = {}

        def handler(request):
            seen["key"] = request.url.params["key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"translations": [{"translatedText": "Hola"}]}})

        clients = build_engine_clients(settings, mock_http(handler))
        reply = await clients[TranslationEngine.GOOGLE].translate(EngineRequest(text="Hello", target_language="es"))

        assert reply.text == "Hola"
        assert seen["key"] == "gk"
        assert seen["body"] == {"q": "Hello", "target": "es", "format": "text"}

    @pytest.mark.asyncio
    async def test_custom_endpoint_payload(self, make_settings, mock_http):
        settings = make_settings(
            custom_translation_endpoint="https://mt.example.com/v1/translate",
            custom_translation_token="secret",
        )
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "Bonjour"})

        clients = build_engine_clients(settings, mock_http(handler))
        reply = await clients[TranslationEngine.CUSTOM].translate(EngineRequest(
            text="Hello", target_language="fr", source_language="en", industry="retail",
            glossary=(GlossaryTerm("Hello", "Salut"),),
        ))

        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {
            "text": "Hello",
            "sourceLanguage": "en",
            "targetLanguage": "fr",
            "industry": "retail",
            "glossary": [{"source": "Hello", "target": "Salut"}],
        }
        assert reply.engine == TranslationEngine.CUSTOM
        assert reply.text == "Bonjour"

    @pytest.mark.asyncio
    async def test_libre_only_used_when_configured(self, make_settings, mock_http):
        settings = make_settings(libre_translate_url="https://libre.example.com/")
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"translatedText": "Hallo"})

        clients = build_engine_clients(settings, mock_http(handler))
        reply = await clients[TranslationEngine.AUTO].translate(EngineRequest(text="Hello", target_language="de"))

        assert seen["url"] == "https://libre.example.com/translate"
        assert reply.engine == TranslationEngine.AUTO
        assert reply.text == "Hallo"


class TestTranslationRecords:

    def test_raw_response_is_capped(self):
        raw = {"payload": "x" * 5000}
        assert len(serialize_raw_response(raw, 2000)) == 2000
        assert serialize_raw_response(None, 2000) is None

    def test_record_without_matches(self):
        record = to_translation_record(make_job(), TranslatedSegment(
            segment_id="seg_1", page_id="pg_1", page_number=1, target_text="Hallo",
            engine=TranslationEngine.DEEPL, raw_response={"detectedSourceLanguage": "EN"},
        ))
        assert record.target_locale == "de"
        assert record.glossary_matches is None
        assert json.loads(record.raw_response) == {"detectedSourceLanguage": "EN"}
