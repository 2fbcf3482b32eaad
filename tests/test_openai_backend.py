"""Tests for the OpenAI-backed capability providers.

All OpenAI API calls are mocked; no network access required.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from capabilities.openai_backend import (
    OpenAIExtractor,
    OpenAILanguageDetector,
    OpenAIRewriter,
    OpenAISummarizer,
    OpenAITranslator,
    build_registry,
)
from models.capability import (
    Availability,
    Capability,
    DetectedLanguage,
    LanguageDetection,
    SummarizerOptions,
)
from pipeline.errors import InputValidationError, SecurityRestrictionError
from settings import Settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _completion(content) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def _parsed(parsed) -> MagicMock:
    choice = MagicMock()
    choice.message.parsed = parsed
    response = MagicMock()
    response.choices = [choice]
    return response


def _client(content="translated") -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_completion(content))
    client.chat.completions.parse = AsyncMock()
    client.models.retrieve = AsyncMock()
    return client


def _status_error(cls, status: int):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls("refused", response=response, body=None)


def _sent_messages(client) -> list[dict]:
    return client.chat.completions.create.call_args.kwargs["messages"]


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class TestExtractor:
    @pytest.mark.asyncio
    async def test_prompt_sends_image_and_instruction(self, jpeg_bytes):
        client = _client("Menu\nSoup 5€")
        extractor = OpenAIExtractor(client, "vision-model")
        session = await extractor.create(expected_inputs=["image"], system_prompt="You are an OCR.")
        await session.append(jpeg_bytes)

        text = await session.prompt("Return the text.", output_language="es")

        assert text == "Menu\nSoup 5€"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "vision-model"
        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": "You are an OCR."}
        image, instruction = user["content"]
        assert image["type"] == "image_url"
        assert image["image_url"]["url"].startswith("data:image/jpeg;base64,")
        assert instruction["text"].startswith("Return the text.")
        assert "es" in instruction["text"]

    @pytest.mark.asyncio
    async def test_none_content_is_empty_string(self, jpeg_bytes):
        client = _client(None)
        session = await OpenAIExtractor(client, "m").create(expected_inputs=["image"], system_prompt="x")
        await session.append(jpeg_bytes)
        assert await session.prompt("go") == ""

    @pytest.mark.asyncio
    async def test_text_only_session_rejects_images(self, jpeg_bytes):
        session = await OpenAIExtractor(_client(), "m").create(expected_inputs=["text"], system_prompt="x")
        with pytest.raises(ValueError):
            await session.append(jpeg_bytes)

    @pytest.mark.asyncio
    async def test_undecodable_image_is_validation_error(self):
        session = await OpenAIExtractor(_client(), "m").create(expected_inputs=["image"], system_prompt="x")
        with pytest.raises(InputValidationError):
            await session.append(b"definitely not an image")

    @pytest.mark.asyncio
    async def test_available_when_model_exists(self):
        client = _client()
        assert await OpenAIExtractor(client, "vision-model").availability() == Availability.AVAILABLE
        client.models.retrieve.assert_awaited_once_with("vision-model")

    @pytest.mark.asyncio
    async def test_unavailable_when_model_missing(self):
        client = _client()
        client.models.retrieve.side_effect = _status_error(openai.NotFoundError, 404)
        assert await OpenAIExtractor(client, "gone").availability() == Availability.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_permission_denied_is_security_restriction(self, jpeg_bytes):
        client = _client()
        client.chat.completions.create.side_effect = _status_error(openai.PermissionDeniedError, 403)
        session = await OpenAIExtractor(client, "m").create(expected_inputs=["image"], system_prompt="x")
        await session.append(jpeg_bytes)
        with pytest.raises(SecurityRestrictionError) as exc_info:
            await session.prompt("go")
        assert exc_info.value.name == "PermissionDeniedError"

    @pytest.mark.asyncio
    async def test_other_api_errors_propagate(self, jpeg_bytes):
        client = _client()
        client.chat.completions.create.side_effect = _status_error(openai.InternalServerError, 500)
        session = await OpenAIExtractor(client, "m").create(expected_inputs=["image"], system_prompt="x")
        with pytest.raises(openai.InternalServerError):
            await session.prompt("go")


# ---------------------------------------------------------------------------
# Language detector
# ---------------------------------------------------------------------------

class TestLanguageDetector:
    @pytest.mark.asyncio
    async def test_candidates_sorted_by_confidence(self):
        client = _client()
        client.chat.completions.parse.return_value = _parsed(LanguageDetection(candidates=[
            DetectedLanguage(language="it", confidence=0.2),
            DetectedLanguage(language="es", confidence=0.7),
        ]))
        candidates = await OpenAILanguageDetector(client, "m").detect("Hola")

        assert [c.language for c in candidates] == ["es", "it"]
        kwargs = client.chat.completions.parse.call_args.kwargs
        assert kwargs["response_format"] is LanguageDetection
        assert kwargs["messages"][-1] == {"role": "user", "content": "Hola"}

    @pytest.mark.asyncio
    async def test_refusal_yields_no_candidates(self):
        client = _client()
        client.chat.completions.parse.return_value = _parsed(None)
        assert await OpenAILanguageDetector(client, "m").detect("Hola") == []


# ---------------------------------------------------------------------------
# Translator, summarizer, rewriter
# ---------------------------------------------------------------------------

class TestTextCapabilities:
    @pytest.mark.asyncio
    async def test_translator_uses_explicit_codes(self):
        client = _client("  Hola mundo \n")
        session = await OpenAITranslator(client, "m").create(source_language="en", target_language="es")

        assert await session.translate("Hello world") == "Hola mundo"
        system, user = _sent_messages(client)
        assert "from en to es" in system["content"]
        assert user == {"role": "user", "content": "Hello world"}

    @pytest.mark.asyncio
    async def test_summarizer_prompt_reflects_options_and_context(self):
        client = _client("- soup")
        summarizer = OpenAISummarizer(client, "m")
        session = await summarizer.create(SummarizerOptions(type="tldr", length="medium"))

        assert await session.summarize("long text", context="For a traveler.") == "- soup"
        system = _sent_messages(client)[0]["content"]
        assert "medium tldr summary" in system
        assert "plain-text" in system
        assert "Context: For a traveler." in system

    @pytest.mark.asyncio
    async def test_summarizer_availability(self):
        client = _client()
        client.models.retrieve.side_effect = _status_error(openai.NotFoundError, 404)
        assert await OpenAISummarizer(client, "m").availability() == Availability.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_rewriter_style_in_prompt(self):
        client = _client("Easy words.")
        assert await OpenAIRewriter(client, "m").rewrite("Complex words.", style="simpler") == "Easy words."
        assert "so that it is simpler" in _sent_messages(client)[0]["content"]

    @pytest.mark.asyncio
    async def test_auth_failure_is_security_restriction(self):
        client = _client()
        client.chat.completions.create.side_effect = _status_error(openai.AuthenticationError, 401)
        with pytest.raises(SecurityRestrictionError):
            await OpenAIRewriter(client, "m").rewrite("x", style="simpler")


# ---------------------------------------------------------------------------
# build_registry
# ---------------------------------------------------------------------------

class TestBuildRegistry:
    def test_no_api_key_registers_nothing(self):
        assert build_registry(Settings()).names() == []

    def test_registers_all_capabilities(self):
        with patch("capabilities.openai_backend.AsyncOpenAI") as client_cls:
            registry = build_registry(Settings(openai_api_key="sk-test", openai_base_url="http://localhost:8080/v1"))

        client_cls.assert_called_once_with(api_key="sk-test", base_url="http://localhost:8080/v1")
        assert set(registry.names()) == set(Capability)

    def test_disabled_capabilities_left_out(self):
        settings = Settings(disabled_capabilities=["summarizer", "language_detector"])
        registry = build_registry(settings, client=_client())
        assert Capability.SUMMARIZER not in registry
        assert Capability.LANGUAGE_DETECTOR not in registry
        assert isinstance(registry.lookup(Capability.TRANSLATOR), OpenAITranslator)

    def test_models_from_settings(self):
        settings = Settings(extract_model="vision-x", text_model="text-y")
        registry = build_registry(settings, client=_client())
        assert registry.lookup(Capability.EXTRACTOR)._model == "vision-x"
        assert registry.lookup(Capability.TRANSLATOR)._model == "text-y"
