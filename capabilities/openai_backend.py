"""Capability providers backed by an OpenAI-compatible chat completions API.

Point `openai_base_url` at a local server to keep inference on-device.

Every provider shares one AsyncOpenAI client. Refusals from the service
(permission/authentication) surface as SecurityRestrictionError; everything
else propagates unchanged for the calling stage to classify.
"""
import logging
from contextlib import asynccontextmanager

import openai
from openai import AsyncOpenAI

from capabilities.registry import CapabilityRegistry
from models.capability import (
    Availability,
    Capability,
    DetectedLanguage,
    LanguageDetection,
    SummarizerOptions,
)
from pipeline.errors import SecurityRestrictionError
from settings import Settings
from utils.image_utils import normalise_image, to_data_url
from utils.openai_utils import (
    image_part,
    response_text,
    system_message,
    text_part,
    user_message,
)

logger = logging.getLogger(__name__)

_DETECT_PROMPT = """\
Identify the language of the user's text.
Return candidates ordered by confidence, best first, as BCP 47 codes
(e.g. "en", "de", "pt-BR") with a confidence between 0.0 and 1.0.
Return an empty list if the text contains no natural language.
"""

_TRANSLATE_PROMPT = """\
You are a translator. Translate the user's text from {source} to {target}.
Keep line breaks, prices and numbers as they are.
Return only the translation, without commentary.
"""

_SUMMARIZE_PROMPT = """\
You are a summarizer. Write a {length} {type} summary of the user's text as {format}.
{type_hint}
Write the summary in the same language as the text.
"""

_SUMMARY_TYPE_HINTS = {
    "key-points": "List the most important points, one per line, starting with \"- \".",
    "tldr": "Give a quick overview suitable for a busy reader.",
    "teaser": "Highlight the most interesting parts to draw the reader in.",
    "headline": "Write a single headline capturing the main point.",
}

_REWRITE_PROMPT = """\
You are an editor. Rewrite the user's text so that it is {style}.
Keep the meaning and the language of the text. Return only the rewritten text.
"""

# Service errors that mean "the host refused", not "the request went wrong"
_RESTRICTION_ERRORS = (openai.PermissionDeniedError, openai.AuthenticationError)


@asynccontextmanager
async def _restricted_errors():
    try:
        yield
    except _RESTRICTION_ERRORS as exc:
        raise SecurityRestrictionError(type(exc).__name__, str(exc)) from exc


async def _model_availability(client: AsyncOpenAI, model: str) -> Availability:
    try:
        async with _restricted_errors():
            await client.models.retrieve(model)
    except openai.NotFoundError:
        logger.warning("Model %s not offered by the service.", model)
        return Availability.UNAVAILABLE
    return Availability.AVAILABLE


# ---------------------------------------------------------------------------
# Extraction (vision prompt session)
# ---------------------------------------------------------------------------

class OpenAIPromptSession:
    """Accumulates the system prompt and appended images until `prompt` is called."""

    def __init__(self, client: AsyncOpenAI, model: str, system_prompt: str, expected_inputs: list[str]):
        self._client = client
        self._model = model
        self._system_prompt = system_prompt
        self._expected_inputs = expected_inputs
        self._parts: list[dict] = []

    async def append(self, image: bytes) -> None:
        if "image" not in self._expected_inputs:
            raise ValueError("session was not created for image input")
        self._parts.append(image_part(to_data_url(normalise_image(image))))

    async def prompt(self, instruction: str, *, output_language: str | None = None) -> str:
        if output_language:
            instruction = f"{instruction}\nRespond in language: {output_language}."
        messages = [
            system_message(self._system_prompt),
            user_message(*self._parts, text_part(instruction)),
        ]
        async with _restricted_errors():
            response = await self._client.chat.completions.create(model=self._model, messages=messages)
        return response_text(response)


class OpenAIExtractor:
    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def availability(self) -> Availability:
        return await _model_availability(self._client, self._model)

    async def create(self, *, expected_inputs: list[str], system_prompt: str) -> OpenAIPromptSession:
        return OpenAIPromptSession(self._client, self._model, system_prompt, expected_inputs)


# ---------------------------------------------------------------------------
# Language detection (structured output)
# ---------------------------------------------------------------------------

class OpenAILanguageDetector:
    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def detect(self, text: str) -> list[DetectedLanguage]:
        async with _restricted_errors():
            response = await self._client.chat.completions.parse(
                model=self._model,
                messages=[system_message(_DETECT_PROMPT), {"role": "user", "content": text}],
                response_format=LanguageDetection,
            )
        parsed = response.choices[0].message.parsed
        if parsed is None:
            return []
        return sorted(parsed.candidates, key=lambda c: c.confidence, reverse=True)


# ---------------------------------------------------------------------------
# Translation, summarization, rewriting (plain chat completions)
# ---------------------------------------------------------------------------

async def _complete(client: AsyncOpenAI, model: str, system_prompt: str, text: str) -> str:
    async with _restricted_errors():
        response = await client.chat.completions.create(
            model=model,
            messages=[system_message(system_prompt), {"role": "user", "content": text}],
        )
    return response_text(response).strip()


class OpenAITranslatorSession:
    def __init__(self, client: AsyncOpenAI, model: str, source_language: str, target_language: str):
        self._client = client
        self._model = model
        self._prompt = _TRANSLATE_PROMPT.format(source=source_language, target=target_language)

    async def translate(self, text: str) -> str:
        return await _complete(self._client, self._model, self._prompt, text)


class OpenAITranslator:
    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def create(self, *, source_language: str, target_language: str) -> OpenAITranslatorSession:
        return OpenAITranslatorSession(self._client, self._model, source_language, target_language)


class OpenAISummarizerSession:
    def __init__(self, client: AsyncOpenAI, model: str, options: SummarizerOptions):
        self._client = client
        self._model = model
        self._prompt = _SUMMARIZE_PROMPT.format(
            length=options.length,
            type=options.type,
            format=options.format,
            type_hint=_SUMMARY_TYPE_HINTS[options.type],
        )

    async def summarize(self, text: str, *, context: str | None = None) -> str:
        prompt = f"{self._prompt}Context: {context}\n" if context else self._prompt
        return await _complete(self._client, self._model, prompt, text)


class OpenAISummarizer:
    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def availability(self) -> Availability:
        return await _model_availability(self._client, self._model)

    async def create(self, options: SummarizerOptions) -> OpenAISummarizerSession:
        return OpenAISummarizerSession(self._client, self._model, options)


class OpenAIRewriter:
    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self._model = model

    async def rewrite(self, text: str, *, style: str) -> str:
        return await _complete(self._client, self._model, _REWRITE_PROMPT.format(style=style), text)


# ---------------------------------------------------------------------------
# Registry wiring
# ---------------------------------------------------------------------------

def build_registry(settings: Settings, client: AsyncOpenAI | None = None) -> CapabilityRegistry:
    """Register every OpenAI-backed capability not listed in disabled_capabilities.

    Without an API key (and no explicit client) nothing is registered: every
    capability is absent from the environment.
    """
    registry = CapabilityRegistry()
    if client is None:
        if not settings.has_api_key:
            logger.warning("No OpenAI API key configured; no capabilities registered.")
            return registry
        client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)

    providers = {
        Capability.EXTRACTOR: OpenAIExtractor(client, settings.extract_model),
        Capability.LANGUAGE_DETECTOR: OpenAILanguageDetector(client, settings.text_model),
        Capability.TRANSLATOR: OpenAITranslator(client, settings.text_model),
        Capability.SUMMARIZER: OpenAISummarizer(client, settings.text_model),
        Capability.REWRITER: OpenAIRewriter(client, settings.text_model),
    }
    disabled = set(settings.disabled_capabilities)
    for name, provider in providers.items():
        if name.value in disabled:
            logger.info("Capability %s disabled by configuration.", name.value)
            continue
        registry.register(name, provider)
    return registry
