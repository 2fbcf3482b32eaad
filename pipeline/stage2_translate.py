"""Stage 2: Translate - translate the extracted text into the target language.

The translator needs explicit source and target codes (no "auto"), so the
source language is detected first when a detector is registered. Detection is
best-effort: any detector problem falls back to settings.default_source_language.
"""
import logging

from models.capability import Capability
from models.pipeline_state import PipelineInput, StageResult
from pipeline.context import RunContext
from pipeline.errors import CapabilityMissingError, DetectorFailure, classify_error

logger = logging.getLogger(__name__)


async def run(request: PipelineInput, upstream: str, context: RunContext) -> StageResult:
    target = request.target_language or context.settings.default_target_language
    try:
        translator = context.registry.lookup(Capability.TRANSLATOR)
        if translator is None:
            raise CapabilityMissingError(Capability.TRANSLATOR.value, "Translator")

        source = await detect_source_language(upstream, context)

        context.status("Creating translator...", "creating_translator")
        session = await translator.create(source_language=source, target_language=target)

        context.status("Translating text...", "translating")
        translated = await session.translate(upstream)
    except Exception as exc:
        error = classify_error(exc)
        logger.warning("Translation failed (%s): %s", error.kind.value, error.message)
        return StageResult.failed("translate", error)

    context.status("Translation complete.", "translated")
    logger.info("Translated %d characters (%s -> %s).", len(upstream), source, target)
    return StageResult.success("translate", translated or "")


async def detect_source_language(text: str, context: RunContext) -> str:
    """Best guess at the language of `text`; never raises."""
    fallback = context.settings.default_source_language
    detector = context.registry.lookup(Capability.LANGUAGE_DETECTOR)
    if detector is None:
        return fallback

    context.status("Detecting source language...", "detecting_language")
    try:
        candidates = await detector.detect(text)
        best = next((c.language for c in candidates or [] if c.language), None)
        if best is None:
            raise DetectorFailure("detector returned no language")
    except Exception as exc:
        logger.warning("LanguageDetector failed, assuming %r: %s", fallback, exc)
        return fallback

    logger.debug("Detected source language %r.", best)
    return best
