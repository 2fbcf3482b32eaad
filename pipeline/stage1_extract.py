"""Stage 1: Extract - pull the visible text out of the selected image.

Asks the extractor capability (a multimodal prompt model) for the text, in the
target language. No text means nothing downstream can work, so every failure
here is fatal to the run.
"""
import logging

from capabilities.registry import probe
from models.capability import Availability, Capability
from models.pipeline_state import PipelineInput, StageResult
from pipeline.context import RunContext
from pipeline.errors import (
    CapabilityMissingError,
    CapabilityUnavailableError,
    EmptyResultError,
    classify_error,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an OCR and parser. Extract the visible textual content from the supplied image."

_LABEL = "Text extractor"


def extraction_instruction(language: str) -> str:
    return f"Return the extracted text in the language corresponding to the code: {language}."


async def run(request: PipelineInput, upstream: str, context: RunContext) -> StageResult:
    """Return Success(text) or Failed(...) for the request's image or text source."""
    language = request.target_language or context.settings.default_target_language
    try:
        if request.image:
            text = await _extract_from_image(request.image, language, context)
        else:
            # Text supplied directly: nothing to recognise
            text = request.text or ""
        if not text.strip():
            raise EmptyResultError("extraction returned no text", "No text extracted.")
    except Exception as exc:
        error = classify_error(exc)
        logger.warning("Extraction failed (%s): %s", error.kind.value, error.message)
        return StageResult.failed("extract", error)

    context.status("Text extracted.", "extracted")
    logger.info("Extracted %d characters.", len(text))
    return StageResult.success("extract", text.strip())


async def _extract_from_image(image: bytes, language: str, context: RunContext) -> str:
    extractor = context.registry.lookup(Capability.EXTRACTOR)
    if extractor is None:
        raise CapabilityMissingError(Capability.EXTRACTOR.value, _LABEL)

    availability = await probe(context.registry, Capability.EXTRACTOR)
    if availability == Availability.UNAVAILABLE:
        raise CapabilityUnavailableError(Capability.EXTRACTOR.value, _LABEL)
    if availability == Availability.DOWNLOADABLE:
        context.status("Extraction model needs a download; this may take a while...", "downloading_model")

    context.status("Creating prompt session...", "creating_session")
    session = await extractor.create(expected_inputs=["image"], system_prompt=SYSTEM_PROMPT)
    await session.append(image)

    context.status("Prompting model to extract text...", "prompting")
    return await session.prompt(extraction_instruction(language), output_language=language)
