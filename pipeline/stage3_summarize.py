"""Stage 3: Summarize - optional key-point summary of the translated text.

Never fatal: a missing or unavailable summarizer, or a failing call, is
recorded as Skipped and the run carries on with an empty summary.
"""
import logging

from capabilities.registry import probe
from models.capability import Availability, Capability, SummarizerOptions
from models.pipeline_state import PipelineInput, StageResult
from pipeline.context import RunContext
from pipeline.errors import classify_error

logger = logging.getLogger(__name__)


async def run(request: PipelineInput, upstream: str, context: RunContext) -> StageResult:
    summarizer = context.registry.lookup(Capability.SUMMARIZER)
    if summarizer is None:
        logger.warning("Summarizer not available; skipping summarization.")
        return StageResult.skipped("summarize", "summarizer not available")

    settings = context.settings
    options = SummarizerOptions(
        type=settings.summary_type,
        format=settings.summary_format,
        length=settings.summary_length,
    )
    try:
        availability = await probe(context.registry, Capability.SUMMARIZER)
        if availability == Availability.UNAVAILABLE:
            logger.warning("Summarizer not available on this device.")
            return StageResult.skipped("summarize", "summarizer unavailable on this device")
        if availability == Availability.DOWNLOADABLE:
            context.status("Summarization model needs a download; this may take a while...", "downloading_model")

        context.status("Creating summarizer...", "creating_summarizer")
        session = await summarizer.create(options)

        context.status("Summarizing...", "summarizing")
        summary = await session.summarize(upstream, context=settings.summary_context)
    except Exception as exc:
        error = classify_error(exc)
        logger.warning("Summarization failed (%s), continuing without summary: %s",
                       error.kind.value, error.message)
        return StageResult.skipped("summarize", f"summarization failed: {error.user_message}")

    context.status("Summary ready.", "summarized")
    return StageResult.success("summarize", summary or "")
