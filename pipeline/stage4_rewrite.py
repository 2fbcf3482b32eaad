"""Stage 4: Rewrite - optional simplified version of the translated text."""
import logging

from models.capability import Capability
from models.pipeline_state import PipelineInput, StageResult
from pipeline.context import RunContext
from pipeline.errors import classify_error

logger = logging.getLogger(__name__)


async def run(request: PipelineInput, upstream: str, context: RunContext) -> StageResult:
    rewriter = context.registry.lookup(Capability.REWRITER)
    if rewriter is None:
        logger.warning("Rewriter not available; skipping rewrite.")
        return StageResult.skipped("rewrite", "rewriter not available")

    style = request.rewrite_style or context.settings.rewrite_style
    try:
        context.status(f"Rewriting text ({style})...", "rewriting")
        rewritten = await rewriter.rewrite(upstream, style=style)
    except Exception as exc:
        error = classify_error(exc)
        logger.warning("Rewrite failed (%s): %s", error.kind.value, error.message)
        return StageResult.skipped("rewrite", f"rewrite failed: {error.user_message}")

    context.status("Rewrite complete.", "rewritten")
    return StageResult.success("rewrite", rewritten or "")
