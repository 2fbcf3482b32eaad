"""The pipeline, declared once: ordered stage descriptors with required/optional flags."""
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from models.pipeline_state import PipelineInput, RunPhase, StageName, StageResult
from pipeline import stage1_extract, stage2_translate, stage3_summarize, stage4_rewrite
from pipeline.context import Region, RunContext

StageFn = Callable[[PipelineInput, str, RunContext], Awaitable[StageResult]]


@dataclass(frozen=True)
class StageDescriptor:
    name: StageName
    phase: RunPhase
    region: Region
    run: StageFn
    required: bool
    start_message: str            # may use {target}
    input_from: StageName | None  # whose payload this stage consumes; None for the source
    empty_placeholder: str = ""


EXTRACT = StageDescriptor(
    name="extract",
    phase=RunPhase.EXTRACTING,
    region="extracted",
    run=stage1_extract.run,
    required=True,
    start_message="Extracting text from image...",
    input_from=None,
    empty_placeholder="(No text could be extracted)",
)

TRANSLATE = StageDescriptor(
    name="translate",
    phase=RunPhase.TRANSLATING,
    region="translated",
    run=stage2_translate.run,
    required=True,
    start_message="Translating extracted text to {target}...",
    input_from="extract",
)

SUMMARIZE = StageDescriptor(
    name="summarize",
    phase=RunPhase.SUMMARIZING,
    region="summary",
    run=stage3_summarize.run,
    required=False,
    start_message="Generating summary...",
    input_from="translate",
    empty_placeholder="(No summary generated)",
)

# Simplifies the translation, not the summary
REWRITE = StageDescriptor(
    name="rewrite",
    phase=RunPhase.REWRITING,
    region="simplified",
    run=stage4_rewrite.run,
    required=False,
    start_message="Simplifying text...",
    input_from="translate",
    empty_placeholder="(No simplified text generated)",
)


def build_stages(include_rewrite: bool = False) -> tuple[StageDescriptor, ...]:
    stages = (EXTRACT, TRANSLATE, SUMMARIZE)
    return stages + (REWRITE,) if include_rewrite else stages
