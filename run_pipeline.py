#!/usr/bin/env python3
"""Run the menulens pipeline on one photo from the command line.

Usage:
    python run_pipeline.py menu.jpg                     # extract, translate to default, summarize
    python run_pipeline.py menu.jpg --target-lang es    # translate to Spanish
    python run_pipeline.py menu.jpg --rewrite           # add the simplified-text stage
    python run_pipeline.py --text "Hello world" --target-lang es
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parent))

from capabilities.openai_backend import build_registry
from models.pipeline_state import PipelineInput
from pipeline.context import Region
from pipeline.runner import PipelineRunner
from settings import Settings

logger = logging.getLogger("run_pipeline")

_REGION_TITLES: dict[Region, str] = {
    "extracted": "Extracted text",
    "translated": "Translation",
    "summary": "Summary",
    "simplified": "Simplified text",
}


class ConsoleUI:
    """UIContext that writes output regions to stdout and status to the log."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def clear(self) -> None:
        pass

    def set_status(self, message: str) -> None:
        pass  # RunContext already logs every status update

    def show(self, region: Region, text: str) -> None:
        print(f"\n=== {_REGION_TITLES[region]} ===\n{text}", file=self.stream)

    def alert(self, message: str) -> None:
        print(f"\n!!! {message}", file=sys.stderr)


def _build_request(args: argparse.Namespace) -> PipelineInput:
    image = args.image.read_bytes() if args.image else None
    return PipelineInput(
        image=image,
        text=args.text,
        filename=args.image.name if args.image else None,
        target_language=args.target_lang,
        rewrite=True if args.rewrite else None,
        rewrite_style=args.style,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract, translate and summarize text in a photo.")
    parser.add_argument("image", nargs="?", type=Path, help="Photo of a menu or sign")
    parser.add_argument("--text", help="Use this text instead of extracting it from an image")
    parser.add_argument("--target-lang", dest="target_lang", help="Target language code, e.g. es")
    parser.add_argument("--rewrite", action="store_true", help="Also produce a simplified version")
    parser.add_argument("--style", help="Rewrite style (default from settings)")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.image is not None and not args.image.is_file():
        parser.error(f"no such file: {args.image}")

    try:
        request = _build_request(args)
    except ValidationError as exc:
        parser.error(str(exc))

    runner = PipelineRunner(settings, build_registry(settings), ConsoleUI())
    run = asyncio.run(runner.run(request))

    if run.succeeded:
        logger.info("=== Done (run %s) ===", run.run_id)
        return 0
    logger.error("=== Failed (run %s): %s ===", run.run_id, run.error.message)
    return 1


if __name__ == "__main__":
    sys.exit(main())
