r"""PipelineRunner - runs the stage sequence for one request at a time.

State machine:

    idle -> extracting -> translating -> summarizing -> (rewriting) -> done
                 \______________\______________\_____________\-----> error

A stage runs only when every earlier stage succeeded (optional stages may be
skipped). The first failed result is terminal: remaining stages never run.
A second `run()` while one is in flight is rejected with PipelineBusyError.
"""
import logging
import uuid
from datetime import datetime, timezone

from capabilities.registry import CapabilityRegistry
from models.pipeline_state import (
    ErrorKind,
    PipelineInput,
    PipelineRun,
    PipelineState,
    RunPhase,
    StageError,
    StageResult,
)
from pipeline.context import NullUI, RunContext, UIContext
from pipeline.definition import StageDescriptor, build_stages
from pipeline.errors import InputValidationError, PipelineBusyError
from settings import Settings

logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "Please choose an image file of a menu or sign first."

_IN_PROGRESS = (RunPhase.EXTRACTING, RunPhase.TRANSLATING, RunPhase.SUMMARIZING, RunPhase.REWRITING)

_TRANSITIONS: dict[RunPhase, frozenset[RunPhase]] = {
    RunPhase.IDLE: frozenset({RunPhase.EXTRACTING, RunPhase.ERROR}),
    RunPhase.EXTRACTING: frozenset({RunPhase.TRANSLATING, RunPhase.DONE, RunPhase.ERROR}),
    RunPhase.TRANSLATING: frozenset({RunPhase.SUMMARIZING, RunPhase.REWRITING, RunPhase.DONE, RunPhase.ERROR}),
    RunPhase.SUMMARIZING: frozenset({RunPhase.REWRITING, RunPhase.DONE, RunPhase.ERROR}),
    RunPhase.REWRITING: frozenset({RunPhase.DONE, RunPhase.ERROR}),
    RunPhase.DONE: frozenset({RunPhase.IDLE}),
    RunPhase.ERROR: frozenset({RunPhase.IDLE}),
}


class PipelineRunner:
    def __init__(
        self,
        settings: Settings,
        registry: CapabilityRegistry,
        ui: UIContext | None = None,
        stages: tuple[StageDescriptor, ...] | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.ui = ui or NullUI()
        self._stages = stages
        self._phase = RunPhase.IDLE
        self._state = PipelineState()
        self._in_flight = False

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._in_flight

    async def run(self, request: PipelineInput) -> PipelineRun:
        """Run every stage for `request` and return the outcome.

        Stage failures never raise; they end the run in RunPhase.ERROR.
        """
        if self._in_flight:
            raise PipelineBusyError("a pipeline run is already in progress")
        self._in_flight = True
        try:
            return await self._run(request)
        except Exception:
            # Stage or UI callback bug: leave the machine restartable
            self._phase = RunPhase.ERROR
            raise
        finally:
            self._in_flight = False

    async def _run(self, request: PipelineInput) -> PipelineRun:
        self._reset()
        target = request.target_language or self.settings.default_target_language
        run = PipelineRun(
            run_id=uuid.uuid4().hex,
            filename=request.filename,
            target_language=target,
        )
        context = RunContext(self.settings, self.registry, self.ui, events=run.events)

        if not request.has_source:
            error = InputValidationError("no image file selected", NO_FILE_MESSAGE).to_stage_error()
            logger.warning("Run %s rejected: %s", run.run_id, error.message)
            self.ui.alert(error.user_message)
            return self._finish(run, RunPhase.ERROR, error)

        self.ui.clear()
        stages = self._stages or build_stages(self._include_rewrite(request))
        logger.info("Run %s: %s -> %s (%s)", run.run_id, request.filename or "<text>", target,
                    ", ".join(s.name for s in stages))

        for index, stage in enumerate(stages):
            upstream = self._state.payload(stage.input_from) if stage.input_from else ""
            if stage.input_from and not upstream.strip():
                logger.info("Skipping %s: no %s output.", stage.name, stage.input_from)
                self._record(run, StageResult.skipped(stage.name, f"no {stage.input_from} output to process"))
                continue

            self._transition(stage.phase)
            context.stage = stage.name
            context.progress = index / len(stages)
            context.status(stage.start_message.format(target=target), "started")

            result = await stage.run(request, upstream, context)
            if result.is_failed and not stage.required:
                logger.warning("Optional stage %s failed; recording as skipped.", stage.name)
                result = StageResult.skipped(stage.name, result.error.user_message)
            self._record(run, result)

            if result.is_failed:
                if stage.empty_placeholder and result.error.kind == ErrorKind.EMPTY_RESULT:
                    self.ui.show(stage.region, stage.empty_placeholder)
                return self._fail(run, context, result.error)

            self.ui.show(stage.region, result.payload or stage.empty_placeholder)

        context.stage = "pipeline"
        context.progress = 1.0
        context.status("Done.", "done")
        return self._finish(run, RunPhase.DONE)

    def _include_rewrite(self, request: PipelineInput) -> bool:
        return self.settings.enable_rewrite if request.rewrite is None else request.rewrite

    def _record(self, run: PipelineRun, result: StageResult) -> None:
        self._state = self._state.append(result)
        run.state = self._state

    def _fail(self, run: PipelineRun, context: RunContext, error: StageError) -> PipelineRun:
        if error.kind == ErrorKind.EMPTY_RESULT:
            status = f"Done with error: {error.user_message}"
        elif error.kind == ErrorKind.SERVICE_ERROR:
            status = f"Error: {error.message}"
        else:
            status = f"Error: {error.user_message}"
        context.status(status, "error")
        logger.error("Run %s failed during %s (%s): %s",
                     run.run_id, context.stage, error.kind.value, error.message)
        self.ui.alert(error.user_message)
        return self._finish(run, RunPhase.ERROR, error)

    def _finish(self, run: PipelineRun, phase: RunPhase, error: StageError | None = None) -> PipelineRun:
        self._transition(phase)
        run.phase = phase
        run.error = error
        run.finished_at = datetime.now(timezone.utc)
        if self.settings.history_dir is not None:
            _write_history(run, self.settings)
        return run

    def _transition(self, phase: RunPhase) -> None:
        if phase not in _TRANSITIONS[self._phase]:
            raise RuntimeError(f"illegal transition {self._phase.value} -> {phase.value}")
        logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    def _reset(self) -> None:
        if self._phase in _IN_PROGRESS:
            raise RuntimeError(f"cannot reset while {self._phase.value}")
        if self._phase != RunPhase.IDLE:
            self._transition(RunPhase.IDLE)
        self._state = PipelineState()


def _write_history(run: PipelineRun, settings: Settings) -> None:
    settings.history_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = settings.history_dir / f"{run.run_id}.json"
    artifact_path.write_text(run.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Run record → %s", artifact_path)
