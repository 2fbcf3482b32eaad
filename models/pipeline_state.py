from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.events import PipelineEvent
from settings import LANGUAGE_CODE_RE

StageName = Literal["extract", "translate", "summarize", "rewrite"]


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CAPABILITY_MISSING = "capability_missing"
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    EMPTY_RESULT = "empty_result"
    SECURITY_RESTRICTION = "security_restriction"
    DETECTOR_FAILURE = "detector_failure"
    SERVICE_ERROR = "service_error"


class RunPhase(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    SUMMARIZING = "summarizing"
    REWRITING = "rewriting"
    DONE = "done"
    ERROR = "error"


class PipelineInput(BaseModel):
    """One user request: the selected image (or known text) plus options.

    A blank `target_language` means "use the configured default".
    """

    image: bytes | None = None
    text: str | None = None
    filename: str | None = None
    target_language: str | None = None
    rewrite: bool | None = None  # None: follow settings.enable_rewrite
    rewrite_style: str | None = None

    @field_validator("target_language", mode="before")
    @classmethod
    def blank_means_default(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("target_language")
    @classmethod
    def must_be_language_code(cls, v: str | None) -> str | None:
        if v is not None and not LANGUAGE_CODE_RE.match(v):
            raise ValueError(f"not a language code: {v!r}")
        return v

    @property
    def has_source(self) -> bool:
        return bool(self.image) or self.text is not None


class StageError(BaseModel):
    """A classified failure, as recorded in the run history."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str       # developer-facing, goes to the log
    user_message: str  # shown in the status line and alert


class StageResult(BaseModel):
    """Outcome of one stage: exactly one of payload / reason / error is meaningful."""

    model_config = ConfigDict(frozen=True)

    stage: StageName
    status: Literal["success", "skipped", "failed"]
    payload: str | None = None
    reason: str | None = None
    error: StageError | None = None

    @model_validator(mode="after")
    def check_variant(self) -> "StageResult":
        if self.status == "success" and self.payload is None:
            raise ValueError("success requires a payload")
        if self.status == "skipped" and not self.reason:
            raise ValueError("skipped requires a reason")
        if self.status == "failed" and self.error is None:
            raise ValueError("failed requires an error")
        return self

    @classmethod
    def success(cls, stage: StageName, payload: str) -> "StageResult":
        return cls(stage=stage, status="success", payload=payload)

    @classmethod
    def skipped(cls, stage: StageName, reason: str) -> "StageResult":
        return cls(stage=stage, status="skipped", reason=reason)

    @classmethod
    def failed(cls, stage: StageName, error: StageError) -> "StageResult":
        return cls(stage=stage, status="failed", error=error)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"


class PipelineState(BaseModel):
    """Append-only run history; `append` returns a new state."""

    model_config = ConfigDict(frozen=True)

    results: tuple[StageResult, ...] = ()

    def append(self, result: StageResult) -> "PipelineState":
        if self.results and self.results[-1].is_failed:
            raise ValueError("cannot append after a failed stage")
        if self.get(result.stage) is not None:
            raise ValueError(f"stage {result.stage!r} already recorded")
        return PipelineState(results=self.results + (result,))

    def get(self, stage: StageName) -> StageResult | None:
        return next((r for r in self.results if r.stage == stage), None)

    def payload(self, stage: StageName) -> str:
        """Payload of a successful stage, "" otherwise."""
        result = self.get(stage)
        return result.payload if result is not None and result.succeeded else ""

    @property
    def failed(self) -> bool:
        return any(r.is_failed for r in self.results)


class PipelineRun(BaseModel):
    """Outcome of one run. Written to history_dir as `<run_id>.json`."""

    run_id: str
    filename: str | None = None
    target_language: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    phase: RunPhase = RunPhase.IDLE
    state: PipelineState = Field(default_factory=PipelineState)
    error: StageError | None = None
    events: list[PipelineEvent] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.phase == RunPhase.DONE

    def text(self, stage: StageName) -> str:
        return self.state.payload(stage)
