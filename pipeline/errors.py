"""Error taxonomy for pipeline runs.

Capability providers raise these (or anything else); stages classify whatever
reaches them with `classify_error` at the point where the external call is made.
"""
from models.pipeline_state import ErrorKind, StageError

GENERIC_USER_MESSAGE = "Operation failed. See console for details."


class PipelineError(Exception):
    """Base class for classified pipeline failures."""

    kind: ErrorKind = ErrorKind.SERVICE_ERROR

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message

    def to_stage_error(self) -> StageError:
        return StageError(kind=self.kind, message=self.message, user_message=self.user_message)


class InputValidationError(PipelineError):
    kind = ErrorKind.VALIDATION


class CapabilityMissingError(PipelineError):
    """The named service is not registered in this environment."""

    kind = ErrorKind.CAPABILITY_MISSING

    def __init__(self, capability: str, label: str | None = None):
        label = label or capability
        super().__init__(f"{label} is not available in this environment.")
        self.capability = capability


class CapabilityUnavailableError(PipelineError):
    """The service is registered but disabled or unprovisioned."""

    kind = ErrorKind.CAPABILITY_UNAVAILABLE

    def __init__(self, capability: str, label: str | None = None):
        label = label or capability
        super().__init__(f"{label} is unavailable on this device.")
        self.capability = capability


class EmptyResultError(PipelineError):
    kind = ErrorKind.EMPTY_RESULT


class SecurityRestrictionError(PipelineError):
    """A privileged or system-level refusal surfaced by the service host."""

    kind = ErrorKind.SECURITY_RESTRICTION

    def __init__(self, name: str, detail: str | None = None):
        user_message = (
            f"API Operation Blocked: {name}. This usually means an on-device resource, "
            "security, or hardware restriction failed."
        )
        super().__init__(f"{name}: {detail}" if detail else name, user_message)
        self.name = name


class DetectorFailure(PipelineError):
    """Never surfaced; the translate stage recovers by falling back to a default."""

    kind = ErrorKind.DETECTOR_FAILURE


class PipelineBusyError(RuntimeError):
    """Raised when `PipelineRunner.run` is called while a run is in flight."""


def classify_error(exc: BaseException) -> StageError:
    """Map any exception from a capability call onto the error taxonomy."""
    if isinstance(exc, PipelineError):
        return exc.to_stage_error()
    return StageError(
        kind=ErrorKind.SERVICE_ERROR,
        message=str(exc) or type(exc).__name__,
        user_message=GENERIC_USER_MESSAGE,
    )
