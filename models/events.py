from pydantic import BaseModel, Field


class PipelineEvent(BaseModel):
    """One status-line update, emitted before and after each external call.

    The CLI prints the message; the run keeps the full list for debugging.
    """

    stage: str   # e.g. "translate", or "pipeline" for run-level updates
    step: str    # e.g. "creating_translator"
    progress: float = Field(ge=0.0, le=1.0)
    message: str  # Human-readable status text
