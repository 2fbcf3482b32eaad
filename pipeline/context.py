"""What a stage gets to see: settings, capabilities and the UI it reports to."""
import logging
from dataclasses import dataclass, field
from typing import Literal, Protocol

from capabilities.registry import CapabilityRegistry
from models.events import PipelineEvent
from settings import Settings

logger = logging.getLogger(__name__)

Region = Literal["extracted", "translated", "summary", "simplified"]


class UIContext(Protocol):
    """Presentation surface. The pipeline never touches widgets directly."""

    def clear(self) -> None: ...

    def set_status(self, message: str) -> None: ...

    def show(self, region: Region, text: str) -> None: ...

    def alert(self, message: str) -> None: ...


class NullUI:
    """UIContext that discards everything; for library use without a screen."""

    def clear(self) -> None:
        pass

    def set_status(self, message: str) -> None:
        pass

    def show(self, region: Region, text: str) -> None:
        pass

    def alert(self, message: str) -> None:
        pass


@dataclass
class RunContext:
    settings: Settings
    registry: CapabilityRegistry
    ui: UIContext
    stage: str = "pipeline"
    progress: float = 0.0
    events: list[PipelineEvent] = field(default_factory=list)

    def status(self, message: str, step: str = "status") -> None:
        """Record a status event, log it and push it to the status line."""
        event = PipelineEvent(stage=self.stage, step=step, progress=self.progress, message=message)
        self.events.append(event)
        logger.info("[%s] %s", self.stage, message)
        self.ui.set_status(message)
