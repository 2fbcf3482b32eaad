"""Capability contracts, the provider registry and the availability probe.

Stages never check for services directly; they ask the registry. A capability
that was never registered is simply absent from this environment.
"""
import logging
from typing import Protocol, runtime_checkable

from models.capability import Availability, Capability, DetectedLanguage, SummarizerOptions
from pipeline.errors import SecurityRestrictionError

logger = logging.getLogger(__name__)


class ExtractorSession(Protocol):
    async def append(self, image: bytes) -> None: ...

    async def prompt(self, instruction: str, *, output_language: str | None = None) -> str: ...


class Extractor(Protocol):
    async def availability(self) -> Availability: ...

    async def create(self, *, expected_inputs: list[str], system_prompt: str) -> ExtractorSession: ...


class LanguageDetector(Protocol):
    async def detect(self, text: str) -> list[DetectedLanguage]: ...


class TranslatorSession(Protocol):
    async def translate(self, text: str) -> str: ...


class Translator(Protocol):
    async def create(self, *, source_language: str, target_language: str) -> TranslatorSession: ...


class SummarizerSession(Protocol):
    async def summarize(self, text: str, *, context: str | None = None) -> str: ...


class Summarizer(Protocol):
    async def availability(self) -> Availability: ...

    async def create(self, options: SummarizerOptions) -> SummarizerSession: ...


class Rewriter(Protocol):
    async def rewrite(self, text: str, *, style: str) -> str: ...


@runtime_checkable
class ReportsAvailability(Protocol):
    async def availability(self) -> Availability: ...


class CapabilityRegistry:
    """Name -> provider mapping injected into every run."""

    def __init__(self, providers: dict[Capability, object] | None = None):
        self._providers: dict[Capability, object] = {}
        for name, provider in (providers or {}).items():
            self.register(name, provider)

    def register(self, name: Capability | str, provider: object) -> None:
        self._providers[Capability(name)] = provider

    def unregister(self, name: Capability | str) -> None:
        self._providers.pop(Capability(name), None)

    def lookup(self, name: Capability | str):
        """Registered provider, or None when the capability is not registered."""
        return self._providers.get(Capability(name))

    def __contains__(self, name: Capability | str) -> bool:
        return Capability(name) in self._providers

    def names(self) -> list[Capability]:
        return list(self._providers)


async def probe(registry: CapabilityRegistry, name: Capability | str) -> Availability:
    """Availability of a capability. Fails closed on provider errors.

    Providers without an availability indicator count as available once registered.
    A host refusal (SecurityRestrictionError) is not an availability answer and
    propagates so the calling stage can report it as such.
    """
    provider = registry.lookup(name)
    if provider is None:
        return Availability.UNAVAILABLE
    if not isinstance(provider, ReportsAvailability):
        return Availability.AVAILABLE
    try:
        return Availability(await provider.availability())
    except SecurityRestrictionError:
        raise
    except Exception as exc:
        logger.warning("Availability check for %s failed: %s", Capability(name).value, exc)
        return Availability.UNAVAILABLE
