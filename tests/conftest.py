import io
import os

import pytest
from PIL import Image

from capabilities.registry import CapabilityRegistry
from fakes import (
    FakeExtractor,
    FakeLanguageDetector,
    FakeRewriter,
    FakeSummarizer,
    FakeTranslator,
    RecordingUI,
)
from models.capability import Capability
from pipeline.context import RunContext
from settings import Settings


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep a developer's MENULENS_* variables and .env file out of the tests."""
    for key in list(os.environ):
        if key.startswith("MENULENS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> Settings:
    """Settings with no API key: nothing reaches a real service in unit tests."""
    return Settings()


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def registry(extractor, translator, summarizer) -> CapabilityRegistry:
    """Extractor, translator and summarizer; no detector, no rewriter."""
    return CapabilityRegistry({
        Capability.EXTRACTOR: extractor,
        Capability.TRANSLATOR: translator,
        Capability.SUMMARIZER: summarizer,
    })


@pytest.fixture
def context(settings, registry, ui) -> RunContext:
    return RunContext(settings, registry, ui, stage="test")


@pytest.fixture
def jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (64, 48), "white").save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def detector() -> FakeLanguageDetector:
    return FakeLanguageDetector()


@pytest.fixture
def rewriter() -> FakeRewriter:
    return FakeRewriter()
