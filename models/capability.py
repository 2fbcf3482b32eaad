from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from utils.openai_utils import strict_schema


class Capability(str, Enum):
    EXTRACTOR = "extractor"
    LANGUAGE_DETECTOR = "language_detector"
    TRANSLATOR = "translator"
    SUMMARIZER = "summarizer"
    REWRITER = "rewriter"


class Availability(str, Enum):
    """Static availability indicator reported by a capability provider."""

    AVAILABLE = "available"
    DOWNLOADABLE = "downloadable"
    UNAVAILABLE = "unavailable"


class DetectedLanguage(BaseModel):
    model_config = ConfigDict(json_schema_extra=strict_schema)

    language: str  # BCP 47 code, e.g. "en", "pt-BR"
    confidence: float = Field(ge=0.0, le=1.0)


class LanguageDetection(BaseModel):
    """Structured output of the language detector, best guess first.

    Used directly as `response_format` in `client.chat.completions.parse()`.
    """

    model_config = ConfigDict(json_schema_extra=strict_schema)

    candidates: list[DetectedLanguage] = Field(default_factory=list)


class SummarizerOptions(BaseModel):
    type: Literal["key-points", "tldr", "teaser", "headline"] = "key-points"
    format: Literal["plain-text", "markdown"] = "plain-text"
    length: Literal["short", "medium", "long"] = "short"
