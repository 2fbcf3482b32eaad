import logging
import re
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from models.capability import Capability

# BCP 47-ish: primary subtag plus optional region/script subtags ("en", "pt-BR", "zh-Hant")
LANGUAGE_CODE_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")

CAPABILITY_NAMES = frozenset(c.value for c in Capability)


class Settings(BaseSettings):
    openai_api_key: str | None = None
    openai_base_url: str | None = None

    extract_model: str = "gpt-4o-mini"
    text_model: str = "gpt-4o-mini"

    default_target_language: str = "en"
    default_source_language: str = "en"

    summary_type: Literal["key-points", "tldr", "teaser", "headline"] = "key-points"
    summary_format: Literal["plain-text", "markdown"] = "plain-text"
    summary_length: Literal["short", "medium", "long"] = "short"
    summary_context: str = "Make this concise and actionable for a traveler."

    enable_rewrite: bool = False
    rewrite_style: str = "simpler"

    disabled_capabilities: list[str] = []
    history_dir: Path | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MENULENS_",
        env_file_encoding="utf-8",
    )

    @field_validator("default_target_language", "default_source_language")
    @classmethod
    def must_be_language_code(cls, v: str) -> str:
        if not LANGUAGE_CODE_RE.match(v):
            raise ValueError(f"not a language code: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def must_be_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v!r}")
        return level

    @field_validator("disabled_capabilities")
    @classmethod
    def must_name_capabilities(cls, v: list[str]) -> list[str]:
        unknown = sorted(set(v) - CAPABILITY_NAMES)
        if unknown:
            raise ValueError(f"unknown capabilities: {', '.join(unknown)}")
        return v

    @property
    def has_api_key(self) -> bool:
        return bool(self.openai_api_key)
