"""Configuration helpers for the StoryWeaver backend and command-line player."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .generator import StoryGenerator
from .llm_providers import GITHUB_MODELS_BASE_URL, OpenAIChatClient

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_GITHUB_MODEL = "gpt-4o-mini"
DEFAULT_DATA_PATH = Path("storyweaver-stories.json")
DEFAULT_CORS_ORIGINS = ("http://localhost:5173",)


def _normalise_string(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _normalise_path(value: str | None, *, default: Path) -> Path:
    trimmed = _normalise_string(value)
    if trimmed is None:
        return default
    return Path(trimmed).expanduser()


def _parse_bool(value: str | None) -> bool:
    trimmed = _normalise_string(value)
    return trimmed is not None and trimmed.lower() in {"1", "true", "yes", "on"}


def _parse_positive_float(value: str | None, *, name: str, default: float) -> float:
    trimmed = _normalise_string(value)
    if trimmed is None:
        return default
    try:
        parsed = float(trimmed)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number.") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be greater than zero.")
    return parsed


def _parse_temperature(value: str | None, *, name: str, default: float) -> float:
    trimmed = _normalise_string(value)
    if trimmed is None:
        return default
    try:
        parsed = float(trimmed)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number.") from exc
    if not 0 <= parsed <= 2:
        raise ValueError(f"{name} must be between 0 and 2.")
    return parsed


@dataclass(frozen=True)
class StoryWeaverSettings:
    """Deployment settings read from environment variables.

    Empty strings are treated as if the variable was unset. A missing API key
    is not an error: the app still starts, and AI requests fail with a
    message until a key is configured.
    """

    use_github_models: bool = False
    api_key: str | None = None
    model: str = DEFAULT_OPENAI_MODEL
    creative_temperature: float = 0.8
    improvement_temperature: float = 0.7
    request_timeout: float = 60.0
    data_path: Path = DEFAULT_DATA_PATH
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"

    @property
    def base_url(self) -> str | None:
        return GITHUB_MODELS_BASE_URL if self.use_github_models else None

    @property
    def ai_configured(self) -> bool:
        return self.api_key is not None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> "StoryWeaverSettings":
        """Return settings populated from ``environ`` (defaults to ``os.environ``)."""

        source = environ if environ is not None else os.environ

        use_github_models = _parse_bool(source.get("USE_GITHUB_MODELS"))
        if use_github_models:
            api_key = _normalise_string(source.get("GITHUB_TOKEN"))
            default_model = DEFAULT_GITHUB_MODEL
        else:
            api_key = _normalise_string(source.get("OPENAI_API_KEY"))
            default_model = DEFAULT_OPENAI_MODEL

        cors_raw = _normalise_string(source.get("STORYWEAVER_CORS_ORIGINS"))
        if cors_raw is None:
            cors_origins = DEFAULT_CORS_ORIGINS
        else:
            cors_origins = tuple(
                origin.strip() for origin in cors_raw.split(",") if origin.strip()
            )

        log_level = _normalise_string(source.get("STORYWEAVER_LOG_LEVEL")) or "INFO"

        return cls(
            use_github_models=use_github_models,
            api_key=api_key,
            model=_normalise_string(source.get("STORYWEAVER_MODEL")) or default_model,
            creative_temperature=_parse_temperature(
                source.get("STORYWEAVER_CREATIVE_TEMPERATURE"),
                name="STORYWEAVER_CREATIVE_TEMPERATURE",
                default=0.8,
            ),
            improvement_temperature=_parse_temperature(
                source.get("STORYWEAVER_IMPROVEMENT_TEMPERATURE"),
                name="STORYWEAVER_IMPROVEMENT_TEMPERATURE",
                default=0.7,
            ),
            request_timeout=_parse_positive_float(
                source.get("STORYWEAVER_REQUEST_TIMEOUT"),
                name="STORYWEAVER_REQUEST_TIMEOUT",
                default=60.0,
            ),
            data_path=_normalise_path(
                source.get("STORYWEAVER_DATA_PATH"), default=DEFAULT_DATA_PATH
            ),
            cors_origins=cors_origins,
            log_level=log_level.upper(),
        )

    def create_generator(self) -> StoryGenerator | None:
        """Build the generator for the configured backend, or ``None`` without a key."""

        if not self.ai_configured:
            return None
        client = OpenAIChatClient(
            model=self.model,
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.request_timeout,
        )
        return StoryGenerator(
            client,
            creative_temperature=self.creative_temperature,
            improvement_temperature=self.improvement_temperature,
        )

    def warn_if_unconfigured(self) -> None:
        if self.ai_configured:
            return
        variable = "GITHUB_TOKEN" if self.use_github_models else "OPENAI_API_KEY"
        logger.warning(
            "%s environment variable is not set. AI features will not work.", variable
        )


__all__ = ["StoryWeaverSettings"]
