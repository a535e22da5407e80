"""Prompt an LLM for scene, choice and prose suggestions."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterator, Mapping, Sequence, TypeVar

from .errors import (
    GenerationInProgressError,
    GeneratorError,
    MalformedGeneratorPayload,
)
from .llm import (
    LLMClient,
    LLMClientError,
    LLMErrorClassifier,
    LLMRetryPolicy,
    call_with_retries,
)

logger = logging.getLogger(__name__)

CREATIVE_TEMPERATURE = 0.8
IMPROVEMENT_TEMPERATURE = 0.7

WRITER_SYSTEM_PROMPT = (
    "You are a creative writing assistant. "
    "Always respond with valid JSON only, no additional text."
)
EDITOR_SYSTEM_PROMPT = (
    "You are a professional editor. "
    "Always respond with valid JSON only, no additional text."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class SceneSuggestion:
    title: str
    body: str


@dataclass(frozen=True)
class ChoiceSuggestion:
    text: str


@dataclass(frozen=True)
class ChoiceSuggestions:
    choices: tuple[ChoiceSuggestion, ...] = ()

    def texts(self) -> list[str]:
        return [choice.text for choice in self.choices]


@dataclass(frozen=True)
class TextImprovement:
    improved_body: str


class GenerationStatus(str, Enum):
    """How a generation request ended."""

    SUCCESS = "success"
    TRANSPORT_FAILURE = "transport_failure"
    SCHEMA_FAILURE = "schema_failure"


T = TypeVar("T")


@dataclass(frozen=True)
class GenerationOutcome(Generic[T]):
    """Explicit result of a generation request.

    ``SUCCESS`` carries a ``value``; the failure statuses carry a user-facing
    ``error`` message and guarantee that no graph state was changed.
    """

    status: GenerationStatus
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is GenerationStatus.SUCCESS

    @classmethod
    def success(cls, value: T) -> "GenerationOutcome[T]":
        return cls(status=GenerationStatus.SUCCESS, value=value)

    @classmethod
    def failure(cls, error: GeneratorError) -> "GenerationOutcome[T]":
        status = (
            GenerationStatus.SCHEMA_FAILURE
            if isinstance(error, MalformedGeneratorPayload)
            else GenerationStatus.TRANSPORT_FAILURE
        )
        return cls(status=status, error=str(error))

    def unwrap(self) -> T:
        if not self.ok or self.value is None:
            raise GeneratorError(self.error or "generation failed")
        return self.value


class SingleFlight:
    """Refuse overlapping generation requests from the same caller."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def claim(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgressError(
                f"Cannot start '{operation}' while another generation is running"
            )
        try:
            yield
        finally:
            self._lock.release()


def build_scene_prompt(
    story_title: str,
    story_description: str,
    current_scene_body: str,
    story_summary: str | None = None,
) -> str:
    summary_line = f"Story Summary: {story_summary}" if story_summary else ""
    return (
        "You are a creative writing assistant helping to continue an interactive story.\n\n"
        f"Story Title: {story_title}\n"
        f"Story Description: {story_description}\n"
        f"{summary_line}\n\n"
        "Current Scene:\n"
        f"{current_scene_body}\n\n"
        "Please suggest the next scene that naturally continues this story. "
        "The scene should:\n"
        "- Maintain consistency with the story's tone and style\n"
        "- Create interesting narrative progression\n"
        "- Leave room for branching choices\n\n"
        "Return your response as valid JSON with this exact structure:\n"
        '{\n  "title": "Scene Title Here",\n'
        '  "body": "Scene body text here with narrative description..."\n}'
    )


def build_choices_prompt(scene_body: str, story_context: str | None = None) -> str:
    context_line = f"Story Context: {story_context}" if story_context else ""
    return (
        "You are a creative writing assistant helping to create branching choices "
        "for an interactive story.\n\n"
        f"{context_line}\n\n"
        "Current Scene:\n"
        f"{scene_body}\n\n"
        "Please suggest 2-4 distinct choices that the reader could make at this "
        "point in the story. Each choice should:\n"
        "- Lead to a different narrative direction\n"
        "- Be clear and actionable\n"
        "- Create interesting story possibilities\n"
        "- Be concise (one sentence each)\n\n"
        "Return your response as valid JSON with this exact structure:\n"
        '{\n  "choices": [\n    { "text": "Choice text 1" },\n'
        '    { "text": "Choice text 2" },\n    { "text": "Choice text 3" }\n  ]\n}'
    )


def build_improvement_prompt(scene_body: str) -> str:
    return (
        "You are a professional editor helping to improve story prose.\n\n"
        "Original Text:\n"
        f"{scene_body}\n\n"
        "Please rewrite this text to improve:\n"
        "- Clarity and readability\n"
        "- Style and flow\n"
        "- Pacing and rhythm\n"
        "- Word choice and variety\n\n"
        "Important: Keep the same meaning, events, and story beats. "
        "Only improve the writing quality.\n\n"
        "Return your response as valid JSON with this exact structure:\n"
        '{\n  "improvedBody": "The improved version of the text here..."\n}'
    )


def _require_input(value: str, *, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


def _required_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedGeneratorPayload(
            f"Generator response is missing a non-empty '{key}' field"
        )
    return value.strip()


def parse_json_object(payload: str) -> Mapping[str, Any]:
    """Decode the JSON object contained in a model reply.

    Replies wrapped in markdown fences or surrounded by prose are accepted as
    long as they contain a single JSON object.
    """

    text = payload.strip()
    if not text:
        raise MalformedGeneratorPayload("Generator returned an empty response")

    match = _JSON_OBJECT.search(text)
    if match:
        text = match.group()

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        preview = text[:200] + "..." if len(text) > 200 else text
        raise MalformedGeneratorPayload(
            f"Generator expected JSON content. Received: {preview}"
        ) from exc

    if not isinstance(data, Mapping):
        raise MalformedGeneratorPayload("Generator response must be a JSON object")
    return data


class StoryGenerator:
    """The generator collaborator: three narrow suggestion operations."""

    def __init__(
        self,
        llm_client: LLMClient,
        *,
        creative_temperature: float = CREATIVE_TEMPERATURE,
        improvement_temperature: float = IMPROVEMENT_TEMPERATURE,
        retry_policy: LLMRetryPolicy | None = None,
        classifier: LLMErrorClassifier | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.creative_temperature = creative_temperature
        self.improvement_temperature = improvement_temperature
        self._retry_policy = retry_policy or LLMRetryPolicy()
        self._classifier = classifier or LLMErrorClassifier.default()
        self._sleep = sleep

    def suggest_scene(
        self,
        story_title: str,
        story_description: str,
        current_scene_body: str,
        story_summary: str | None = None,
    ) -> SceneSuggestion:
        prompt = build_scene_prompt(
            story_title,
            story_description,
            _require_input(current_scene_body, field_name="current_scene_body"),
            story_summary,
        )
        data = self._request(
            "suggest-scene",
            WRITER_SYSTEM_PROMPT,
            prompt,
            temperature=self.creative_temperature,
        )
        return SceneSuggestion(
            title=_required_field(data, "title"), body=_required_field(data, "body")
        )

    def suggest_choices(
        self, scene_body: str, story_context: str | None = None
    ) -> ChoiceSuggestions:
        prompt = build_choices_prompt(
            _require_input(scene_body, field_name="scene_body"), story_context
        )
        data = self._request(
            "suggest-choices",
            WRITER_SYSTEM_PROMPT,
            prompt,
            temperature=self.creative_temperature,
        )

        entries = data.get("choices")
        if not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
            raise MalformedGeneratorPayload(
                "Generator response is missing a 'choices' array"
            )

        choices: list[ChoiceSuggestion] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise MalformedGeneratorPayload("choice entries must be objects")
            choices.append(ChoiceSuggestion(text=_required_field(entry, "text")))
        return ChoiceSuggestions(choices=tuple(choices))

    def improve_text(self, scene_body: str) -> TextImprovement:
        prompt = build_improvement_prompt(
            _require_input(scene_body, field_name="scene_body")
        )
        data = self._request(
            "improve-text",
            EDITOR_SYSTEM_PROMPT,
            prompt,
            temperature=self.improvement_temperature,
        )
        return TextImprovement(improved_body=_required_field(data, "improvedBody"))

    def attempt(
        self, operation: Callable[..., T], *args: Any, **kwargs: Any
    ) -> GenerationOutcome[T]:
        """Run a generator operation and fold its failure into an outcome."""

        try:
            value = operation(*args, **kwargs)
        except GeneratorError as exc:
            return GenerationOutcome.failure(exc)
        return GenerationOutcome.success(value)

    def _request(
        self,
        operation: str,
        system_prompt: str,
        prompt: str,
        *,
        temperature: float,
    ) -> Mapping[str, Any]:
        start_time = time.monotonic()
        try:
            response = call_with_retries(
                lambda: self.llm_client.complete_prompt(
                    prompt, system_prompt=system_prompt, temperature=temperature
                ),
                retry_policy=self._retry_policy,
                classifier=self._classifier,
                sleep=self._sleep,
            )
        except (LLMClientError, TimeoutError, ConnectionError) as exc:
            logger.warning("Generator %s request failed: %s", operation, exc)
            raise GeneratorError(f"Generator request failed: {exc}") from exc

        logger.debug(
            "Generator %s completed in %.2fs (model=%s)",
            operation,
            time.monotonic() - start_time,
            response.metadata.get("model", "unknown"),
        )
        try:
            return parse_json_object(response.message.content)
        except GeneratorError as exc:
            logger.warning("Generator %s returned an unusable payload: %s", operation, exc)
            raise


__all__ = [
    "CREATIVE_TEMPERATURE",
    "ChoiceSuggestion",
    "ChoiceSuggestions",
    "GenerationOutcome",
    "GenerationStatus",
    "IMPROVEMENT_TEMPERATURE",
    "SceneSuggestion",
    "SingleFlight",
    "StoryGenerator",
    "TextImprovement",
    "build_choices_prompt",
    "build_improvement_prompt",
    "build_scene_prompt",
    "parse_json_object",
]
