"""Abstractions for calling chat-style language model providers."""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Sequence, TypeVar


def _validate_text(value: str, *, field_name: str) -> str:
    """Ensure text fields contain non-empty string values."""

    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")

    return stripped


@dataclass(frozen=True)
class LLMMessage:
    """A single chat message sent to or received from a model."""

    role: str
    content: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "role", _validate_text(self.role, field_name="role").lower()
        )
        object.__setattr__(
            self, "content", _validate_text(self.content, field_name="content")
        )


@dataclass(frozen=True)
class LLMResponse:
    """Result of a completion: the reply plus optional usage and metadata."""

    message: LLMMessage
    usage: Mapping[str, int] = field(default_factory=dict)
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        usage: dict[str, int] = {}
        for key, value in dict(self.usage or {}).items():
            if isinstance(value, int) and not isinstance(value, bool):
                usage[str(key)] = value
        metadata = {
            str(key): str(value) for key, value in dict(self.metadata or {}).items()
        }
        object.__setattr__(self, "usage", MappingProxyType(usage))
        object.__setattr__(self, "metadata", MappingProxyType(metadata))


class LLMClient(ABC):
    """Abstract interface encapsulating calls to an LLM provider."""

    @abstractmethod
    def complete(
        self, messages: Sequence[LLMMessage], *, temperature: float | None = None
    ) -> LLMResponse:
        """Generate a completion from a set of chat-style messages."""

    def complete_prompt(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Send ``prompt`` as a user message, optionally after a system message."""

        messages = []
        if system_prompt:
            messages.append(LLMMessage(role="system", content=system_prompt))
        messages.append(LLMMessage(role="user", content=prompt))
        return self.complete(messages, temperature=temperature)


class LLMClientError(RuntimeError):
    """Base exception raised when the LLM client encounters a failure."""


class LLMTimeoutError(LLMClientError):
    """Raised when the provider did not answer within the configured timeout."""


class LLMErrorCategory(str, Enum):
    """High-level categories used to classify LLM failures."""

    TRANSIENT = "transient"
    RATE_LIMIT = "rate_limit"
    FATAL = "fatal"

    def is_retryable(self) -> bool:
        return self in {self.TRANSIENT, self.RATE_LIMIT}


class LLMErrorClassifier:
    """Map exceptions raised by a provider onto :class:`LLMErrorCategory`."""

    def __init__(
        self,
        *,
        default_category: LLMErrorCategory = LLMErrorCategory.FATAL,
        rules: Sequence[tuple[LLMErrorCategory, type[Exception]]] | None = None,
    ) -> None:
        self._default_category = default_category
        self._rules: list[tuple[type[Exception], LLMErrorCategory]] = []

        for category, exc_type in rules or ():
            self.register(category, exc_type)

    def register(
        self, category: LLMErrorCategory, *exception_types: type[Exception]
    ) -> None:
        if not exception_types:
            raise ValueError("at least one exception type must be provided")

        for exc_type in exception_types:
            if not isinstance(exc_type, type) or not issubclass(exc_type, Exception):
                raise TypeError(
                    f"exception_types must be Exception subclasses, got {exc_type!r}"
                )
            self._rules.append((exc_type, category))

    def classify(self, error: Exception) -> LLMErrorCategory:
        for exc_type, category in self._rules:
            if isinstance(error, exc_type):
                return category
        return self._default_category

    @classmethod
    def default(cls) -> "LLMErrorClassifier":
        """Treat timeouts and dropped connections as retryable."""

        return cls(
            rules=[
                (LLMErrorCategory.TRANSIENT, LLMTimeoutError),
                (LLMErrorCategory.TRANSIENT, TimeoutError),
                (LLMErrorCategory.TRANSIENT, ConnectionError),
            ]
        )


@dataclass(frozen=True)
class LLMRetryPolicy:
    """Configuration controlling retry behaviour for LLM calls."""

    max_attempts: int = 2
    initial_backoff: float = 0.5
    backoff_multiplier: float = 2.0
    max_backoff: float = 8.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_backoff < 0:
            raise ValueError("initial_backoff must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.max_backoff < 0:
            raise ValueError("max_backoff must be non-negative")
        if self.jitter < 0:
            raise ValueError("jitter must be non-negative")

    def compute_backoff(
        self, attempt: int, *, random_func: Callable[[], float] | None = None
    ) -> float:
        """Return the backoff delay for ``attempt`` (1-indexed)."""

        if attempt < 1:
            raise ValueError("attempt must be >= 1")

        base_delay = self.initial_backoff * (self.backoff_multiplier ** (attempt - 1))
        delay = min(base_delay, self.max_backoff)
        if self.jitter <= 0 or delay == 0:
            return delay

        rng = random_func or random.random
        offset = (rng() * 2 - 1) * (delay * self.jitter)
        return max(0.0, delay + offset)


T = TypeVar("T")


def call_with_retries(
    operation: Callable[[], T],
    *,
    retry_policy: LLMRetryPolicy | None = None,
    classifier: LLMErrorClassifier | None = None,
    sleep: Callable[[float], None] | None = None,
    random_func: Callable[[], float] | None = None,
) -> T:
    """Execute ``operation``, retrying retryable failures with backoff."""

    policy = retry_policy or LLMRetryPolicy()
    error_classifier = classifier or LLMErrorClassifier.default()
    sleep_fn = sleep or time.sleep

    attempt = 1
    while True:
        try:
            return operation()
        except Exception as error:
            category = error_classifier.classify(error)
            if not category.is_retryable() or attempt >= policy.max_attempts:
                raise

            delay = policy.compute_backoff(attempt, random_func=random_func)
            if delay > 0:
                sleep_fn(delay)
            attempt += 1


__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMErrorCategory",
    "LLMErrorClassifier",
    "LLMMessage",
    "LLMResponse",
    "LLMRetryPolicy",
    "LLMTimeoutError",
    "call_with_retries",
]
