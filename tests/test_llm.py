"""Tests for the LLM abstractions and retry helpers in :mod:`storyweaver.llm`."""

from __future__ import annotations

from typing import List

import pytest

from storyweaver.llm import (
    LLMErrorCategory,
    LLMErrorClassifier,
    LLMMessage,
    LLMResponse,
    LLMRetryPolicy,
    LLMTimeoutError,
    call_with_retries,
)


def test_message_validation_and_normalisation() -> None:
    message = LLMMessage(role=" User ", content="  Hello  ")

    assert message.role == "user"
    assert message.content == "Hello"


@pytest.mark.parametrize("field", ["role", "content"])
def test_message_validation_rejects_empty_strings(field: str) -> None:
    kwargs = {"role": "user", "content": "text", field: "   "}

    with pytest.raises(ValueError):
        LLMMessage(**kwargs)


def test_response_filters_usage_and_is_immutable() -> None:
    response = LLMResponse(
        message=LLMMessage(role="assistant", content="Hi"),
        usage={"prompt_tokens": 3, "cached": True, "note": "x"},
        metadata={"id": 7},
    )

    assert dict(response.usage) == {"prompt_tokens": 3}
    assert dict(response.metadata) == {"id": "7"}
    with pytest.raises(TypeError):
        response.usage["prompt_tokens"] = 4  # type: ignore[index]


def test_complete_prompt_prepends_system_prompt(mock_llm_client) -> None:
    mock_llm_client.queue_response("ok")

    mock_llm_client.complete_prompt("Hello", system_prompt="Be brief", temperature=0.2)

    (messages,) = mock_llm_client.calls
    assert [(m.role, m.content) for m in messages] == [
        ("system", "Be brief"),
        ("user", "Hello"),
    ]
    assert mock_llm_client.temperatures == [0.2]


def test_default_classifier_treats_timeouts_as_transient() -> None:
    classifier = LLMErrorClassifier.default()

    assert classifier.classify(LLMTimeoutError()) is LLMErrorCategory.TRANSIENT
    assert classifier.classify(ConnectionError()) is LLMErrorCategory.TRANSIENT
    assert classifier.classify(ValueError()) is LLMErrorCategory.FATAL


def test_error_classifier_validates_exception_types() -> None:
    classifier = LLMErrorClassifier()

    with pytest.raises(ValueError):
        classifier.register(LLMErrorCategory.TRANSIENT)

    with pytest.raises(TypeError):
        classifier.register(LLMErrorCategory.TRANSIENT, object)  # type: ignore[arg-type]


def test_retry_policy_backoff_is_capped() -> None:
    policy = LLMRetryPolicy(initial_backoff=1.0, backoff_multiplier=3.0, max_backoff=5.0)

    assert [policy.compute_backoff(n) for n in (1, 2, 3)] == [1.0, 3.0, 5.0]
    with pytest.raises(ValueError):
        LLMRetryPolicy(max_attempts=0)


def test_call_with_retries_recovers_from_transient_error() -> None:
    attempts: List[int] = []
    sleeps: List[float] = []

    def operation() -> str:
        attempts.append(len(attempts))
        if len(attempts) == 1:
            raise TimeoutError("temporary glitch")
        return "ok"

    result = call_with_retries(
        operation,
        retry_policy=LLMRetryPolicy(max_attempts=3, initial_backoff=1.0),
        sleep=sleeps.append,
    )

    assert result == "ok"
    assert attempts == [0, 1]
    assert sleeps == [1.0]


def test_call_with_retries_respects_fatal_errors() -> None:
    sleeps: List[float] = []

    def operation() -> None:
        raise ValueError("fatal")

    with pytest.raises(ValueError):
        call_with_retries(operation, sleep=sleeps.append)

    assert sleeps == []


def test_call_with_retries_stops_after_max_attempts() -> None:
    sleeps: List[float] = []
    policy = LLMRetryPolicy(max_attempts=2, initial_backoff=1.0)

    def operation() -> None:
        raise TimeoutError("still broken")

    with pytest.raises(TimeoutError):
        call_with_retries(operation, retry_policy=policy, sleep=sleeps.append)

    assert sleeps == [1.0]
