"""Adapter that exposes OpenAI's chat completion API via :class:`LLMClient`."""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Sequence

from ..llm import LLMClient, LLMClientError, LLMMessage, LLMResponse, LLMTimeoutError

GITHUB_MODELS_BASE_URL = "https://models.inference.ai.azure.com"

JSON_RESPONSE_FORMAT: Mapping[str, str] = {"type": "json_object"}


def _require_str(value: str, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")
    return stripped


def _coerce_mapping(
    value: Mapping[str, Any] | MutableMapping[str, Any] | None,
) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError("default options must be a mapping of keyword arguments")
    return dict(value)


def _extract_attr(container: Any, name: str, default: Any | None = None) -> Any:
    if isinstance(container, Mapping):
        return container.get(name, default)
    return getattr(container, name, default)


def _normalise_message_content(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Sequence):
        text_parts = [
            str(item.get("text", ""))
            for item in payload
            if isinstance(item, Mapping) and item.get("type") == "text"
        ]
        if text_parts:
            return "".join(text_parts)
    raise LLMClientError("OpenAI response did not include textual content")


def _is_timeout(error: Exception) -> bool:
    if isinstance(error, TimeoutError):
        return True
    from openai import APITimeoutError

    return isinstance(error, APITimeoutError)


class OpenAIChatClient(LLMClient):
    """Concrete :class:`LLMClient` powered by the OpenAI Python SDK.

    Passing ``base_url=GITHUB_MODELS_BASE_URL`` with a GitHub token routes the
    same requests through GitHub Models. Requests ask for a JSON object reply
    unless ``default_options`` overrides ``response_format``.
    """

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: Any | None = None,
        default_options: Mapping[str, Any] | MutableMapping[str, Any] | None = None,
        **client_options: Any,
    ) -> None:
        self._model = _require_str(model, field_name="model")
        self._default_options = {"response_format": dict(JSON_RESPONSE_FORMAT)}
        self._default_options.update(_coerce_mapping(default_options))

        if client is None:
            try:
                from openai import OpenAI
            except ImportError as exc:  # pragma: no cover - depends on environment
                raise ImportError(
                    "OpenAIChatClient requires the 'openai' package. "
                    "Install it with 'pip install openai'."
                ) from exc

            init_kwargs: dict[str, Any] = dict(client_options)
            if api_key is not None:
                init_kwargs["api_key"] = api_key
            if base_url is not None:
                init_kwargs["base_url"] = base_url
            if timeout is not None:
                init_kwargs["timeout"] = timeout
            client = OpenAI(**init_kwargs)
        elif client_options:
            raise TypeError(
                "client_options cannot be provided when supplying a client instance"
            )
        elif timeout is not None:
            self._default_options.setdefault("timeout", timeout)
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        temperature: float | None = None,
    ) -> LLMResponse:
        payload: Any = [
            {"role": message.role, "content": message.content} for message in messages
        ]

        request_kwargs = dict(self._default_options)
        if temperature is not None:
            request_kwargs["temperature"] = temperature

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=payload,
                **request_kwargs,
            )
        except Exception as exc:
            if _is_timeout(exc):
                raise LLMTimeoutError("OpenAI completion timed out") from exc
            raise LLMClientError("OpenAI completion failed") from exc

        choices = _extract_attr(response, "choices")
        if not choices:
            raise LLMClientError("OpenAI completion returned no choices")
        message_payload = _extract_attr(choices[0], "message")
        if message_payload is None:
            raise LLMClientError("OpenAI completion missing message payload")

        content = _normalise_message_content(_extract_attr(message_payload, "content"))
        if not content.strip():
            raise LLMClientError("OpenAI completion returned empty content")
        role = _extract_attr(message_payload, "role", "assistant") or "assistant"

        usage_payload = _extract_attr(response, "usage") or {}
        if not isinstance(usage_payload, Mapping):
            usage_payload = {
                key: _extract_attr(usage_payload, key)
                for key in ("prompt_tokens", "completion_tokens", "total_tokens")
            }

        metadata: dict[str, str] = {}
        response_id = _extract_attr(response, "id")
        model_name = _extract_attr(response, "model")
        if isinstance(response_id, str) and response_id:
            metadata["id"] = response_id
        if isinstance(model_name, str) and model_name:
            metadata["model"] = model_name

        return LLMResponse(
            message=LLMMessage(role=str(role), content=content),
            usage=usage_payload,
            metadata=metadata,
        )


__all__ = ["GITHUB_MODELS_BASE_URL", "OpenAIChatClient"]
