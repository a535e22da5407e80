"""Implementations of :class:`~storyweaver.llm.LLMClient` for hosted model APIs."""

from __future__ import annotations

from .openai import GITHUB_MODELS_BASE_URL, OpenAIChatClient

__all__ = ["GITHUB_MODELS_BASE_URL", "OpenAIChatClient"]
