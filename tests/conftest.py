"""Test configuration for the StoryWeaver project."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import itertools
import json
from collections.abc import Mapping, Sequence
from typing import Any, Callable

import pytest

from storyweaver.generator import StoryGenerator
from storyweaver.llm import LLMClient, LLMMessage, LLMResponse, LLMRetryPolicy
from storyweaver.models import ChoiceUpdate, SceneUpdate, StoryUpdate
from storyweaver.persistence import InMemorySnapshotStore
from storyweaver.store import StoryStore


class MockLLMClient(LLMClient):
    """Deterministic LLM client used in tests to avoid real API calls.

    Queued exceptions are raised instead of returned, which lets tests
    simulate transport failures mid-sequence.
    """

    def __init__(
        self,
        responses: Sequence[LLMResponse | str | Exception] | None = None,
    ) -> None:
        self.calls: list[list[LLMMessage]] = []
        self.temperatures: list[float | None] = []
        self._responses: list[LLMResponse | Exception] = []

        if responses:
            for response in responses:
                self.queue_response(response)

    def queue_response(
        self,
        response: LLMResponse | str | Exception,
        *,
        role: str = "assistant",
        usage: Mapping[str, int] | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Append a response that will be returned on the next call."""

        if isinstance(response, (LLMResponse, Exception)):
            payload = response
        else:
            message = LLMMessage(role=role, content=response)
            payload = LLMResponse(
                message=message,
                usage=dict(usage or {}),
                metadata=dict(metadata or {}),
            )

        self._responses.append(payload)

    def queue_json(self, payload: Mapping[str, Any]) -> None:
        self.queue_response(json.dumps(payload))

    @property
    def remaining(self) -> int:
        return len(self._responses)

    def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        temperature: float | None = None,
    ) -> LLMResponse:
        self.calls.append(list(messages))
        self.temperatures.append(temperature)
        if not self._responses:
            raise AssertionError(
                "MockLLMClient expected a queued response but none remain",
            )

        payload = self._responses.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


class SequentialIds:
    """Predictable identifier factory: ``id-1``, ``id-2`` and so on."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"id-{next(self._counter)}"


@pytest.fixture()
def mock_llm_client() -> MockLLMClient:
    """Return a deterministic mock client for use in tests."""

    return MockLLMClient()


@pytest.fixture()
def make_mock_llm_client() -> Any:
    """Factory fixture for creating mock LLM clients with canned responses."""

    def _factory(
        responses: Sequence[LLMResponse | str | Exception] | None = None,
    ) -> MockLLMClient:
        return MockLLMClient(responses=responses)

    return _factory


@pytest.fixture()
def generator(mock_llm_client: MockLLMClient) -> StoryGenerator:
    """Generator wired to ``mock_llm_client`` that never retries or sleeps."""

    return StoryGenerator(
        mock_llm_client,
        retry_policy=LLMRetryPolicy(max_attempts=1),
        sleep=lambda _: None,
    )


@pytest.fixture()
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture()
def store(snapshot_store: InMemorySnapshotStore) -> StoryStore:
    return StoryStore(snapshot_store=snapshot_store, id_factory=SequentialIds())


@pytest.fixture()
def build_story(store: StoryStore) -> Callable[..., dict[str, str]]:
    """Create a small story and return the identifiers of its parts.

    Layout::

        start --"Go left"--> left (ending)
              --"Go right"--> right (ending)
              --"Wander"-->   (unlinked)
    """

    def _build(*, with_start: bool = True) -> dict[str, str]:
        story = store.create_story("The Cave", "A short spelunking tale.")
        start = store.create_scene(story.id, "Entrance")
        left = store.create_scene(story.id, "Left Tunnel")
        right = store.create_scene(story.id, "Right Tunnel")
        store.update_scene(
            story.id, start.id, SceneUpdate(body="You stand at the mouth of a cave.")
        )
        store.update_scene(story.id, left.id, SceneUpdate(body="A dead end."))
        store.update_scene(story.id, right.id, SceneUpdate(body="Daylight!"))

        go_left = store.add_choice(story.id, start.id, "Go left")
        go_right = store.add_choice(story.id, start.id, "Go right")
        wander = store.add_choice(story.id, start.id, "Wander")
        store.update_choice(
            story.id, start.id, go_left.id, ChoiceUpdate(target_scene_id=left.id)
        )
        store.update_choice(
            story.id, start.id, go_right.id, ChoiceUpdate(target_scene_id=right.id)
        )
        if with_start:
            store.update_story(story.id, StoryUpdate(start_scene_id=start.id))

        return {
            "story": story.id,
            "start": start.id,
            "left": left.id,
            "right": right.id,
            "go_left": go_left.id,
            "go_right": go_right.id,
            "wander": wander.id,
        }

    return _build


__all__ = [
    "MockLLMClient",
    "SequentialIds",
    "mock_llm_client",
    "make_mock_llm_client",
]
