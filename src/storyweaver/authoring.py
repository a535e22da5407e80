"""Editor-side AI assistance: next-scene, choice and prose suggestions."""

from __future__ import annotations

import logging

from .errors import NotFoundError
from .generator import (
    ChoiceSuggestions,
    GenerationOutcome,
    SingleFlight,
    StoryGenerator,
    TextImprovement,
)
from .models import Choice, Scene, SceneUpdate, Story
from .playback import SceneProposal, propose_scene, splice_generated_scene
from .store import StoryStore

logger = logging.getLogger(__name__)


class StoryAssistant:
    """Run suggestion flows against a scene and apply accepted results.

    ``propose_*`` methods only talk to the generator; the matching ``add_*`` /
    ``apply_*`` methods write accepted suggestions through the store.
    """

    def __init__(self, store: StoryStore, generator: StoryGenerator) -> None:
        self._store = store
        self._generator = generator
        self._flight = SingleFlight()

    @property
    def busy(self) -> bool:
        return self._flight.busy

    def propose_next_scene(
        self, story_id: str, scene_id: str
    ) -> GenerationOutcome[SceneProposal]:
        story, scene = self._load(story_id, scene_id)
        _require_body(scene)
        with self._flight.claim("suggest scene"):
            return self._generator.attempt(
                propose_scene,
                self._generator,
                story,
                scene.body,
                story_summary=story.description or None,
            )

    def add_proposed_scene(
        self, story_id: str, origin_scene_id: str, proposal: SceneProposal
    ) -> tuple[Scene, Choice]:
        return splice_generated_scene(self._store, story_id, origin_scene_id, proposal)

    def replace_scene_body(
        self, story_id: str, scene_id: str, proposal: SceneProposal
    ) -> None:
        self._store.update_scene(story_id, scene_id, SceneUpdate(body=proposal.body))

    def suggest_next_scene(
        self, story_id: str, scene_id: str
    ) -> GenerationOutcome[Scene]:
        """Generate a follow-up scene and link it from ``scene_id`` in one step."""

        outcome = self.propose_next_scene(story_id, scene_id)
        if not outcome.ok:
            return GenerationOutcome(status=outcome.status, error=outcome.error)
        scene, _ = self.add_proposed_scene(story_id, scene_id, outcome.unwrap())
        logger.info("Added suggested scene %s after scene %s", scene.id, scene_id)
        return GenerationOutcome.success(scene)

    def propose_choices(
        self, story_id: str, scene_id: str
    ) -> GenerationOutcome[ChoiceSuggestions]:
        story, scene = self._load(story_id, scene_id)
        _require_body(scene)
        with self._flight.claim("suggest choices"):
            return self._generator.attempt(
                self._generator.suggest_choices,
                scene.body,
                story.description or None,
            )

    def add_suggested_choice(self, story_id: str, scene_id: str, text: str) -> Choice:
        return self._store.add_choice(story_id, scene_id, text)

    def propose_improved_text(
        self, story_id: str, scene_id: str
    ) -> GenerationOutcome[TextImprovement]:
        _, scene = self._load(story_id, scene_id)
        _require_body(scene)
        with self._flight.claim("improve text"):
            return self._generator.attempt(self._generator.improve_text, scene.body)

    def apply_improved_text(
        self, story_id: str, scene_id: str, improvement: TextImprovement
    ) -> None:
        self._store.update_scene(
            story_id, scene_id, SceneUpdate(body=improvement.improved_body)
        )

    def _load(self, story_id: str, scene_id: str) -> tuple[Story, Scene]:
        story = self._store.require_story(story_id)
        scene = story.find_scene(scene_id)
        if scene is None:
            raise NotFoundError("scene", scene_id)
        return story, scene


def _require_body(scene: Scene) -> None:
    if not scene.body.strip():
        raise ValueError(f"Scene '{scene.id}' has no text to work from yet")


__all__ = ["StoryAssistant"]
