"""Walk a story graph at play time and splice in generated scenes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from .errors import CannotStartPlayback, GeneratorError
from .generator import (
    GenerationOutcome,
    SceneSuggestion,
    SingleFlight,
    StoryGenerator,
)
from .models import Choice, Scene, Story, split_words
from .store import StoryStore

logger = logging.getLogger(__name__)


class PlaybackStatus(str, Enum):
    """Where a playback session currently stands."""

    NOT_STARTED = "not_started"
    PLAYING = "playing"
    ENDED = "ended"
    SCENE_MISSING = "scene_missing"


@dataclass(frozen=True)
class ChoiceView:
    """A choice as offered to the player; disabled choices cannot be selected."""

    id: str
    text: str
    target_scene_id: str | None
    enabled: bool


@dataclass(frozen=True)
class SceneProposal:
    """A generated scene that has not been added to the graph yet."""

    title: str
    body: str
    choice_texts: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_suggestion(
        cls, suggestion: SceneSuggestion, choice_texts: Sequence[str] = ()
    ) -> "SceneProposal":
        return cls(
            title=suggestion.title,
            body=suggestion.body,
            choice_texts=tuple(choice_texts),
        )

    @property
    def link_text(self) -> str:
        return f"Continue to {self.title}"


def splice_generated_scene(
    store: StoryStore,
    story_id: str,
    origin_scene_id: str,
    proposal: SceneProposal,
) -> tuple[Scene, Choice]:
    """Add ``proposal`` as a new scene reachable from ``origin_scene_id``.

    The new scene carries the proposal's choices (unlinked) and the origin
    scene gains one choice pointing at it, so generated content never forms
    an orphaned island.
    """

    return store.insert_linked_scene(
        story_id,
        origin_scene_id,
        title=proposal.title,
        body=proposal.body,
        choice_texts=proposal.choice_texts,
        link_text=proposal.link_text,
    )


def propose_scene(
    generator: StoryGenerator,
    story: Story,
    scene_body: str,
    *,
    story_summary: str | None = None,
    with_choices: bool = True,
) -> SceneProposal:
    """Ask the generator for the next scene and, optionally, its choices.

    Raises:
        GeneratorError: If any of the generator calls fails.
    """

    suggestion = generator.suggest_scene(
        story.title, story.description, scene_body, story_summary
    )
    choice_texts: list[str] = []
    if with_choices:
        suggestions = generator.suggest_choices(
            suggestion.body, story.description or None
        )
        choice_texts = suggestions.texts()
    return SceneProposal.from_suggestion(suggestion, choice_texts)


class PlaybackSession:
    """Drive a read-mostly walk over one story.

    The session only keeps a pointer to the current scene; the story itself is
    always read fresh from the store, so edits made while playing are visible
    and dangling references are detected when they are used.
    """

    def __init__(
        self,
        store: StoryStore,
        story_id: str,
        generator: StoryGenerator | None = None,
        *,
        suggest_choices: bool = True,
    ) -> None:
        self._store = store
        self.story_id = story_id
        self._generator = generator
        self._suggest_choices = suggest_choices
        self._flight = SingleFlight()
        self.current_scene_id: str | None = None

    @property
    def story(self) -> Story:
        return self._store.require_story(self.story_id)

    @property
    def busy(self) -> bool:
        """Return ``True`` while a generated scene is being requested."""

        return self._flight.busy

    def initialize(self) -> Scene:
        """Position the session on the story's start scene.

        Raises:
            CannotStartPlayback: If the story has no start scene or it was deleted.
        """

        story = self.story
        start = story.start_scene
        if start is None:
            self.current_scene_id = None
            raise CannotStartPlayback(story.id)
        self.current_scene_id = start.id
        logger.debug("Playback of story %s starts at scene %s", story.id, start.id)
        return start

    def restart(self) -> Scene:
        return self.initialize()

    def current_scene(self) -> Scene | None:
        if self.current_scene_id is None:
            return None
        return self.story.resolve_scene(self.current_scene_id)

    def status(self) -> PlaybackStatus:
        if self.current_scene_id is None:
            return PlaybackStatus.NOT_STARTED
        scene = self.current_scene()
        if scene is None:
            return PlaybackStatus.SCENE_MISSING
        if scene.is_ending:
            return PlaybackStatus.ENDED
        return PlaybackStatus.PLAYING

    def is_ending(self) -> bool:
        """Return ``True`` when the current scene ends the story."""

        return self.status() is PlaybackStatus.ENDED

    def choices(self) -> list[ChoiceView]:
        story = self.story
        scene = story.resolve_scene(self.current_scene_id)
        if scene is None:
            return []
        return [
            ChoiceView(
                id=choice.id,
                text=choice.text,
                target_scene_id=choice.target_scene_id,
                enabled=story.resolve_scene(choice.target_scene_id) is not None,
            )
            for choice in scene.choices
        ]

    def select_choice(self, choice_id: str) -> bool:
        """Follow ``choice_id`` from the current scene.

        Returns ``False`` without moving when the choice is unknown, unlinked
        or points at a scene that no longer exists.
        """

        story = self.story
        scene = story.resolve_scene(self.current_scene_id)
        if scene is None:
            return False
        choice = scene.find_choice(choice_id)
        if choice is None:
            return False
        target = story.resolve_scene(choice.target_scene_id)
        if target is None:
            logger.debug(
                "Choice %s is inert (target %r)", choice.id, choice.target_scene_id
            )
            return False
        self.current_scene_id = target.id
        return True

    def scene_words(self) -> list[str]:
        scene = self.current_scene()
        if scene is None:
            return []
        return split_words(scene.body)

    def custom_action(self, action: str) -> GenerationOutcome[Scene]:
        """Generate the next scene from a free-text player action.

        On success the new scene is added to the story, linked from the current
        scene and becomes current. On failure nothing changes.

        Raises:
            ValueError: If ``action`` is blank.
            GenerationInProgressError: If another generation is still running.
        """

        if not isinstance(action, str) or not action.strip():
            raise ValueError("action must be a non-empty string")
        action = action.strip()

        with self._flight.claim("custom action"):
            if self._generator is None:
                return GenerationOutcome.failure(
                    GeneratorError("AI assistance is not configured")
                )

            story = self.story
            origin = story.resolve_scene(self.current_scene_id)
            if origin is None:
                raise CannotStartPlayback(
                    story.id, "Cannot continue: the current scene no longer exists."
                )

            try:
                proposal = propose_scene(
                    self._generator,
                    story,
                    f"{origin.body}\n\nPlayer action: {action}",
                    story_summary=f'The player chose to: "{action}"',
                    with_choices=self._suggest_choices,
                )
            except GeneratorError as exc:
                return GenerationOutcome.failure(exc)

            scene, _ = splice_generated_scene(
                self._store, story.id, origin.id, proposal
            )
            self.current_scene_id = scene.id
            logger.info(
                "Generated scene %s from custom action in story %s", scene.id, story.id
            )
            return GenerationOutcome.success(scene)


__all__ = [
    "ChoiceView",
    "PlaybackSession",
    "PlaybackStatus",
    "SceneProposal",
    "propose_scene",
    "splice_generated_scene",
]
