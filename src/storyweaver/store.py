"""Authoritative store for stories and the sole mutator of the story graph."""

from __future__ import annotations

import copy
import itertools
import logging
import secrets
import threading
import time
from typing import Callable, Iterable, List, TypeVar

from .errors import NotFoundError
from .models import Choice, ChoiceUpdate, Scene, SceneUpdate, Story, StoryUpdate
from .persistence import StorySnapshotStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SCENE_TITLE = "New Scene"
DEFAULT_CHOICE_TEXT = "New choice"


class IdentifierFactory:
    """Produce identifiers that are unique across stories, scenes and choices.

    Identifiers combine a millisecond timestamp, a process-wide counter and a
    random suffix, e.g. ``"1718031234567-1f-9c2ab4e1"``.
    """

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            sequence = next(self._counter)
        millis = int(self._clock() * 1000)
        return f"{millis}-{sequence:x}-{secrets.token_hex(4)}"


class StoryStore:
    """Own the collection of stories and expose every structural mutation.

    Each mutation works on a copy of the affected story and swaps it in only
    once it succeeded (and, with a ``snapshot_store``, once the new collection
    was written through). Readers receive deep copies, so they never observe a
    half-applied edit and cannot modify the graph behind the store's back.
    """

    def __init__(
        self,
        stories: Iterable[Story] | None = None,
        *,
        snapshot_store: StorySnapshotStore | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._stories: List[Story] = [story.clone() for story in stories or ()]
        self._snapshot_store = snapshot_store
        self._new_id = id_factory or IdentifierFactory()
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        snapshot_store: StorySnapshotStore,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> "StoryStore":
        """Load the persisted collection and keep writing changes through."""

        stories = snapshot_store.load()
        logger.info("Loaded %d stories from snapshot", len(stories))
        return cls(stories, snapshot_store=snapshot_store, id_factory=id_factory)

    # Queries -----------------------------------------------------------------

    def list_stories(self) -> List[Story]:
        with self._lock:
            return [story.clone() for story in self._stories]

    def get_story(self, story_id: str) -> Story | None:
        with self._lock:
            index = self._find_index(story_id)
            if index is None:
                return None
            return self._stories[index].clone()

    def require_story(self, story_id: str) -> Story:
        story = self.get_story(story_id)
        if story is None:
            raise NotFoundError("story", story_id)
        return story

    def __len__(self) -> int:
        with self._lock:
            return len(self._stories)

    def __contains__(self, story_id: object) -> bool:
        if not isinstance(story_id, str):
            return False
        with self._lock:
            return self._find_index(story_id) is not None

    # Stories -----------------------------------------------------------------

    def create_story(self, title: str, description: str) -> Story:
        """Append a story with no scenes and no start scene."""

        story = Story(
            id=self._new_id(),
            title=_require_text(title, field_name="title"),
            description=_require_text(description, field_name="description"),
        )
        with self._lock:
            self._commit([*self._stories, story])
        logger.debug("Created story %s", story.id)
        return story.clone()

    def update_story(self, story_id: str, update: StoryUpdate) -> None:
        """Merge ``update`` into the story; an empty update writes nothing."""

        def _apply(story: Story) -> None:
            update.apply(story)

        self._mutate(story_id, _apply, commit=not update.is_empty())
        logger.debug("Updated story %s", story_id)

    def delete_story(self, story_id: str) -> None:
        """Remove a story. Deleting an unknown story is a no-op."""

        with self._lock:
            index = self._find_index(story_id)
            if index is None:
                return
            remaining = list(self._stories)
            del remaining[index]
            self._commit(remaining)
        logger.debug("Deleted story %s", story_id)

    # Scenes ------------------------------------------------------------------

    def create_scene(self, story_id: str, title: str = DEFAULT_SCENE_TITLE) -> Scene:
        """Append an empty scene to the story and return a copy of it."""

        scene = Scene(id=self._new_id(), title=_require_text(title, field_name="title"))

        def _apply(story: Story) -> Scene:
            story.scenes.append(scene)
            return copy.deepcopy(scene)

        created = self._mutate(story_id, _apply)
        logger.debug("Created scene %s in story %s", scene.id, story_id)
        return created

    def update_scene(self, story_id: str, scene_id: str, update: SceneUpdate) -> None:
        """Merge ``update`` into the scene.

        Raises:
            NotFoundError: If the story or the scene does not exist.
        """

        def _apply(story: Story) -> None:
            update.apply(_require_scene(story, scene_id))

        self._mutate(story_id, _apply, commit=not update.is_empty())
        logger.debug("Updated scene %s in story %s", scene_id, story_id)

    def delete_scene(self, story_id: str, scene_id: str) -> None:
        """Remove a scene; choices elsewhere that point at it are left dangling."""

        def _apply(story: Story) -> bool:
            remaining = [scene for scene in story.scenes if scene.id != scene_id]
            if len(remaining) == len(story.scenes):
                return False
            story.scenes = remaining
            if story.start_scene_id == scene_id:
                story.start_scene_id = None
            return True

        if self._mutate(story_id, _apply, missing_ok=True):
            logger.debug("Deleted scene %s from story %s", scene_id, story_id)

    def insert_linked_scene(
        self,
        story_id: str,
        origin_scene_id: str,
        *,
        title: str,
        body: str,
        choice_texts: Iterable[str] = (),
        link_text: str,
    ) -> tuple[Scene, Choice]:
        """Append a populated scene and link it from ``origin_scene_id``.

        The new scene receives one unlinked choice per entry of
        ``choice_texts``; the origin scene receives exactly one new choice
        labelled ``link_text`` that targets the new scene. Everything is
        committed together or not at all.
        """

        texts = [_require_text(text, field_name="choice text") for text in choice_texts]
        scene = Scene(
            id=self._new_id(),
            title=_require_text(title, field_name="title"),
            body=_require_text(body, field_name="body"),
            choices=[Choice(id=self._new_id(), text=text) for text in texts],
        )
        link = Choice(
            id=self._new_id(),
            text=_require_text(link_text, field_name="link_text"),
            target_scene_id=scene.id,
        )

        def _apply(story: Story) -> tuple[Scene, Choice]:
            origin = _require_scene(story, origin_scene_id)
            story.scenes.append(scene)
            origin.choices.append(link)
            return copy.deepcopy(scene), copy.copy(link)

        created = self._mutate(story_id, _apply)
        logger.debug(
            "Inserted scene %s linked from scene %s in story %s",
            scene.id,
            origin_scene_id,
            story_id,
        )
        return created

    # Choices -----------------------------------------------------------------

    def add_choice(
        self, story_id: str, scene_id: str, text: str = DEFAULT_CHOICE_TEXT
    ) -> Choice:
        """Append an unlinked choice to the end of the scene's choice list."""

        choice = Choice(id=self._new_id(), text=_require_text(text, field_name="text"))

        def _apply(story: Story) -> Choice:
            _require_scene(story, scene_id).choices.append(choice)
            return copy.copy(choice)

        created = self._mutate(story_id, _apply)
        logger.debug("Added choice %s to scene %s", choice.id, scene_id)
        return created

    def update_choice(
        self, story_id: str, scene_id: str, choice_id: str, update: ChoiceUpdate
    ) -> None:
        """Change the label or target of a choice.

        The target is stored as given; it is not required to name an existing
        scene.
        """

        def _apply(story: Story) -> None:
            scene = _require_scene(story, scene_id)
            choice = scene.find_choice(choice_id)
            if choice is None:
                raise NotFoundError("choice", choice_id)
            update.apply(choice)

        self._mutate(story_id, _apply, commit=not update.is_empty())
        logger.debug("Updated choice %s in scene %s", choice_id, scene_id)

    def delete_choice(self, story_id: str, scene_id: str, choice_id: str) -> None:
        """Remove a choice. Unknown identifiers are ignored."""

        def _apply(story: Story) -> bool:
            scene = story.find_scene(scene_id)
            if scene is None:
                return False
            remaining = [choice for choice in scene.choices if choice.id != choice_id]
            if len(remaining) == len(scene.choices):
                return False
            scene.choices = remaining
            return True

        if self._mutate(story_id, _apply, missing_ok=True):
            logger.debug("Deleted choice %s from scene %s", choice_id, scene_id)

    # Internals ---------------------------------------------------------------

    def _find_index(self, story_id: str) -> int | None:
        for index, story in enumerate(self._stories):
            if story.id == story_id:
                return index
        return None

    def _mutate(
        self,
        story_id: str,
        mutation: Callable[[Story], T],
        *,
        missing_ok: bool = False,
        commit: bool = True,
    ) -> T:
        with self._lock:
            index = self._find_index(story_id)
            if index is None:
                if missing_ok:
                    return False  # type: ignore[return-value]
                raise NotFoundError("story", story_id)

            working = self._stories[index].clone()
            result = mutation(working)
            if missing_ok and result is False:
                return result
            if not commit:
                return result

            candidate = list(self._stories)
            candidate[index] = working
            self._commit(candidate)
            return result

    def _commit(self, stories: List[Story]) -> None:
        if self._snapshot_store is not None:
            self._snapshot_store.save(stories)
        self._stories = stories


def _require_scene(story: Story, scene_id: str) -> Scene:
    scene = story.find_scene(scene_id)
    if scene is None:
        raise NotFoundError("scene", scene_id)
    return scene


def _require_text(value: str, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")
    return value


__all__ = [
    "DEFAULT_CHOICE_TEXT",
    "DEFAULT_SCENE_TITLE",
    "IdentifierFactory",
    "StoryStore",
]
