"""Data model for branching stories: stories own scenes, scenes own choices."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Iterator


class _UnsetType:
    """Sentinel indicating that an optional update field was not provided."""

    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial representation
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _UnsetType()


def _validate_str(value: Any, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")
    return value


def _validate_optional_id(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string or None, got {type(value)!r}")
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string when provided")
    return stripped


@dataclass
class Choice:
    """A labelled edge from one scene to another, or unlinked when no target is set."""

    id: str
    text: str
    target_scene_id: str | None = None

    @property
    def is_linked(self) -> bool:
        return self.target_scene_id is not None


@dataclass
class Scene:
    """One narrative beat with body text and outgoing choices."""

    id: str
    title: str = ""
    body: str = ""
    choices: list[Choice] = field(default_factory=list)

    @property
    def is_ending(self) -> bool:
        """Return ``True`` when the scene offers no choices at all."""

        return not self.choices

    def find_choice(self, choice_id: str) -> Choice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


@dataclass
class Story:
    """Top-level aggregate and unit of persistence."""

    id: str
    title: str
    description: str
    scenes: list[Scene] = field(default_factory=list)
    start_scene_id: str | None = None

    def find_scene(self, scene_id: str | None) -> Scene | None:
        if scene_id is None:
            return None
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def resolve_scene(self, scene_id: str | None) -> Scene | None:
        """Resolve a possibly dangling reference to a scene of this story.

        Unset references and references to scenes that were deleted both
        resolve to ``None``.
        """

        return self.find_scene(scene_id)

    @property
    def start_scene(self) -> Scene | None:
        return self.resolve_scene(self.start_scene_id)

    def iter_choices(self) -> Iterator[tuple[Scene, Choice]]:
        for scene in self.scenes:
            for choice in scene.choices:
                yield scene, choice

    def clone(self) -> "Story":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class StoryUpdate:
    """Fields that may be merged into an existing :class:`Story`."""

    title: str = UNSET
    description: str = UNSET
    start_scene_id: str | None = UNSET

    def __post_init__(self) -> None:
        if self.title is not UNSET:
            _validate_str(self.title, field_name="title")
        if self.description is not UNSET:
            _validate_str(self.description, field_name="description")
        if self.start_scene_id is not UNSET:
            object.__setattr__(
                self,
                "start_scene_id",
                _validate_optional_id(self.start_scene_id, field_name="start_scene_id"),
            )

    def is_empty(self) -> bool:
        return all(
            value is UNSET
            for value in (self.title, self.description, self.start_scene_id)
        )

    def apply(self, story: Story) -> None:
        if self.title is not UNSET:
            story.title = self.title
        if self.description is not UNSET:
            story.description = self.description
        if self.start_scene_id is not UNSET:
            story.start_scene_id = self.start_scene_id


@dataclass(frozen=True)
class SceneUpdate:
    """Fields that may be merged into an existing :class:`Scene`.

    Replacing ``choices`` swaps the whole ordered sequence; the choices are
    copied so the caller keeps no handle into the stored graph.
    """

    title: str = UNSET
    body: str = UNSET
    choices: tuple[Choice, ...] = UNSET

    def __post_init__(self) -> None:
        if self.title is not UNSET:
            _validate_str(self.title, field_name="title")
        if self.body is not UNSET:
            _validate_str(self.body, field_name="body")
        if self.choices is not UNSET:
            choices = tuple(self.choices)
            seen: set[str] = set()
            for choice in choices:
                if not isinstance(choice, Choice):
                    raise TypeError(
                        f"choices must contain Choice instances, got {type(choice)!r}"
                    )
                if choice.id in seen:
                    raise ValueError(f"duplicate choice id: {choice.id}")
                seen.add(choice.id)
            object.__setattr__(self, "choices", choices)

    def is_empty(self) -> bool:
        return all(value is UNSET for value in (self.title, self.body, self.choices))

    def apply(self, scene: Scene) -> None:
        if self.title is not UNSET:
            scene.title = self.title
        if self.body is not UNSET:
            scene.body = self.body
        if self.choices is not UNSET:
            scene.choices = [copy.copy(choice) for choice in self.choices]


@dataclass(frozen=True)
class ChoiceUpdate:
    """Fields that may be merged into an existing :class:`Choice`.

    ``target_scene_id=None`` unlinks the choice.
    """

    text: str = UNSET
    target_scene_id: str | None = UNSET

    def __post_init__(self) -> None:
        if self.text is not UNSET:
            _validate_str(self.text, field_name="text")
        if self.target_scene_id is not UNSET:
            object.__setattr__(
                self,
                "target_scene_id",
                _validate_optional_id(
                    self.target_scene_id, field_name="target_scene_id"
                ),
            )

    def is_empty(self) -> bool:
        return self.text is UNSET and self.target_scene_id is UNSET

    def apply(self, choice: Choice) -> None:
        if self.text is not UNSET:
            choice.text = self.text
        if self.target_scene_id is not UNSET:
            choice.target_scene_id = self.target_scene_id


_WORD_SPLIT = re.compile(r"(\s+)")


def split_words(text: str) -> list[str]:
    """Split ``text`` into words and the whitespace runs between them.

    Joining the result reproduces ``text`` exactly, which lets presentation
    layers highlight individual words without losing formatting.
    """

    return [part for part in _WORD_SPLIT.split(text) if part]


__all__ = [
    "Choice",
    "ChoiceUpdate",
    "Scene",
    "SceneUpdate",
    "Story",
    "StoryUpdate",
    "UNSET",
    "split_words",
]
