"""Snapshot codec and persistence slots for the story collection."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .models import Choice, Scene, Story

logger = logging.getLogger(__name__)


def stories_to_payload(stories: Iterable[Story]) -> List[Dict[str, Any]]:
    """Return a JSON-serialisable representation of ``stories``."""

    return [
        {
            "id": story.id,
            "title": story.title,
            "description": story.description,
            "scenes": [
                {
                    "id": scene.id,
                    "title": scene.title,
                    "body": scene.body,
                    "choices": [
                        {
                            "id": choice.id,
                            "text": choice.text,
                            "targetSceneId": choice.target_scene_id,
                        }
                        for choice in scene.choices
                    ],
                }
                for scene in story.scenes
            ],
            "startSceneId": story.start_scene_id,
        }
        for story in stories
    ]


def stories_from_payload(payload: object) -> List[Story]:
    """Build stories from a decoded payload.

    Raises:
        ValueError: If the payload does not describe a list of stories.
    """

    if not isinstance(payload, list):
        raise ValueError("Invalid snapshot payload: expected a list of stories")
    return [_story_from_payload(entry) for entry in payload]


def save_stories(stories: Sequence[Story]) -> str:
    """Serialise ``stories`` into the text blob stored in the persistence slot."""

    return json.dumps(stories_to_payload(stories), ensure_ascii=False)


def load_stories(blob: str | bytes | None) -> List[Story]:
    """Restore stories from ``blob``.

    Missing or corrupt input yields an empty collection so callers always
    start from a valid story list.
    """

    if blob is None:
        return []
    if isinstance(blob, bytes):
        try:
            blob = blob.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Ignoring story snapshot that is not valid UTF-8")
            return []
    if not blob.strip():
        return []

    try:
        payload = json.loads(blob)
    except (json.JSONDecodeError, RecursionError) as exc:
        logger.warning("Ignoring corrupt story snapshot: %s", exc)
        return []

    try:
        return stories_from_payload(payload)
    except (TypeError, ValueError, RecursionError) as exc:
        logger.warning("Ignoring invalid story snapshot: %s", exc)
        return []


class StorySnapshotStore(ABC):
    """A single named slot holding the serialised story collection."""

    @abstractmethod
    def read(self) -> str | None:
        """Return the stored blob, or ``None`` when nothing was saved yet."""

    @abstractmethod
    def write(self, blob: str) -> None:
        """Replace the stored blob."""

    def load(self) -> List[Story]:
        return load_stories(self.read())

    def save(self, stories: Sequence[Story]) -> None:
        self.write(save_stories(stories))


class InMemorySnapshotStore(StorySnapshotStore):
    """Keep the snapshot in local process memory."""

    def __init__(self, blob: str | None = None) -> None:
        self.blob = blob
        self.writes = 0

    def read(self) -> str | None:
        return self.blob

    def write(self, blob: str) -> None:
        self.blob = blob
        self.writes += 1


class FileSnapshotStore(StorySnapshotStore):
    """Persist the snapshot as a JSON file on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read story snapshot '%s': %s", self.path, exc)
            return None

    def write(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling file first so a crash never leaves a truncated slot.
        handle, temp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(blob)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise


def _require_str(payload: Mapping[str, Any], key: str, *, context: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Invalid snapshot payload: {context} '{key}' must be a string")
    return value


def _optional_id(payload: Mapping[str, Any], key: str, *, context: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(
            f"Invalid snapshot payload: {context} '{key}' must be a string or null"
        )
    return value


def _require_list(payload: Mapping[str, Any], key: str, *, context: str) -> list[Any]:
    value = payload.get(key, [])
    if not isinstance(value, list):
        raise ValueError(f"Invalid snapshot payload: {context} '{key}' must be a list")
    return value


def _story_from_payload(entry: object) -> Story:
    if not isinstance(entry, Mapping):
        raise ValueError("Invalid snapshot payload: stories must be objects")

    scenes = [
        _scene_from_payload(scene)
        for scene in _require_list(entry, "scenes", context="story")
    ]
    return Story(
        id=_require_str(entry, "id", context="story"),
        title=_require_str(entry, "title", context="story"),
        description=_require_str(entry, "description", context="story"),
        scenes=scenes,
        start_scene_id=_optional_id(entry, "startSceneId", context="story"),
    )


def _scene_from_payload(entry: object) -> Scene:
    if not isinstance(entry, Mapping):
        raise ValueError("Invalid snapshot payload: scenes must be objects")

    choices: list[Choice] = []
    for choice in _require_list(entry, "choices", context="scene"):
        if not isinstance(choice, Mapping):
            raise ValueError("Invalid snapshot payload: choices must be objects")
        choices.append(
            Choice(
                id=_require_str(choice, "id", context="choice"),
                text=_require_str(choice, "text", context="choice"),
                target_scene_id=_optional_id(choice, "targetSceneId", context="choice"),
            )
        )

    return Scene(
        id=_require_str(entry, "id", context="scene"),
        title=_require_str(entry, "title", context="scene"),
        body=_require_str(entry, "body", context="scene"),
        choices=choices,
    )


__all__ = [
    "FileSnapshotStore",
    "InMemorySnapshotStore",
    "StorySnapshotStore",
    "load_stories",
    "save_stories",
    "stories_from_payload",
    "stories_to_payload",
]
