"""Exception types shared across the story graph, playback and generator layers."""

from __future__ import annotations


class NotFoundError(KeyError):
    """Raised when a story, scene or choice identifier does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} '{identifier}' does not exist")
        self.kind = kind
        self.identifier = identifier

    def __str__(self) -> str:
        return str(self.args[0])


class CannotStartPlayback(RuntimeError):
    """Raised when a story has no start scene, or its start scene was deleted."""

    def __init__(self, story_id: str, message: str | None = None) -> None:
        super().__init__(
            message
            or "Cannot start story: no start scene is set. "
            "Set a start scene in the story editor first."
        )
        self.story_id = story_id


class GenerationInProgressError(RuntimeError):
    """Raised when a generation is requested while another one is outstanding."""


class GeneratorError(RuntimeError):
    """Base exception for failures of the text generation collaborator."""


class MalformedGeneratorPayload(GeneratorError):
    """Raised when the generator reply is not JSON or lacks required fields."""


__all__ = [
    "CannotStartPlayback",
    "GenerationInProgressError",
    "GeneratorError",
    "MalformedGeneratorPayload",
    "NotFoundError",
]
