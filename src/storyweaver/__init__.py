"""Core package for the StoryWeaver branching story toolkit."""

from .errors import (
    CannotStartPlayback,
    GenerationInProgressError,
    GeneratorError,
    MalformedGeneratorPayload,
    NotFoundError,
)
from .models import (
    UNSET,
    Choice,
    ChoiceUpdate,
    Scene,
    SceneUpdate,
    Story,
    StoryUpdate,
    split_words,
)
from .persistence import (
    FileSnapshotStore,
    InMemorySnapshotStore,
    StorySnapshotStore,
    load_stories,
    save_stories,
)
from .store import IdentifierFactory, StoryStore
from .llm import LLMClient, LLMClientError, LLMMessage, LLMResponse
from .generator import (
    ChoiceSuggestion,
    ChoiceSuggestions,
    GenerationOutcome,
    GenerationStatus,
    SceneSuggestion,
    StoryGenerator,
    TextImprovement,
)
from .playback import ChoiceView, PlaybackSession, PlaybackStatus, SceneProposal
from .authoring import StoryAssistant
from .analysis import (
    ReachabilityReport,
    StoryEdge,
    compute_reachability,
    dangling_choices,
    story_edges,
)
from .settings import StoryWeaverSettings

__all__ = [
    "UNSET",
    "Choice",
    "Scene",
    "Story",
    "StoryUpdate",
    "SceneUpdate",
    "ChoiceUpdate",
    "split_words",
    "NotFoundError",
    "CannotStartPlayback",
    "GenerationInProgressError",
    "GeneratorError",
    "MalformedGeneratorPayload",
    "StorySnapshotStore",
    "InMemorySnapshotStore",
    "FileSnapshotStore",
    "load_stories",
    "save_stories",
    "IdentifierFactory",
    "StoryStore",
    "LLMClient",
    "LLMClientError",
    "LLMMessage",
    "LLMResponse",
    "SceneSuggestion",
    "ChoiceSuggestion",
    "ChoiceSuggestions",
    "TextImprovement",
    "GenerationStatus",
    "GenerationOutcome",
    "StoryGenerator",
    "PlaybackStatus",
    "PlaybackSession",
    "ChoiceView",
    "SceneProposal",
    "StoryAssistant",
    "StoryEdge",
    "ReachabilityReport",
    "story_edges",
    "dangling_choices",
    "compute_reachability",
    "StoryWeaverSettings",
]
