"""Structural checks over a story graph: edges, dangling links, reachability."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Choice, Scene, Story


@dataclass(frozen=True)
class StoryEdge:
    """A linked choice drawn as an edge; ``broken`` when its target is gone."""

    source_scene_id: str
    choice_id: str
    label: str
    target_scene_id: str
    broken: bool


@dataclass(frozen=True)
class ReachabilityReport:
    """Scenes that can and cannot be reached from the start scene."""

    start_scene_id: str | None
    reachable_scenes: tuple[str, ...]
    unreachable_scenes: tuple[str, ...]

    @property
    def fully_connected(self) -> bool:
        return self.start_scene_id is not None and not self.unreachable_scenes


def story_edges(story: Story) -> list[StoryEdge]:
    """Return one edge per linked choice, in scene then choice order.

    Unlinked choices produce no edge. Choices whose target scene was deleted
    produce a broken edge instead of being repaired or dropped.
    """

    scene_ids = {scene.id for scene in story.scenes}
    return [
        StoryEdge(
            source_scene_id=scene.id,
            choice_id=choice.id,
            label=choice.text,
            target_scene_id=choice.target_scene_id,
            broken=choice.target_scene_id not in scene_ids,
        )
        for scene, choice in story.iter_choices()
        if choice.is_linked
    ]


def dangling_choices(story: Story) -> list[tuple[str, Choice]]:
    """Return ``(scene_id, choice)`` pairs whose target scene no longer exists."""

    scene_ids = {scene.id for scene in story.scenes}
    return [
        (scene.id, choice)
        for scene, choice in story.iter_choices()
        if choice.is_linked and choice.target_scene_id not in scene_ids
    ]


def ending_scenes(story: Story) -> list[Scene]:
    return [scene for scene in story.scenes if scene.is_ending]


def compute_reachability(story: Story) -> ReachabilityReport:
    """Walk the choice links from the start scene.

    Without a resolvable start scene nothing is reachable.
    """

    start = story.start_scene
    if start is None:
        return ReachabilityReport(
            start_scene_id=None,
            reachable_scenes=(),
            unreachable_scenes=tuple(scene.id for scene in story.scenes),
        )

    visited: set[str] = set()
    frontier = [start.id]
    while frontier:
        current = frontier.pop()
        if current in visited:
            continue
        visited.add(current)
        scene = story.find_scene(current)
        if scene is None:
            continue
        for choice in scene.choices:
            target = choice.target_scene_id
            if target is None or target in visited:
                continue
            if story.find_scene(target) is not None:
                frontier.append(target)

    return ReachabilityReport(
        start_scene_id=start.id,
        reachable_scenes=tuple(s.id for s in story.scenes if s.id in visited),
        unreachable_scenes=tuple(s.id for s in story.scenes if s.id not in visited),
    )


__all__ = [
    "ReachabilityReport",
    "StoryEdge",
    "compute_reachability",
    "dangling_choices",
    "ending_scenes",
    "story_edges",
]
