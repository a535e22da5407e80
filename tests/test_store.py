"""Tests for :mod:`storyweaver.store`."""

from __future__ import annotations

import pytest

from storyweaver.errors import NotFoundError
from storyweaver.models import ChoiceUpdate, SceneUpdate, StoryUpdate
from storyweaver.persistence import InMemorySnapshotStore, load_stories
from storyweaver.store import (
    DEFAULT_CHOICE_TEXT,
    DEFAULT_SCENE_TITLE,
    IdentifierFactory,
    StoryStore,
)


class ExplodingSnapshotStore(InMemorySnapshotStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def write(self, blob: str) -> None:
        if self.fail:
            raise OSError("disk full")
        super().write(blob)


def test_identifier_factory_produces_unique_ids() -> None:
    factory = IdentifierFactory(clock=lambda: 1_700_000_000.0)

    identifiers = {factory() for _ in range(500)}

    assert len(identifiers) == 500
    assert all(identifier.startswith("1700000000000-") for identifier in identifiers)


def test_create_story_starts_empty(store) -> None:
    story = store.create_story("Title", "Description")

    assert story.scenes == []
    assert story.start_scene_id is None
    assert [s.id for s in store.list_stories()] == [story.id]
    assert story.id in store
    assert len(store) == 1


def test_created_ids_are_distinct_across_kinds(store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id)
    choice = store.add_choice(story.id, scene.id)

    assert len({story.id, scene.id, choice.id}) == 3


def test_create_scene_and_choice_use_defaults(store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id)
    choice = store.add_choice(story.id, scene.id)

    assert scene.title == DEFAULT_SCENE_TITLE
    assert scene.body == ""
    assert choice.text == DEFAULT_CHOICE_TEXT
    assert choice.target_scene_id is None


def test_scenes_and_choices_keep_insertion_order(store) -> None:
    story = store.create_story("T", "D")
    first = store.create_scene(story.id, "One")
    second = store.create_scene(story.id, "Two")
    a = store.add_choice(story.id, first.id, "a")
    b = store.add_choice(story.id, first.id, "b")

    stored = store.require_story(story.id)

    assert [scene.id for scene in stored.scenes] == [first.id, second.id]
    assert [choice.id for choice in stored.scenes[0].choices] == [a.id, b.id]


def test_readers_receive_copies(store) -> None:
    story = store.create_story("T", "D")

    scene = store.create_scene(story.id, "Original")

    copy = store.require_story(story.id)
    copy.title = "Hacked"
    copy.scenes[0].title = "Hacked"
    scene.title = "Also hacked"

    stored = store.require_story(story.id)
    assert stored.title == "T"
    assert stored.scenes[0].title == "Original"


def test_update_story_on_missing_id_raises(store) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        store.update_story("nope", StoryUpdate(title="x"))

    assert excinfo.value.kind == "story"
    assert excinfo.value.identifier == "nope"


def test_update_scene_on_missing_scene_raises(store) -> None:
    story = store.create_story("T", "D")

    with pytest.raises(NotFoundError):
        store.update_scene(story.id, "ghost", SceneUpdate(body="x"))


def test_update_choice_on_missing_choice_raises(store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id)

    with pytest.raises(NotFoundError):
        store.update_choice(story.id, scene.id, "ghost", ChoiceUpdate(text="x"))


def test_delete_story_removes_only_that_story(store) -> None:
    keep = store.create_story("Keep", "D")
    drop = store.create_story("Drop", "D")

    store.delete_story(drop.id)

    assert [story.id for story in store.list_stories()] == [keep.id]


def test_deletes_of_missing_items_are_noops(store, snapshot_store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id)
    writes = snapshot_store.writes

    store.delete_story("ghost")
    store.delete_scene(story.id, "ghost")
    store.delete_scene("ghost", scene.id)
    store.delete_choice(story.id, scene.id, "ghost")
    store.delete_choice(story.id, "ghost", "ghost")

    assert snapshot_store.writes == writes
    assert store.require_story(story.id).scenes[0].id == scene.id


def test_deleting_start_scene_clears_start(store, build_story) -> None:
    ids = build_story()

    store.delete_scene(ids["story"], ids["start"])

    story = store.require_story(ids["story"])
    assert story.start_scene_id is None
    assert story.find_scene(ids["start"]) is None


def test_deleting_target_scene_leaves_choices_dangling(store, build_story) -> None:
    ids = build_story()

    store.delete_scene(ids["story"], ids["left"])

    story = store.require_story(ids["story"])
    go_left = story.find_scene(ids["start"]).find_choice(ids["go_left"])
    assert go_left is not None
    assert go_left.target_scene_id == ids["left"]
    assert story.resolve_scene(go_left.target_scene_id) is None


def test_linking_to_a_missing_scene_is_allowed(store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id)
    choice = store.add_choice(story.id, scene.id)

    store.update_choice(
        story.id, scene.id, choice.id, ChoiceUpdate(target_scene_id="elsewhere")
    )
    store.update_story(story.id, StoryUpdate(start_scene_id="also-elsewhere"))

    stored = store.require_story(story.id)
    assert stored.scenes[0].choices[0].target_scene_id == "elsewhere"
    assert stored.start_scene_id == "also-elsewhere"


def test_every_mutation_is_written_through(store, snapshot_store) -> None:
    story = store.create_story("T", "D")
    scene = store.create_scene(story.id, "Opening")
    store.update_scene(story.id, scene.id, SceneUpdate(body="Hello"))

    restored = load_stories(snapshot_store.blob)

    assert len(restored) == 1
    assert restored[0].scenes[0].title == "Opening"
    assert restored[0].scenes[0].body == "Hello"
    assert snapshot_store.writes == 3


def test_failed_write_leaves_store_unchanged() -> None:
    snapshot = ExplodingSnapshotStore()
    store = StoryStore(snapshot_store=snapshot)
    story = store.create_story("T", "D")
    snapshot.fail = True

    with pytest.raises(OSError):
        store.create_scene(story.id)
    with pytest.raises(OSError):
        store.update_story(story.id, StoryUpdate(title="Changed"))

    stored = store.require_story(story.id)
    assert stored.scenes == []
    assert stored.title == "T"


def test_open_loads_existing_snapshot(store, snapshot_store) -> None:
    story = store.create_story("Persisted", "D")

    reopened = StoryStore.open(snapshot_store)

    assert reopened.require_story(story.id).title == "Persisted"


def test_insert_linked_scene_adds_scene_and_back_link(store, build_story) -> None:
    ids = build_story()

    scene, link = store.insert_linked_scene(
        ids["story"],
        ids["right"],
        title="Meadow",
        body="Grass everywhere.",
        choice_texts=["Lie down", "Keep walking"],
        link_text="Continue to Meadow",
    )

    story = store.require_story(ids["story"])
    origin = story.find_scene(ids["right"])
    assert story.scenes[-1].id == scene.id
    assert [c.text for c in story.scenes[-1].choices] == ["Lie down", "Keep walking"]
    assert all(c.target_scene_id is None for c in story.scenes[-1].choices)
    assert origin.choices[-1].id == link.id
    assert origin.choices[-1].target_scene_id == scene.id
    assert link.text == "Continue to Meadow"


def test_insert_linked_scene_with_missing_origin_changes_nothing(
    store, build_story, snapshot_store
) -> None:
    ids = build_story()
    before = store.require_story(ids["story"])
    writes = snapshot_store.writes

    with pytest.raises(NotFoundError):
        store.insert_linked_scene(
            ids["story"],
            "ghost",
            title="Nowhere",
            body="...",
            link_text="Continue to Nowhere",
        )

    assert store.require_story(ids["story"]) == before
    assert snapshot_store.writes == writes


def test_add_then_delete_choice_restores_scene(store, build_story) -> None:
    ids = build_story()
    before = store.require_story(ids["story"]).find_scene(ids["start"])

    choice = store.add_choice(ids["story"], ids["start"], "Temporary")
    store.delete_choice(ids["story"], ids["start"], choice.id)

    after = store.require_story(ids["story"]).find_scene(ids["start"])
    assert after == before


def test_create_scene_adds_exactly_one_blank_scene(store, build_story) -> None:
    ids = build_story()
    count = len(store.require_story(ids["story"]).scenes)

    scene = store.create_scene(ids["story"])

    story = store.require_story(ids["story"])
    assert len(story.scenes) == count + 1
    assert story.scenes[-1].id == scene.id
    assert story.scenes[-1].body == ""
    assert story.scenes[-1].choices == []


def test_deleting_start_scene_leaves_other_scenes_untouched(store, build_story) -> None:
    ids = build_story()
    before = store.require_story(ids["story"])

    store.delete_scene(ids["story"], ids["start"])

    after = store.require_story(ids["story"])
    assert after.scenes == [s for s in before.scenes if s.id != ids["start"]]


def test_empty_updates_skip_the_snapshot_write(
    store, build_story, snapshot_store
) -> None:
    ids = build_story()
    writes = snapshot_store.writes

    store.update_story(ids["story"], StoryUpdate())
    store.update_scene(ids["story"], ids["start"], SceneUpdate())
    store.update_choice(ids["story"], ids["start"], ids["go_left"], ChoiceUpdate())

    assert snapshot_store.writes == writes
    with pytest.raises(NotFoundError):
        store.update_scene(ids["story"], "ghost", SceneUpdate())
