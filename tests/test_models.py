"""Tests for the story data model and update descriptors."""

from __future__ import annotations

import pytest

from storyweaver.models import (
    UNSET,
    Choice,
    ChoiceUpdate,
    Scene,
    SceneUpdate,
    Story,
    StoryUpdate,
    split_words,
)


def test_scene_without_choices_is_an_ending() -> None:
    scene = Scene(id="s1", title="Finale", body="It is over.")

    assert scene.is_ending
    scene.choices.append(Choice(id="c1", text="Again?"))
    assert not scene.is_ending


def test_unlinked_choice_still_prevents_ending() -> None:
    scene = Scene(id="s1", choices=[Choice(id="c1", text="Wait")])

    assert not scene.is_ending
    assert not scene.choices[0].is_linked


def test_story_resolves_dangling_references_to_none() -> None:
    story = Story(
        id="st",
        title="T",
        description="D",
        scenes=[Scene(id="a")],
        start_scene_id="missing",
    )

    assert story.resolve_scene("a") is story.scenes[0]
    assert story.resolve_scene("missing") is None
    assert story.resolve_scene(None) is None
    assert story.start_scene is None


def test_clone_is_independent() -> None:
    story = Story(
        id="st",
        title="T",
        description="D",
        scenes=[Scene(id="a", choices=[Choice(id="c", text="Go")])],
    )

    copy = story.clone()
    copy.scenes[0].choices[0].text = "Changed"

    assert story.scenes[0].choices[0].text == "Go"


def test_story_update_only_touches_provided_fields() -> None:
    story = Story(id="st", title="Old", description="Desc", start_scene_id="a")

    StoryUpdate(title="New").apply(story)

    assert story.title == "New"
    assert story.description == "Desc"
    assert story.start_scene_id == "a"


def test_story_update_can_clear_start_scene() -> None:
    story = Story(id="st", title="T", description="D", start_scene_id="a")

    StoryUpdate(start_scene_id=None).apply(story)

    assert story.start_scene_id is None


def test_update_rejects_blank_identifiers() -> None:
    with pytest.raises(ValueError):
        StoryUpdate(start_scene_id="  ")
    with pytest.raises(ValueError):
        ChoiceUpdate(target_scene_id="")


def test_update_rejects_non_string_text() -> None:
    with pytest.raises(TypeError):
        SceneUpdate(title=3)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        ChoiceUpdate(text=None)  # type: ignore[arg-type]


def test_empty_updates_are_detected() -> None:
    assert StoryUpdate().is_empty()
    assert SceneUpdate().is_empty()
    assert ChoiceUpdate().is_empty()
    assert not ChoiceUpdate(target_scene_id=None).is_empty()
    assert not UNSET


def test_scene_update_replaces_choices_with_copies() -> None:
    replacement = Choice(id="c2", text="Swim")
    scene = Scene(id="s", choices=[Choice(id="c1", text="Walk")])

    SceneUpdate(choices=[replacement]).apply(scene)
    replacement.text = "Mutated"

    assert [choice.id for choice in scene.choices] == ["c2"]
    assert scene.choices[0].text == "Swim"


def test_scene_update_rejects_duplicate_choice_ids() -> None:
    with pytest.raises(ValueError, match="duplicate"):
        SceneUpdate(choices=[Choice(id="c", text="a"), Choice(id="c", text="b")])


def test_choice_update_links_and_unlinks() -> None:
    choice = Choice(id="c", text="Go")

    ChoiceUpdate(target_scene_id="s2").apply(choice)
    assert choice.target_scene_id == "s2"

    ChoiceUpdate(target_scene_id=None).apply(choice)
    assert choice.target_scene_id is None


def test_split_words_keeps_whitespace_runs() -> None:
    text = "The  door\ncreaks open."

    parts = split_words(text)

    assert parts == ["The", "  ", "door", "\n", "creaks", " ", "open."]
    assert "".join(parts) == text
    assert split_words("") == []
