"""Command-line entry point for playing StoryWeaver stories."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence, TextIO

import uvicorn

from storyweaver import (
    CannotStartPlayback,
    ChoiceView,
    FileSnapshotStore,
    GenerationInProgressError,
    PlaybackSession,
    PlaybackStatus,
    Scene,
    Story,
    StoryStore,
    StoryWeaverSettings,
)
from storyweaver.analysis import (
    compute_reachability,
    dangling_choices,
    ending_scenes,
    story_edges,
)
from storyweaver.observability import configure_logging


class TranscriptLogger:
    """Structured writer that records CLI transcripts for debugging."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._turn = 0

    def log_player_input(self, text: str) -> None:
        """Record the player's latest command."""

        formatted = text if text else "(empty)"
        self._write(f"Player input: {formatted}")
        self._stream.flush()

    def log_scene(self, scene: Scene, choices: Sequence[ChoiceView]) -> None:
        """Record the scene shown to the player and the choices offered."""

        self._turn += 1
        self._write("")
        self._write(f"=== Turn {self._turn} ===")
        self._write(f"Scene: {scene.title} ({scene.id})")
        self._write("Body:")
        for line in scene.body.splitlines() or ("",):
            self._write(f"  {line}")

        if choices:
            self._write("Choices:")
            for choice in choices:
                target = choice.target_scene_id or "(unlinked)"
                state = "" if choice.enabled else " [disabled]"
                self._write(f"  {choice.text} -> {target}{state}")
        else:
            self._write("Choices: (none)")

        self._stream.flush()

    def log_note(self, text: str) -> None:
        self._write(f"Note: {text}")
        self._stream.flush()

    def _write(self, text: str) -> None:
        self._stream.write(f"{text}\n")


_HELP_LINES = (
    "Commands:",
    "  <number>      Follow the numbered choice",
    "  do <action>   Describe your own action and let the AI continue the story",
    "  restart       Return to the start scene",
    "  help          Show this overview",
    "  quit          End the session",
)


def _render_scene(
    session: PlaybackSession, transcript_logger: TranscriptLogger | None
) -> None:
    scene = session.current_scene()
    if scene is None:
        print("\nThe current scene no longer exists. Type 'restart' to begin again.")
        return

    choices = session.choices()
    if transcript_logger is not None:
        transcript_logger.log_scene(scene, choices)

    print()
    print(f"== {scene.title} ==")
    print(scene.body)
    print()

    if session.status() is PlaybackStatus.ENDED:
        print("The End")
        print("Type 'restart' to play again or 'quit' to leave.")
        return

    for index, choice in enumerate(choices, start=1):
        suffix = "" if choice.enabled else " (not linked)"
        print(f"  {index}. {choice.text}{suffix}")


def run_cli(
    session: PlaybackSession,
    *,
    transcript_logger: TranscriptLogger | None = None,
    allow_custom_actions: bool = True,
) -> None:
    """Drive a very small interactive loop using ``input``/``print``."""

    try:
        session.initialize()
    except CannotStartPlayback as exc:
        print(str(exc))
        return

    story = session.story
    print(f"Welcome to {story.title}!")
    if story.description:
        print(story.description)
    print("Type 'help' for a command overview or 'quit' to end the session.")

    _render_scene(session, transcript_logger)

    while True:
        try:
            raw = input("> ")
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        player_input = raw.strip()
        if transcript_logger is not None:
            transcript_logger.log_player_input(player_input)
        if not player_input:
            continue

        command, _, argument = player_input.partition(" ")
        command_lower = command.lower()

        if command_lower in {"quit", "exit", "q"}:
            print("Goodbye!")
            break

        if command_lower in {"help", "?"}:
            print()
            for line in _HELP_LINES:
                print(line)
            continue

        if command_lower == "restart":
            try:
                session.restart()
            except CannotStartPlayback as exc:
                print(f"\n{exc}")
                break
            _render_scene(session, transcript_logger)
            continue

        if command_lower == "do":
            action = argument.strip()
            if not action:
                print("\nUsage: do <action>")
                continue
            if not allow_custom_actions:
                print("\nCustom actions are disabled for this session.")
                continue
            if session.status() is not PlaybackStatus.PLAYING:
                print("\nThere is no scene to continue from. Type 'restart'.")
                continue
            print("\nThe story is unfolding...")
            try:
                outcome = session.custom_action(action)
            except GenerationInProgressError:
                print("A scene is already being generated. Please wait.")
                continue
            except CannotStartPlayback as exc:
                print(str(exc))
                continue
            if not outcome.ok:
                message = f"Failed to generate scene: {outcome.error}"
                print(message)
                if transcript_logger is not None:
                    transcript_logger.log_note(message)
                continue
            _render_scene(session, transcript_logger)
            continue

        if command.isdigit():
            if session.status() is not PlaybackStatus.PLAYING:
                print("\nThere are no choices to follow. Type 'restart'.")
                continue
            choices = session.choices()
            index = int(command) - 1
            if not 0 <= index < len(choices):
                print(f"\nChoose a number between 1 and {len(choices)}.")
                continue
            if not session.select_choice(choices[index].id):
                print("\nThat choice does not lead anywhere yet.")
                continue
            _render_scene(session, transcript_logger)
            continue

        print("\nUnrecognised command. Type 'help' for a command overview.")


def _describe_graph(story: Story) -> str:
    notes = [
        f"links: {len(story_edges(story))}",
        f"endings: {len(ending_scenes(story))}",
    ]
    broken = dangling_choices(story)
    if broken:
        notes.append(f"broken links: {len(broken)}")
    reachability = compute_reachability(story)
    if reachability.start_scene_id is None:
        notes.append("no start scene")
    elif reachability.unreachable_scenes:
        notes.append(f"unreachable scenes: {len(reachability.unreachable_scenes)}")
    return ", ".join(notes)


def _print_story_list(store: StoryStore) -> None:
    stories = store.list_stories()
    if not stories:
        print("No stories found.")
        return
    for story in stories:
        print(f"{story.id}\t{story.title} ({len(story.scenes)} scenes)")
        print(f"\t{_describe_graph(story)}")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="StoryWeaver story player")
    parser.add_argument(
        "--data-file",
        type=Path,
        help=(
            "Path to the story snapshot file. "
            "Defaults to STORYWEAVER_DATA_PATH when unset."
        ),
    )
    parser.add_argument(
        "--story-id",
        type=str,
        help="Identifier of the story to play (defaults to the first story).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the stories in the snapshot file and exit.",
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Disable AI-generated scenes for free-text actions.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Path to a transcript log capturing scenes, choices, and player input.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the AI suggestion API server instead of the player.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3001,
        help="Port where the API server should listen.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Play a stored story, or serve the suggestion API with ``--serve``."""

    args = _parse_args(argv)
    try:
        settings = StoryWeaverSettings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        raise SystemExit(2) from exc

    configure_logging(settings.log_level)

    if args.serve:
        uvicorn.run(
            "storyweaver.api.app:create_app",
            factory=True,
            host=args.host,
            port=args.port,
        )
        return

    data_path: Path = args.data_file or settings.data_path
    store = StoryStore.open(FileSnapshotStore(data_path))

    if args.list:
        _print_story_list(store)
        return

    stories = store.list_stories()
    if not stories:
        print(f"No stories found in '{data_path}'.")
        raise SystemExit(2)

    story_id = args.story_id or stories[0].id
    if store.get_story(story_id) is None:
        print(f"Story '{story_id}' was not found in '{data_path}'.")
        raise SystemExit(2)

    generator = None
    if not args.no_ai:
        settings.warn_if_unconfigured()
        generator = settings.create_generator()

    session = PlaybackSession(store, story_id, generator)

    transcript_logger: TranscriptLogger | None = None
    log_handle: TextIO | None = None
    try:
        if args.log_file is not None:
            args.log_file.parent.mkdir(parents=True, exist_ok=True)
            log_handle = args.log_file.open("a", encoding="utf-8")
            transcript_logger = TranscriptLogger(log_handle)

        run_cli(
            session,
            transcript_logger=transcript_logger,
            allow_custom_actions=not args.no_ai,
        )
    finally:
        if log_handle is not None:
            log_handle.close()


if __name__ == "__main__":
    main()
