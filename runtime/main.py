"""
Interactive story runner.

Loads (or starts) an adventure for a player character and applies narrator
text typed at the prompt, printing what each directive did. Useful for
exercising adventure content without the LLM layer.
"""

import logging
from typing import Optional

from backend.story.context import StoryContext
from backend.story.story_state import get_progress_summary
from runtime.router import StoryRouter, TurnResult
import config


def setup_logging(debug: bool = False, level: Optional[str] = None) -> None:
    """Set up logging for the story runner."""
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, (level or config.STORY_LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def describe_turn(result: TurnResult) -> str:
    """Human-readable summary of what a turn changed."""
    lines = [result.narration] if result.narration else []

    if not result.success:
        lines.append(f"❌ {result.error_message}")
    if result.transition is not None and result.transition.ok:
        kind = "Flashback to" if result.transition.is_flashback else "Scene"
        lines.append(f"[{kind}: {result.transition.new_scene}]")
        for email in result.transition.emails_triggered:
            lines.append(f"[Email from {email['from']}: {email['subject']}]")
    if result.montage is not None:
        titles = ", ".join(scene["title"] or scene["id"] for scene in result.montage.scenes)
        lines.append(f"[Montage: {titles}]")
    if result.check is not None:
        lines.append(result.check_summary)
    if result.beat_completed:
        lines.append(f"[Beat complete: {result.beat_completed}]")
    if result.decision is not None:
        lines.append(f"[Decision: {result.decision.id} = {result.decision.choice}]")
    if result.npc_id:
        lines.append(f"[Talking to: {result.npc_id}]")
    for message in result.messages:
        lines.append(f"[Message from {message.from_npc}: {message.subject}]")

    return "\n".join(lines)


def run_story(adventure_id: str, pc_id: str, debug: bool = False) -> None:
    """
    Run the interactive story loop.

    Args:
        adventure_id: Adventure to play
        pc_id: Player character id
        debug: Enable debug logging
    """
    setup_logging(debug)

    context = StoryContext.from_config()
    router = StoryRouter(context)
    state = context.story_states.load_or_create(context.repository, adventure_id, pc_id)

    progress = get_progress_summary(context.repository, state)
    print("=" * 60)
    print(f"{progress['adventure']} - {progress['act']}")
    print(f"Scene: {progress['scene']} ({progress['game_date']})")
    print("=" * 60)
    print("Enter narrator text with directive tags, e.g. [SCENE: ship-repairs, TIME: +3d]")
    print("Type 'quit' or 'exit' to stop.")

    while True:
        try:
            text = input("\n> ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break

        if not text:
            continue
        if text.lower() in ["quit", "exit", "q"]:
            break

        result = router.apply_narration(state, text)
        print(describe_turn(result))

    context.story_states.save(state)
    print(f"Saved {adventure_id}/{pc_id} at {state.current_scene} ({state.game_date})")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Apply narrator turns to an adventure")
    parser.add_argument("adventure", help="Adventure id")
    parser.add_argument("pc", help="Player character id")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    run_story(args.adventure, args.pc, debug=args.debug)


if __name__ == "__main__":
    main()
