"""
Story State Store - adventure progress, flags, beats, decisions and stages.

The StoryState model (models/story.py) is mutated in place by the helpers in
this module and persisted by StoryStateStore, one JSON document per
(adventureId, pcId) pair. Decision and plot summaries are rendered here as
plain-text blocks for the prompt layer to embed.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from models.story import DEFAULT_GAME_DATE, Decision, StoryState, utc_now_iso
from .adventure_data import AdventureRepository
from .errors import ContentNotFoundError
from .persistence import JsonDocumentStore

logger = logging.getLogger(__name__)

FLAG_CONSEQUENCE_PREFIX = "flag_"


def create_story_state(
    repository: AdventureRepository,
    adventure_id: str,
    pc_id: str,
    default_game_date: str = DEFAULT_GAME_DATE,
) -> StoryState:
    """
    Create a fresh story state positioned at the adventure's starting scene.

    Raises:
        ContentNotFoundError: If the adventure or its starting scene is missing
    """
    adventure = repository.load_adventure(adventure_id)
    acts = adventure.get("acts") or []
    first_act = acts[0] if acts else None
    if isinstance(first_act, dict):
        first_act = first_act.get("id")
    timing = adventure.get("timing") or {}

    state = StoryState(
        adventure_id=adventure_id,
        pc_id=pc_id,
        current_act=first_act,
        current_scene=repository.get_starting_scene(adventure_id),
        game_date=timing.get("start_date") or default_game_date,
    )
    logger.info(
        f"Created story state for {adventure_id}/{pc_id} at scene {state.current_scene}"
    )
    return state


class StoryStateStore:
    """
    Persists story states under one directory, one file per adventure/PC pair.

    Saves are version-checked against ``StoryState.revision``: saving a state
    that another writer has already moved past raises StaleDocumentError
    instead of overwriting their progress.
    """

    def __init__(self, state_dir: Union[str, Path], default_game_date: str = DEFAULT_GAME_DATE):
        self.state_dir = Path(state_dir)
        self.default_game_date = default_game_date

    def path_for(self, adventure_id: str, pc_id: str) -> Path:
        return self.state_dir / f"{adventure_id}-{pc_id}.json"

    def _document(self, adventure_id: str, pc_id: str) -> JsonDocumentStore:
        return JsonDocumentStore(self.path_for(adventure_id, pc_id), dict)

    def save(self, state: StoryState) -> Path:
        """
        Write the whole state, stamping lastPlayed.

        Raises:
            StaleDocumentError: If the file changed since this state was loaded
            PersistenceError: If the file cannot be written
        """
        state.last_played = utc_now_iso()
        document = state.to_json_dict()
        document.pop("revision", None)

        store = self._document(state.adventure_id, state.pc_id)
        state.revision = store.write(document, expected_version=state.revision)
        logger.debug(
            f"Saved story state {state.adventure_id}/{state.pc_id} (revision {state.revision})"
        )
        return store.path

    def load(self, adventure_id: str, pc_id: str) -> Optional[StoryState]:
        """
        Load a saved state.

        Returns:
            The state, or None when no readable save exists
        """
        document, version = self._document(adventure_id, pc_id).read()
        if not document:
            return None
        try:
            state = StoryState.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid story state for {adventure_id}/{pc_id}: {e}")
            return None
        state.revision = version
        return state

    def load_or_create(
        self, repository: AdventureRepository, adventure_id: str, pc_id: str
    ) -> StoryState:
        state = self.load(adventure_id, pc_id)
        if state is None:
            state = create_story_state(
                repository, adventure_id, pc_id, self.default_game_date
            )
            # The next save overwrites any unusable file at its current stamp
            state.revision = self._document(adventure_id, pc_id).current_version()
        return state


# === FLAGS AND BEATS ===


def set_flag(state: StoryState, flag_name: str, value: Any) -> None:
    state.flags[flag_name] = value


def get_flag(state: Optional[StoryState], flag_name: str, default: Any = None) -> Any:
    if state is None:
        return default
    return state.flags.get(flag_name, default)


def record_beat(state: StoryState, beat_id: str, game_date: Optional[str] = None) -> bool:
    """
    Record a story beat as completed (once).

    Args:
        state: Story state
        beat_id: Beat identifier
        game_date: Optional in-game date; also moves the calendar to it

    Returns:
        True if the beat was newly completed
    """
    if game_date:
        state.game_date = game_date

    added = state.add_completed_beat(beat_id)
    if added:
        state.beat_timestamps[beat_id] = state.game_date
        logger.info(f"Beat complete: {beat_id} ({state.game_date})")
    return added


def is_beat_complete(state: StoryState, beat_id: str) -> bool:
    return beat_id in state.completed_beats


# === DECISIONS ===


def record_decision(
    state: StoryState,
    decision_id: str,
    choice: Any,
    details: Optional[str] = None,
    consequences: Optional[Dict[str, Any]] = None,
) -> Decision:
    """
    Record a player decision, overwriting any earlier decision with the same id.

    Consequences named ``flag_<name>`` set the story flag ``<name>``
    immediately; other consequences are stored for later lookup.
    """
    decision = Decision(
        id=decision_id,
        scene=state.current_scene or "unknown",
        choice=choice,
        details=details,
        consequences=dict(consequences or {}),
    )
    state.decisions[decision_id] = decision

    for key, value in decision.consequences.items():
        if key.startswith(FLAG_CONSEQUENCE_PREFIX):
            set_flag(state, key[len(FLAG_CONSEQUENCE_PREFIX):], value)

    logger.info(f"Decision recorded: {decision_id} = {choice}")
    return decision


def check_decision_made(state: Optional[StoryState], decision_id: str) -> bool:
    return state is not None and decision_id in state.decisions


def get_decision_consequence(
    state: Optional[StoryState], decision_id: str, key: str
) -> Any:
    if state is None or decision_id not in state.decisions:
        return None
    return state.decisions[decision_id].consequences.get(key)


def list_decisions(state: StoryState) -> List[Decision]:
    return list(state.decisions.values())


def get_decision_summary(state: StoryState) -> str:
    """Numbered decision list with non-flag consequences."""
    if not state.decisions:
        return "No major decisions made yet."

    lines = []
    for index, decision in enumerate(state.decisions.values(), start=1):
        lines.append(f"{index}. [{decision.scene}] {decision.choice}")
        lines.append(f"   → {decision.details or ''}")

        effects = ", ".join(
            f"{key}: {value}"
            for key, value in decision.consequences.items()
            if not key.startswith(FLAG_CONSEQUENCE_PREFIX)
        )
        if effects:
            lines.append(f"   → Effects: {effects}")

    return "\n".join(lines)


def build_decision_context(state: StoryState) -> str:
    """Decision block for embedding into the narrator's system prompt."""
    if not state.decisions:
        return ""

    return (
        "\n=== PLAYER DECISIONS (CRITICAL - THESE SHAPE THE STORY) ===\n\n"
        "Key choices made:\n"
        f"{get_decision_summary(state)}"
        "\n\nThese decisions MUST influence your narration:\n"
        "- Reference past choices naturally\n"
        "- Show consequences in NPC reactions\n"
        "- Open/close paths based on decisions\n"
        "- NPCs remember player reputation\n"
    )


# === STAGES (substates within a scene) ===


def slugify_stage(stage_name: Optional[str]) -> str:
    """Stage name to slug, e.g. "Lower Slopes" -> "lower-slopes"."""
    if not stage_name:
        return ""
    return re.sub(r"[^a-z0-9]+", "-", stage_name.lower()).strip("-")


def select_stage(state: StoryState, stage_id: Optional[str]) -> None:
    state.current_stage = stage_id


def complete_stage(state: StoryState, stage_id: str) -> bool:
    """Mark a stage of the current scene completed. Returns True if newly added."""
    scene_id = state.current_scene
    if not scene_id:
        return False
    stages = state.completed_stages.setdefault(scene_id, [])
    if stage_id in stages:
        return False
    stages.append(stage_id)
    return True


def is_stage_completed(state: StoryState, scene_id: str, stage_id: str) -> bool:
    return stage_id in state.completed_stages.get(scene_id, [])


def get_completed_stages(state: StoryState, scene_id: str) -> List[str]:
    return list(state.completed_stages.get(scene_id, []))


def get_stage_by_slug(scene: Optional[Dict[str, Any]], stage_slug: str) -> Optional[Dict[str, Any]]:
    if not scene or not scene.get("stages"):
        return None
    for stage in scene["stages"]:
        if slugify_stage(stage.get("name")) == stage_slug:
            return stage
    return None


# === SUMMARIES ===


def get_progress_summary(repository: AdventureRepository, state: StoryState) -> Dict[str, Any]:
    """Adventure position for display; missing act/scene data falls back to ids."""
    adventure = repository.load_adventure(state.adventure_id)

    act_title = state.current_act or "Not started"
    if state.current_act:
        try:
            act_title = repository.load_act(state.adventure_id, state.current_act).get(
                "title", state.current_act
            )
        except ContentNotFoundError:
            pass

    scene_title = state.current_scene or "None"
    if state.current_scene:
        try:
            scene_title = repository.load_scene(
                state.adventure_id, state.current_scene
            ).get("title", state.current_scene)
        except ContentNotFoundError:
            pass

    total_beats = len(adventure.get("story_beats") or [])
    progress = (
        f"{len(state.completed_beats)}/{total_beats} beats"
        if total_beats > 0
        else "No beats defined"
    )

    return {
        "adventure": adventure.get("title", state.adventure_id),
        "act": act_title,
        "scene": scene_title,
        "progress": progress,
        "game_date": state.game_date,
        "recent_beats": state.completed_beats[-5:],
    }
