"""
Scene Manager - non-linear scene transitions and time control.

A state machine whose position is ``StoryState.current_scene`` (with
``current_stage`` as an optional substate). Transitions are driven by
directives from the narrator:

- advance_to_scene: normal move; records history, runs exit/enter triggers,
  completes the scene being left, optionally skips calendar time.
- go_back_to_scene: pops one history entry and moves there without re-pushing.
- execute_flashback: narrates another scene without changing position; only
  the current scene's exit triggers still run.
- execute_montage: completes a run of scenes in one step. Montages skip every
  entry/exit trigger and completion e-mail that normal transitions apply.

Missing target scenes never raise out of a transition; the returned
SceneTransition carries ``error`` instead and callers must check it.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.story import StoryState, TimeSkip
from .adventure_data import AdventureRepository
from .errors import ContentNotFoundError
from .events import EventBus, EventTypes
from .game_calendar import apply_time_skip
from .story_state import StoryStateStore, complete_stage, record_beat, select_stage, set_flag

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10

# (story_state, template_id, npc) -> sent e-mail dict with a "subject", or None
EmailSender = Callable[[StoryState, str, Dict[str, Any]], Optional[Dict[str, Any]]]
# npc_id -> persona dict with "id" and "name", or None
PersonaLoader = Callable[[str], Optional[Dict[str, Any]]]


@dataclass
class SceneTransition:
    """Result of a scene transition. Check ``error`` before using the rest."""

    previous_scene: Optional[str]
    new_scene: Optional[str]
    triggers_applied: List[str] = field(default_factory=list)
    narrative_prompt: str = ""
    scene: Optional[Dict[str, Any]] = None
    time_advanced: Optional[TimeSkip] = None
    emails_triggered: List[Dict[str, Any]] = field(default_factory=list)
    is_flashback: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON logging."""
        data = asdict(self)
        if self.time_advanced is not None:
            data["time_advanced"] = self.time_advanced.model_dump()
        return data


@dataclass
class MontageResult:
    """Scenes summarised by a montage, in the order given."""

    scenes: List[Dict[str, Any]] = field(default_factory=list)
    current_scene: Optional[str] = None
    type: str = "montage"


class SceneManager:
    """Drives scene transitions for one adventure's story states."""

    def __init__(
        self,
        loader: AdventureRepository,
        store: Optional[StoryStateStore] = None,
        email_sender: Optional[EmailSender] = None,
        persona_loader: Optional[PersonaLoader] = None,
        event_bus: Optional[EventBus] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        """
        Args:
            loader: Read-only scene content source
            store: Where states are persisted after transitions (None = in-memory only)
            email_sender: Sends on-complete e-mails; None disables them
            persona_loader: Resolves the NPC an e-mail comes from
            event_bus: Bus to publish transition events on
            history_limit: Maximum scene history depth for back navigation
        """
        self.loader = loader
        self.store = store
        self.email_sender = email_sender
        self.persona_loader = persona_loader
        self.events = event_bus or EventBus()
        self.history_limit = history_limit

    # === QUERIES ===

    def get_current_scene(self, state: StoryState) -> Optional[Dict[str, Any]]:
        """Content of the current scene, or None if unset or missing."""
        if not state.current_scene:
            return None
        try:
            return self.loader.load_scene(state.adventure_id, state.current_scene)
        except ContentNotFoundError:
            return None

    def list_all_scenes(self, state: StoryState) -> List[str]:
        return self.loader.list_scenes(state.adventure_id)

    def get_completed_scenes(self, state: StoryState) -> List[str]:
        return list(state.completed_scenes)

    def get_scene_history(self, state: StoryState) -> List[str]:
        return list(state.scene_history)

    def can_go_back(self, state: StoryState) -> bool:
        return len(state.scene_history) > 0

    # === TRANSITIONS ===

    def advance_to_scene(
        self,
        state: StoryState,
        scene_id: str,
        time_skip: Optional[TimeSkip] = None,
        is_flashback: bool = False,
        is_back: bool = False,
    ) -> SceneTransition:
        """
        Move the story to scene_id.

        Args:
            state: Story state to mutate
            scene_id: Target scene
            time_skip: Calendar advance to apply with the move
            is_flashback: Narrate the target without changing position
            is_back: Back navigation; the history entry was already popped

        Returns:
            SceneTransition; ``error`` is set when the target scene is missing
        """
        current_id = state.current_scene
        current = self.get_current_scene(state)
        result = SceneTransition(
            previous_scene=current_id, new_scene=scene_id, is_flashback=is_flashback
        )

        if not is_flashback and not is_back and current_id:
            state.push_history(current_id, self.history_limit)

        if current is not None:
            result.triggers_applied.extend(self._apply_triggers(state, current, "on_exit"))

        if current is not None and not is_flashback and current_id not in state.completed_scenes:
            result.emails_triggered = self.trigger_scene_emails(state, current)
            state.add_completed_scene(current_id)
            self.events.publish(
                EventTypes.SCENE_COMPLETED,
                {"scene_id": current_id, "pc_id": state.pc_id},
            )

        try:
            new_scene = self.loader.load_scene(state.adventure_id, scene_id)
        except ContentNotFoundError:
            logger.warning(f"Scene transition to missing scene: {scene_id}")
            result.error = f"Scene not found: {scene_id}"
            return result

        if not is_flashback:
            result.triggers_applied.extend(self._apply_triggers(state, new_scene, "on_enter"))
            state.current_scene = scene_id
            state.current_stage = None

        if time_skip is not None:
            apply_time_skip(state, time_skip)
            result.time_advanced = time_skip
            self.events.publish(
                EventTypes.TIME_SKIPPED,
                {"amount": time_skip.amount, "unit": time_skip.unit, "game_date": state.game_date},
            )

        if not is_flashback:
            self._save(state)
            logger.info(f"Scene: {current_id} -> {scene_id}")
            self.events.publish(
                EventTypes.SCENE_ENTERED,
                {"scene_id": scene_id, "previous_scene": current_id, "is_back": is_back},
            )
        else:
            self.events.publish(EventTypes.SCENE_FLASHBACK, {"scene_id": scene_id})

        result.narrative_prompt = new_scene.get("narrator_prompt") or ""
        result.scene = new_scene
        return result

    def go_back_to_scene(self, state: StoryState) -> SceneTransition:
        """Return to the most recent scene in history without re-pushing it."""
        if not state.scene_history:
            return SceneTransition(
                previous_scene=state.current_scene,
                new_scene=None,
                error="No scene history available",
            )

        previous_scene_id = state.scene_history.pop()
        return self.advance_to_scene(state, previous_scene_id, is_back=True)

    def execute_flashback(self, state: StoryState, scene_id: str) -> SceneTransition:
        """
        Narrate scene_id as a memory; position, history and completions are untouched.

        The current scene's on_exit triggers still apply and nothing is persisted.
        """
        return self.advance_to_scene(state, scene_id, is_flashback=True)

    def execute_montage(self, state: StoryState, scene_ids: List[str]) -> MontageResult:
        """
        Summarise several scenes at once.

        Every loadable scene is marked completed (missing ones are skipped) and
        the story lands on the last id listed. No triggers or e-mails run.
        """
        result = MontageResult()
        for scene_id in scene_ids:
            try:
                scene = self.loader.load_scene(state.adventure_id, scene_id)
            except ContentNotFoundError:
                logger.warning(f"Skipping missing montage scene: {scene_id}")
                continue

            result.scenes.append(
                {
                    "id": scene_id,
                    "title": scene.get("title"),
                    "brief": scene.get("description"),
                }
            )
            state.add_completed_scene(scene_id)

        if scene_ids:
            state.current_scene = scene_ids[-1]
            state.current_stage = None

        result.current_scene = state.current_scene
        self._save(state)
        self.events.publish(
            EventTypes.MONTAGE_PLAYED,
            {"scene_ids": list(scene_ids), "current_scene": state.current_scene},
        )
        return result

    # === STAGES AND BEATS ===

    def select_stage(self, state: StoryState, stage_id: str) -> None:
        """Move to a stage within the current scene."""
        select_stage(state, stage_id)
        self._save(state)
        self.events.publish(
            EventTypes.STAGE_SELECTED,
            {"scene_id": state.current_scene, "stage_id": stage_id},
        )

    def complete_stage(self, state: StoryState, stage_id: str) -> bool:
        added = complete_stage(state, stage_id)
        if added:
            self._save(state)
        return added

    def mark_beat_complete(self, state: StoryState, beat_id: str) -> bool:
        """Record a beat once and persist. Returns True if newly completed."""
        added = record_beat(state, beat_id)
        self._save(state)
        if added:
            self.events.publish(
                EventTypes.BEAT_COMPLETED, {"beat_id": beat_id, "game_date": state.game_date}
            )
        return added

    # === SIDE EFFECTS ===

    def trigger_scene_emails(self, state: StoryState, scene: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Send the e-mails a scene's ``on_complete.emails`` block asks for.

        Skipped entirely when the scene is already completed, so each scene's
        e-mails go out at most once. Failures are logged and skipped.
        """
        triggered: List[Dict[str, Any]] = []
        emails = (scene.get("on_complete") or {}).get("emails") or []
        if not emails or self.email_sender is None:
            return triggered

        scene_id = scene.get("id") or state.current_scene
        if scene_id in state.completed_scenes:
            return triggered

        for email_trigger in emails:
            npc_id = email_trigger.get("from_npc")
            template = email_trigger.get("template")
            npc = self._load_persona(npc_id)
            if not npc:
                logger.warning(f"Email trigger: NPC not found: {npc_id}")
                continue

            try:
                email = self.email_sender(state, template, npc)
            except Exception as e:
                logger.warning(f"Failed to send email {template}: {e}")
                continue

            if email:
                triggered.append(
                    {
                        "from": npc.get("name", npc_id),
                        "subject": email.get("subject"),
                        "npc_id": npc.get("id", npc_id),
                    }
                )

        return triggered

    def _load_persona(self, npc_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not npc_id:
            return None
        if self.persona_loader is None:
            return {"id": npc_id, "name": npc_id}
        return self.persona_loader(npc_id)

    def _apply_triggers(self, state: StoryState, scene: Dict[str, Any], hook: str) -> List[str]:
        applied = []
        triggers = (scene.get("plot_triggers") or {}).get(hook) or []
        for trigger in triggers:
            flag = trigger.get("set_flag")
            if flag:
                value = trigger.get("value")
                set_flag(state, flag, value)
                applied.append(f"set {flag}={value}")
        return applied

    def _save(self, state: StoryState) -> None:
        if self.store is not None:
            self.store.save(state)

    # === PROMPT CONTEXT ===

    def build_scene_control_context(self, state: StoryState) -> str:
        """Scene control block for embedding into the narrator's system prompt."""
        completed = self.get_completed_scenes(state)
        return (
            "\n=== SCENE CONTROL ===\n"
            "You may advance the story to ANY scene when dramatically appropriate.\n"
            f"Available scenes: {', '.join(self.list_all_scenes(state))}\n"
            f"Current scene: {state.current_scene}\n"
            f"Completed scenes: {', '.join(completed) or 'none'}\n\n"
            "Use [SCENE: id] to transition. [FLASHBACK: id] for memories.\n"
            "Time skips: [SCENE: id, TIME: +3d] advances time.\n"
            "You are not required to follow linear order.\n"
        )
