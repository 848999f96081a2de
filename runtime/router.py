"""
Runtime router for applying narrator turns to story state.

This module handles the execution pipeline:
1. Take narrator text and the current story state
2. Parse the winning directive out of the text
3. Dispatch it to the scene manager, story state or skill resolver
4. Apply NPC reactions (beat disposition modifiers, NPC-initiated triggers)
5. Return the cleaned narration and what changed

The LLM layer that produces the narration lives outside this package.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from backend.story.context import StoryContext
from backend.story.directives import parse_directive, strip_directives
from backend.story.errors import StoryEngineError
from backend.story.scene_manager import MontageResult, SceneManager, SceneTransition
from backend.story.skill_check import format_check_result, perform_check
from backend.story.story_state import record_decision
from backend.story.triggers import NpcMessage
from models.checks import SkillCheckResult
from models.directives import Directive, DirectiveType
from models.story import Decision, StoryState


# Set up logging
logger = logging.getLogger(__name__)


class TurnResult:
    """Result of applying one narrator turn."""

    def __init__(
        self,
        success: bool,
        narration: str,
        directive: Optional[Directive] = None,
        transition: Optional[SceneTransition] = None,
        montage: Optional[MontageResult] = None,
        check: Optional[SkillCheckResult] = None,
        decision: Optional[Decision] = None,
        beat_completed: Optional[str] = None,
        npc_id: Optional[str] = None,
        messages: Optional[List[NpcMessage]] = None,
        error_message: Optional[str] = None,
    ):
        self.success = success
        self.narration = narration
        self.directive = directive
        self.transition = transition
        self.montage = montage
        self.check = check  # Skill check the narrator asked for
        self.decision = decision
        self.beat_completed = beat_completed
        self.npc_id = npc_id  # NPC to hand the conversation to
        self.messages = messages or []  # NPC-initiated messages that fired this turn
        self.error_message = error_message

    @property
    def check_summary(self) -> Optional[str]:
        if self.check is None:
            return None
        return format_check_result(
            self.check.skill, self.check.total, self.check.threshold, self.check.success
        )


# (state, directive, result, turn inputs {pc, player_action})
Handler = Callable[[StoryState, Any, TurnResult, Dict[str, Any]], None]


class StoryRouter:
    """Applies narrator directives to story state."""

    def __init__(
        self,
        context: StoryContext,
        scene_manager: Optional[SceneManager] = None,
        npcs: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Args:
            context: Stores and settings to work against
            scene_manager: Scene manager to use (built from context when None)
            npcs: NPC configs consulted for beat modifiers and triggers
        """
        self.context = context
        self.scenes = scene_manager or context.scene_manager()
        self.npcs = npcs or []
        self._handlers: Dict[DirectiveType, Handler] = {
            DirectiveType.SCENE: self._handle_scene,
            DirectiveType.FLASHBACK: self._handle_flashback,
            DirectiveType.MONTAGE: self._handle_montage,
            DirectiveType.STAGE: self._handle_stage,
            DirectiveType.SKILL_CHECK: self._handle_skill_check,
            DirectiveType.NPC_DIALOGUE: self._handle_npc_dialogue,
            DirectiveType.BEAT_COMPLETE: self._handle_beat_complete,
            DirectiveType.DECISION: self._handle_decision,
        }
        missing = set(DirectiveType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for directive types: {sorted(m.value for m in missing)}")

    def apply_narration(
        self,
        state: StoryState,
        text: str,
        pc: Any = None,
        player_action: Optional[str] = None,
    ) -> TurnResult:
        """
        Apply one narrator response to the story.

        Args:
            state: Story state to update (mutated in place)
            text: Raw narrator text, possibly containing directive tags
            pc: PC record used for skill check modifiers
            player_action: What the player did; kept as decision details

        Returns:
            TurnResult with the narration stripped of directive tags
        """
        narration = strip_directives(text)
        directive = parse_directive(text)
        result = TurnResult(success=True, narration=narration, directive=directive)

        if directive is None:
            return result

        logger.debug(f"Applying {directive.type.value} directive for {state.pc_id}")
        try:
            turn = {"pc": pc, "player_action": player_action}
            self._handlers[directive.type](state, directive, result, turn)
            if directive.type is not DirectiveType.SKILL_CHECK and self.npcs:
                result.messages = self.context.triggers.process_all_triggers(
                    state, state.game_date, self.npcs
                )
        except StoryEngineError as e:
            logger.error(f"Turn processing failed: {e}")
            result.success = False
            result.error_message = str(e)

        return result

    def _handle_scene(self, state, directive, result, turn) -> None:
        transition = self.scenes.advance_to_scene(state, directive.scene_id, directive.time_skip)
        self._record_transition(result, transition)

    def _handle_flashback(self, state, directive, result, turn) -> None:
        transition = self.scenes.execute_flashback(state, directive.scene_id)
        self._record_transition(result, transition)

    def _handle_montage(self, state, directive, result, turn) -> None:
        result.montage = self.scenes.execute_montage(state, directive.scene_ids)

    def _handle_stage(self, state, directive, result, turn) -> None:
        self.scenes.select_stage(state, directive.stage_id)

    def _handle_skill_check(self, state, directive, result, turn) -> None:
        result.check = perform_check(
            directive.skill, directive.threshold, pc=turn.get("pc"), rng=self.context.rng
        )
        logger.info(f"{directive.reason}: {result.check_summary}")

    def _handle_npc_dialogue(self, state, directive, result, turn) -> None:
        result.npc_id = directive.npc_id

    def _handle_beat_complete(self, state, directive, result, turn) -> None:
        if not self.scenes.mark_beat_complete(state, directive.beat_id):
            return
        result.beat_completed = directive.beat_id
        for npc in self.npcs:
            self.context.dispositions.apply_beat_modifier(
                npc.get("id"), state.pc_id, directive.beat_id, npc, state.game_date
            )

    def _handle_decision(self, state, directive, result, turn) -> None:
        result.decision = record_decision(
            state, directive.id, directive.value, details=turn.get("player_action")
        )
        self.context.story_states.save(state)

    def _record_transition(self, result: TurnResult, transition: SceneTransition) -> None:
        result.transition = transition
        if not transition.ok:
            result.success = False
            result.error_message = transition.error
