"""
NPC-initiated triggers - NPCs reaching out on their own as the story moves.

Each NPC config may list triggers::

    {"id": "anders-checks-in", "type": "time", "once": true,
     "requires": ["arrived-walston", "!left-walston"],
     "condition": {"daysAfterBeat": "arrived-walston", "days": 3},
     "targetPcs": ["alex"],
     "message": {"subject": "...", "body": "..."}}

Trigger types:
- beat: fires once condition.beat is completed.
- flag: fires while flags[condition.flag] equals condition.value.
- time: fires condition.days or more game days after condition.daysAfterBeat
  was completed (beat dates come from StoryState.beat_timestamps).

``requires`` entries are beats that must be complete; a leading ``!`` means
the beat must NOT be complete. Ids of fired ``once`` triggers are persisted.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field

from models.story import StoryState, utc_now_iso
from .game_calendar import days_between
from .persistence import JsonDocumentStore, child_dict

logger = logging.getLogger(__name__)

BROADCAST = "broadcast"


class NpcMessage(BaseModel):
    """A message an NPC sends unprompted when one of its triggers fires."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    from_npc: str = Field(alias="from")
    to: str
    subject: str = "Message"
    body: str = ""
    type: str = "npc-initiated"
    trigger_id: Optional[str] = Field(default=None, alias="triggerId")
    timestamp: str = Field(default_factory=utc_now_iso)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class TriggerEvaluation:
    should_fire: bool
    reason: str


def check_requires(requires: Optional[List[str]], completed_beats: Iterable[str]) -> TriggerEvaluation:
    completed = set(completed_beats)
    for requirement in requires or []:
        if requirement.startswith("!"):
            beat_id = requirement[1:]
            if beat_id in completed:
                return TriggerEvaluation(False, f"Required beat '{beat_id}' already complete")
        elif requirement not in completed:
            return TriggerEvaluation(False, f"Required beat '{requirement}' not complete")
    return TriggerEvaluation(True, "")


def evaluate_trigger(
    trigger: Dict[str, Any],
    state: StoryState,
    fired: Set[str],
    game_date: Optional[str] = None,
) -> TriggerEvaluation:
    """
    Decide whether a trigger fires now.

    Args:
        trigger: Trigger definition from an NPC config
        state: Story state to evaluate against
        fired: Ids of once-triggers that already fired
        game_date: Current game date (defaults to state.game_date)

    Returns:
        TriggerEvaluation with a human-readable reason
    """
    if trigger.get("once") and trigger.get("id") in fired:
        return TriggerEvaluation(False, "Already fired (once)")

    requirements = check_requires(trigger.get("requires"), state.completed_beats)
    if not requirements.should_fire:
        return requirements

    condition = trigger.get("condition") or {}
    trigger_type = trigger.get("type")

    if trigger_type == "beat":
        beat_id = condition.get("beat")
        if not beat_id:
            return TriggerEvaluation(False, "No beat specified")
        if beat_id in state.completed_beats:
            return TriggerEvaluation(True, f"Beat '{beat_id}' complete")
        return TriggerEvaluation(False, f"Beat '{beat_id}' not complete")

    if trigger_type == "time":
        reference_beat = condition.get("daysAfterBeat")
        days = condition.get("days") or 0
        if not reference_beat:
            return TriggerEvaluation(False, "No reference beat specified")
        if reference_beat not in state.completed_beats:
            return TriggerEvaluation(False, f"Reference beat '{reference_beat}' not complete")

        beat_date = state.beat_timestamps.get(reference_beat)
        current_date = game_date or state.game_date
        if not beat_date or not current_date:
            return TriggerEvaluation(False, "Missing date information")

        elapsed = days_between(beat_date, current_date)
        if elapsed >= days:
            return TriggerEvaluation(True, f"{elapsed} days elapsed (required: {days})")
        return TriggerEvaluation(False, f"Only {elapsed} days elapsed (required: {days})")

    if trigger_type == "flag":
        flag_name = condition.get("flag")
        if not flag_name:
            return TriggerEvaluation(False, "No flag specified")
        expected = condition.get("value")
        current = state.flags.get(flag_name)
        if current == expected:
            return TriggerEvaluation(True, f"Flag '{flag_name}' matches '{expected}'")
        return TriggerEvaluation(False, f"Flag '{flag_name}' is '{current}', expected '{expected}'")

    return TriggerEvaluation(False, f"Unknown trigger type: {trigger_type}")


def create_npc_message(npc_id: str, pc_id: str, trigger: Dict[str, Any]) -> NpcMessage:
    message = trigger.get("message") or {}
    return NpcMessage(
        from_npc=npc_id,
        to=pc_id,
        subject=message.get("subject") or "Message",
        body=message.get("body") or message.get("template") or "",
        trigger_id=trigger.get("id"),
    )


class TriggerEngine:
    """Evaluates NPC triggers and remembers which once-triggers fired."""

    def __init__(self, path: Union[str, Path]):
        self.store = JsonDocumentStore(path, lambda: {"fired": {}, "scheduled": []})

    def has_fired(self, trigger_id: str) -> bool:
        return child_dict(self.store.load(), "fired").get(trigger_id) is True

    def process_all_triggers(
        self,
        state: StoryState,
        game_date: Optional[str],
        npcs: List[Dict[str, Any]],
    ) -> List[NpcMessage]:
        """
        Fire every due trigger across all NPCs.

        Each firing trigger yields one message per target PC (a single
        'broadcast' message when targetPcs is unset).

        Returns:
            Messages to deliver, in NPC then trigger order
        """

        def mutate(document: Dict[str, Any]) -> List[NpcMessage]:
            fired_map = child_dict(document, "fired")
            fired = {trigger_id for trigger_id, value in fired_map.items() if value is True}
            messages: List[NpcMessage] = []

            for npc in npcs:
                triggers = npc.get("triggers")
                if not isinstance(triggers, list):
                    continue
                for trigger in triggers:
                    evaluation = evaluate_trigger(trigger, state, fired, game_date)
                    if not evaluation.should_fire:
                        continue

                    logger.info(f"Trigger {trigger.get('id')} fired for {npc.get('id')}: {evaluation.reason}")
                    for pc_id in trigger.get("targetPcs") or [BROADCAST]:
                        messages.append(create_npc_message(npc.get("id"), pc_id, trigger))

                    if trigger.get("once"):
                        fired_map[trigger.get("id")] = True
                        fired.add(trigger.get("id"))

            return messages

        return self.store.update(mutate)
