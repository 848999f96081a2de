"""
Gated encounters - encounters that only happen when story flags allow.

An encounter document may carry::

    {"trigger": {"prerequisite": {"has_flag": "...", "lacks_flag": "..."}},
     "outcomes": {"<name>": {"flags": {...}, "fine": 500}}}
"""

import logging
from typing import Any, Dict, Optional

from models.story import StoryState
from .story_state import set_flag

logger = logging.getLogger(__name__)


def should_trigger_encounter(state: StoryState, encounter: Dict[str, Any]) -> bool:
    """Whether the encounter's prerequisites hold; no prerequisite always triggers."""
    prerequisite = (encounter.get("trigger") or {}).get("prerequisite")
    if not prerequisite:
        return True

    has_flag = prerequisite.get("has_flag")
    if has_flag and not state.flags.get(has_flag):
        return False

    lacks_flag = prerequisite.get("lacks_flag")
    if lacks_flag and state.flags.get(lacks_flag):
        return False

    return True


def apply_encounter_outcome(
    state: StoryState, encounter: Dict[str, Any], outcome_name: str
) -> Optional[Dict[str, Any]]:
    """
    Apply a named outcome: set its flags and record any fine as pending.

    Returns:
        The outcome applied, or None if the encounter has no such outcome
    """
    outcome = (encounter.get("outcomes") or {}).get(outcome_name)
    if not outcome:
        logger.warning(f"Unknown encounter outcome: {outcome_name}")
        return None

    for flag, value in (outcome.get("flags") or {}).items():
        set_flag(state, flag, value)

    if outcome.get("fine"):
        state.pending_fine = outcome["fine"]

    logger.info(f"Encounter outcome applied: {outcome_name}")
    return outcome
