"""
Disposition Ledger - how each NPC feels about each player character.

Levels run from -3 (hostile) to +3 (allied). Reads follow a Null Object
policy: an unknown pair, or a missing id, yields the neutral record and never
raises. Every change is appended to the pair's history.

Per-NPC caps ("no higher than friendly until the PC does something notable")
are NOT enforced by the ledger. Callers apply check_disposition_cap before
showing a level to narration, so stored levels may sit above a cap.

File shape (flat keys; a nested {npc: {pc: record}} layout is also read)::

    {"relationships": {"<npc_id>:<pc_id>": {level, label, history, impressions}}}
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from models.ledger import DispositionChange, DispositionRecord
from models.story import utc_now_iso
from .persistence import JsonDocumentStore, child_dict

logger = logging.getLogger(__name__)

MIN_LEVEL = -3
MAX_LEVEL = 3

DISPOSITIONS_TABLE_FILE = os.path.join(os.path.dirname(__file__), "tables", "dispositions.yaml")


@lru_cache(maxsize=1)
def load_disposition_table() -> Dict[int, Dict[str, str]]:
    """Load the level -> {label, prompt} table."""
    with open(DISPOSITIONS_TABLE_FILE, "r", encoding="utf-8") as f:
        table = yaml.safe_load(f) or {}
    return {int(level): entry for level, entry in (table.get("levels") or {}).items()}


def clamp_level(level: int) -> int:
    return max(MIN_LEVEL, min(MAX_LEVEL, int(level)))


def disposition_label(level: int) -> str:
    entry = load_disposition_table().get(clamp_level(level))
    return entry["label"] if entry else "neutral"


def get_disposition_prompt_modifier(level: int) -> str:
    """NPC prompt guidance for a level (clamped into range first)."""
    table = load_disposition_table()
    entry = table.get(clamp_level(level)) or table[0]
    return entry["prompt"]


def _disposition_config(npc_config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not npc_config:
        return {}
    return npc_config.get("disposition") or {}


def get_initial_disposition(npc_config: Optional[Dict[str, Any]], pc_id: Optional[str] = None) -> int:
    """
    Starting level for a new NPC/PC pair, from ``disposition.initial``.

    Args:
        npc_config: NPC persona config
        pc_id: Player character the pair is for

    Returns:
        Initial level clamped to [-3, 3]; 0 when unconfigured
    """
    initial = _disposition_config(npc_config).get("initial")
    return clamp_level(initial if initial is not None else 0)


def check_disposition_cap(npc_config: Optional[Dict[str, Any]], level: int) -> int:
    """
    Apply the NPC's ``max_without_deed`` ceiling to a level.

    ``caps`` may sit at the top of the config or under ``disposition``.
    Levels at or below the cap pass through unchanged.
    """
    if not npc_config:
        return level
    caps = npc_config.get("caps") or _disposition_config(npc_config).get("caps") or {}
    max_without_deed = caps.get("max_without_deed")
    if max_without_deed is not None and level > max_without_deed:
        return max_without_deed
    return level


def _relationship_key(npc_id: str, pc_id: str) -> str:
    return f"{npc_id}:{pc_id}"


def _find_raw_record(relationships: Dict[str, Any], npc_id: str, pc_id: str) -> Optional[Dict[str, Any]]:
    nested = relationships.get(npc_id)
    if isinstance(nested, dict) and isinstance(nested.get(pc_id), dict):
        return nested[pc_id]
    flat = relationships.get(_relationship_key(npc_id, pc_id))
    if isinstance(flat, dict):
        return flat
    return None


def _to_record(raw: Optional[Dict[str, Any]]) -> DispositionRecord:
    if not raw:
        return DispositionRecord()
    level = raw.get("level")
    level = clamp_level(level if isinstance(level, int) else 0)
    try:
        return DispositionRecord(
            level=level,
            label=disposition_label(level),
            history=raw.get("history") or [],
            impressions=raw.get("impressions") or [],
        )
    except ValidationError as e:
        logger.warning(f"Ignoring malformed disposition history: {e}")
        return DispositionRecord(level=level, label=disposition_label(level))


class DispositionLedger:
    """Persisted NPC -> PC disposition levels."""

    def __init__(self, path: Union[str, Path]):
        self.store = JsonDocumentStore(path, lambda: {"relationships": {}})

    def get_disposition(self, npc_id: Optional[str], pc_id: Optional[str]) -> DispositionRecord:
        """Record for the pair; the neutral default when absent or ids are missing."""
        if not npc_id or not pc_id:
            return DispositionRecord()
        relationships = child_dict(self.store.load(), "relationships")
        return _to_record(_find_raw_record(relationships, npc_id, pc_id))

    def modify_disposition(
        self,
        npc_id: str,
        pc_id: str,
        change: int,
        reason: str,
        game_date: Any = None,
    ) -> int:
        """
        Shift a pair's level by change, clamped to [-3, 3].

        Args:
            npc_id: NPC whose opinion changes
            pc_id: Player character it is about
            change: Signed amount (may overshoot the range)
            reason: Why it changed; kept in history
            game_date: In-game date recorded with the change

        Returns:
            The new level
        """

        def mutate(document: Dict[str, Any]) -> int:
            relationships = child_dict(document, "relationships")
            raw = _find_raw_record(relationships, npc_id, pc_id)
            record = _to_record(raw)

            old_level = record.level
            new_level = clamp_level(old_level + change)
            record.level = new_level
            record.label = disposition_label(new_level)
            record.history.append(
                DispositionChange(
                    date=game_date,
                    change=change,
                    reason=reason,
                    from_level=old_level,
                    to_level=new_level,
                )
            )

            # Migrate nested records to the flat key on write
            nested = relationships.get(npc_id)
            if isinstance(nested, dict) and pc_id in nested:
                del nested[pc_id]
                if not nested:
                    del relationships[npc_id]
            relationships[_relationship_key(npc_id, pc_id)] = record.to_json_dict()
            return new_level

        new_level = self.store.update(mutate)
        logger.info(f"Disposition {npc_id} -> {pc_id}: {change:+d} ({reason}) now {new_level}")
        return new_level

    def add_impression(self, npc_id: str, pc_id: str, impression: str) -> None:
        """Remember a one-line impression the NPC formed of the PC."""

        def mutate(document: Dict[str, Any]) -> None:
            relationships = child_dict(document, "relationships")
            record = _to_record(_find_raw_record(relationships, npc_id, pc_id))
            record.impressions.append(impression)
            relationships[_relationship_key(npc_id, pc_id)] = record.to_json_dict()

        self.store.update(mutate)

    def apply_beat_modifier(
        self,
        npc_id: str,
        pc_id: str,
        beat_id: str,
        npc_config: Optional[Dict[str, Any]],
        game_date: Any = None,
    ) -> Optional[int]:
        """
        Apply the NPC's configured reaction to a story beat.

        ``disposition.modifiers`` is either a list of {trigger, change} or a
        {beat_id: change} mapping.

        Returns:
            The new level, or None when the NPC has no modifier for the beat
        """
        modifiers = _disposition_config(npc_config).get("modifiers")
        if not modifiers:
            return None

        change = None
        if isinstance(modifiers, list):
            for modifier in modifiers:
                if modifier.get("trigger") == beat_id:
                    change = modifier.get("change")
                    break
        elif isinstance(modifiers, dict):
            change = modifiers.get(beat_id)

        if change is None:
            return None

        return self.modify_disposition(
            npc_id, pc_id, int(change), f"Beat: {beat_id}", game_date or utc_now_iso()
        )
