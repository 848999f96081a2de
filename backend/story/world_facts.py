"""
World facts (durable) - facts and NPC mentions that survive across sessions.

This store is one of three knowledge mechanisms:

- shared facts here: persisted, scoped by ``knownBy`` ('all', NPC ids or
  'faction:<name>').
- NPC mentions here: persisted record of "NPC A told PC P about NPC B".
- session_knowledge.propagate_knowledge: in-memory only, lives in the
  per-session orchestration state and never touches this file.

File shape::

    {"sharedFacts": [...], "npcMentions": {about_npc: {pc_id: [...]}}, "factionKnowledge": {}}
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from models.ledger import NpcMention, SharedFact
from .persistence import JsonDocumentStore, child_dict, child_list

logger = logging.getLogger(__name__)

ALL_NPCS = "all"
FACTION_PREFIX = "faction:"


def _default_world_facts() -> Dict[str, Any]:
    return {"sharedFacts": [], "npcMentions": {}, "factionKnowledge": {}}


def _parse_facts(raw_facts: Iterable[Any]) -> List[SharedFact]:
    facts = []
    for raw in raw_facts:
        try:
            facts.append(SharedFact.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed shared fact: {e}")
    return facts


@dataclass
class ContradictionReport:
    has_conflict: bool = False
    conflicts: List[SharedFact] = field(default_factory=list)


def check_contradiction(new_fact: SharedFact, existing_facts: Sequence[SharedFact]) -> ContradictionReport:
    """
    Find existing facts with the same id but different content.

    Same id with identical content is not a conflict.
    """
    conflicts = [
        existing
        for existing in existing_facts
        if existing.id == new_fact.id and existing.content != new_fact.content
    ]
    return ContradictionReport(has_conflict=bool(conflicts), conflicts=conflicts)


def get_factions_for_npc(npc_config: Optional[Dict[str, Any]]) -> List[str]:
    if not npc_config:
        return []
    return list(npc_config.get("factions") or [])


def filter_by_faction(facts: Sequence[SharedFact], factions: Sequence[str]) -> List[SharedFact]:
    """Facts known to 'all' plus those scoped to one of the given factions."""
    visible = []
    for fact in facts:
        if ALL_NPCS in fact.known_by:
            visible.append(fact)
            continue
        for scope in fact.known_by:
            if scope.startswith(FACTION_PREFIX) and scope[len(FACTION_PREFIX):] in factions:
                visible.append(fact)
                break
    return visible


class WorldFactsStore:
    """Persisted shared facts and NPC mentions."""

    def __init__(self, path: Union[str, Path]):
        self.store = JsonDocumentStore(path, _default_world_facts)

    def all_facts(self) -> List[SharedFact]:
        return _parse_facts(child_list(self.store.load(), "sharedFacts"))

    def add_shared_fact(
        self, fact_id: str, content: Any, known_by: Optional[List[str]] = None
    ) -> SharedFact:
        """
        Add a fact, replacing any existing fact with the same id.

        Args:
            fact_id: Unique fact identifier
            content: Fact content
            known_by: 'all', NPC ids or 'faction:<name>' scopes (default ['all'])

        Returns:
            The stored fact
        """
        fact = SharedFact(id=fact_id, content=content, known_by=list(known_by or [ALL_NPCS]))

        def mutate(document: Dict[str, Any]) -> None:
            facts = child_list(document, "sharedFacts")
            for index, existing in enumerate(facts):
                if isinstance(existing, dict) and existing.get("id") == fact_id:
                    facts[index] = fact.to_json_dict()
                    return
            facts.append(fact.to_json_dict())

        self.store.update(mutate)
        logger.info(f"Shared fact recorded: {fact_id} (known by {', '.join(fact.known_by)})")
        return fact

    def get_shared_facts(self, npc_id: Optional[str]) -> List[SharedFact]:
        """Facts known to 'all' or naming npc_id literally."""
        return [
            fact
            for fact in self.all_facts()
            if ALL_NPCS in fact.known_by or (npc_id and npc_id in fact.known_by)
        ]

    def get_facts_for_npc(self, npc_id: str, npc_config: Optional[Dict[str, Any]]) -> List[SharedFact]:
        """Everything an NPC knows: literal scopes plus its factions' facts."""
        facts = self.all_facts()
        seen = set()
        visible = []
        for fact in self.get_shared_facts(npc_id) + filter_by_faction(
            facts, get_factions_for_npc(npc_config)
        ):
            if fact.id not in seen:
                seen.add(fact.id)
                visible.append(fact)
        return visible

    def record_npc_mention(self, from_npc_id: str, about_npc_id: str, pc_id: str, content: str) -> None:
        """Record that from_npc_id told pc_id something about about_npc_id."""
        mention = NpcMention(from_npc=from_npc_id, content=content)

        def mutate(document: Dict[str, Any]) -> None:
            by_pc = child_dict(child_dict(document, "npcMentions"), about_npc_id)
            child_list(by_pc, pc_id).append(mention.to_json_dict())

        self.store.update(mutate)
        logger.debug(f"{from_npc_id} mentioned {about_npc_id} to {pc_id}")

    def get_mentions_about(self, npc_id: Optional[str], pc_id: Optional[str]) -> List[NpcMention]:
        if not npc_id or not pc_id:
            return []
        mentions = child_dict(self.store.load(), "npcMentions")
        raw = child_list(child_dict(mentions, npc_id), pc_id)
        parsed = []
        for entry in raw:
            try:
                parsed.append(NpcMention.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed NPC mention: {e}")
        return parsed
