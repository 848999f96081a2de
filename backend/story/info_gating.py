"""
Knowledge Gate - NPC information locked behind skill checks.

An NPC config may carry ``gated_knowledge`` entries::

    {"content": ..., "requires": {"skill": "Streetwise", "threshold": 8},
     "alternates": [{"skill": "Persuade", "threshold": 10}],
     "unlockOnSuccess": true}

Unlocks are recorded per (pc, npc, key) and never expire. Until the first
recorded success every attempt rolls again; once unlocked an entry is always
returned without a roll.
"""

import logging
import random
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .persistence import JsonDocumentStore, child_dict, child_list
from .skill_check import perform_check

logger = logging.getLogger(__name__)

PREVIOUSLY_UNLOCKED = "Previously unlocked"


@dataclass
class AccessResult:
    accessible: bool
    reason: str
    content: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KnowledgeView:
    """What an NPC can share with a PC right now."""

    public: Dict[str, Any] = field(default_factory=dict)
    accessible: Dict[str, Any] = field(default_factory=dict)
    gated: List[str] = field(default_factory=list)


def _unlock_on_success(gated_info: Dict[str, Any]) -> bool:
    return bool(gated_info.get("unlockOnSuccess", gated_info.get("unlock_on_success", False)))


class KnowledgeGate:
    """Persisted knowledge unlocks: {unlocks: {pc_id: {npc_id: [info_key, ...]}}}."""

    def __init__(self, path: Union[str, Path], rng: Optional[random.Random] = None):
        """
        Args:
            path: Unlock file
            rng: Random source for the checks (module random when None)
        """
        self.store = JsonDocumentStore(path, lambda: {"unlocks": {}})
        self.rng = rng

    def is_unlocked(self, pc_id: Optional[str], npc_id: Optional[str], info_key: str) -> bool:
        if not pc_id or not npc_id:
            return False
        unlocks = child_dict(self.store.load(), "unlocks")
        return info_key in child_list(child_dict(unlocks, pc_id), npc_id)

    def record_unlock(self, pc_id: str, npc_id: str, info_key: str) -> None:
        """Permanently unlock info_key for the pair (no duplicates)."""

        def mutate(document: Dict[str, Any]) -> bool:
            keys = child_list(child_dict(child_dict(document, "unlocks"), pc_id), npc_id)
            if info_key in keys:
                return False
            keys.append(info_key)
            return True

        if self.is_unlocked(pc_id, npc_id, info_key):
            return
        if self.store.update(mutate):
            logger.info(f"Unlocked {npc_id}/{info_key} for {pc_id}")

    def attempt_access(
        self,
        gated_info: Dict[str, Any],
        pc: Any,
        pc_id: Optional[str],
        npc_id: Optional[str],
        info_key: str,
    ) -> AccessResult:
        """
        Try to get an NPC to share a gated entry.

        The primary ``requires`` check is rolled first, then each alternate in
        order. The first success grants access and, when the entry has
        unlockOnSuccess, records the unlock.

        Args:
            gated_info: Gated knowledge entry
            pc: PC record supplying skill modifiers (may be None)
            pc_id: Player character asking
            npc_id: NPC holding the knowledge
            info_key: Key of the entry in the NPC's gated_knowledge

        Returns:
            AccessResult with content on success
        """
        content = gated_info.get("content")
        if self.is_unlocked(pc_id, npc_id, info_key):
            return AccessResult(accessible=True, content=content, reason=PREVIOUSLY_UNLOCKED)

        primary = gated_info.get("requires")
        if primary:
            result = perform_check(primary["skill"], primary["threshold"], pc=pc, rng=self.rng)
            if result.success:
                self._unlock_if_configured(gated_info, pc_id, npc_id, info_key)
                return AccessResult(
                    accessible=True,
                    content=content,
                    reason=f"Passed {primary['skill']} check (rolled {result.total} vs {result.threshold})",
                )

        for alternate in gated_info.get("alternates") or []:
            result = perform_check(alternate["skill"], alternate["threshold"], pc=pc, rng=self.rng)
            if result.success:
                self._unlock_if_configured(gated_info, pc_id, npc_id, info_key)
                return AccessResult(
                    accessible=True,
                    content=content,
                    reason=f"Passed {alternate['skill']} check (alternate)",
                )

        skill = primary.get("skill") if primary else None
        return AccessResult(accessible=False, reason=f"Failed {skill or 'required'} check")

    def _unlock_if_configured(
        self, gated_info: Dict[str, Any], pc_id: Optional[str], npc_id: Optional[str], info_key: str
    ) -> None:
        if _unlock_on_success(gated_info) and pc_id and npc_id:
            self.record_unlock(pc_id, npc_id, info_key)

    def get_accessible_knowledge(
        self, npc_config: Dict[str, Any], pc: Any, pc_id: Optional[str], npc_id: Optional[str]
    ) -> KnowledgeView:
        """Public knowledge, unlocked gated content, and keys still withheld."""
        view = KnowledgeView(public=dict(npc_config.get("knowledge_base") or {}))
        for key, info in (npc_config.get("gated_knowledge") or {}).items():
            if self.is_unlocked(pc_id, npc_id, key):
                view.accessible[key] = info.get("content")
            else:
                view.gated.append(key)
        return view

    def can_access_info(
        self, npc_config: Dict[str, Any], pc_id: Optional[str], npc_id: Optional[str], info_key: str
    ) -> bool:
        """True for public keys and unlocked gated keys; unknown keys are not accessible."""
        if info_key in (npc_config.get("knowledge_base") or {}):
            return True
        if info_key in (npc_config.get("gated_knowledge") or {}):
            return self.is_unlocked(pc_id, npc_id, info_key)
        return False
