"""
Models for the independent persisted stores: dispositions and world facts.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from .story import utc_now_iso


class DispositionChange(BaseModel):
    """One audit entry in a disposition history. Stored as {date, change, reason, from, to}."""

    model_config = ConfigDict(populate_by_name=True)

    date: Any = None
    change: int
    reason: str = ""
    from_level: int = Field(alias="from")
    to_level: int = Field(alias="to")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DispositionRecord(BaseModel):
    """
    How one NPC feels about one player character.

    level is always within [-3, 3]; history is append-only.
    """

    level: int = Field(default=0, ge=-3, le=3)
    label: str = "neutral"
    history: List[DispositionChange] = Field(default_factory=list)
    impressions: List[str] = Field(default_factory=list)

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "label": self.label,
            "history": [entry.to_json_dict() for entry in self.history],
            "impressions": list(self.impressions),
        }


class SharedFact(BaseModel):
    """
    A durable fact shared across NPCs.

    known_by holds 'all', literal NPC ids, or 'faction:<name>' scopes.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: Any = None
    known_by: List[str] = Field(default_factory=lambda: ["all"], alias="knownBy")
    timestamp: str = Field(default_factory=utc_now_iso)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class NpcMention(BaseModel):
    """Record that one NPC told a player character about another NPC."""

    model_config = ConfigDict(populate_by_name=True)

    from_npc: str = Field(alias="from")
    content: str = ""
    timestamp: str = Field(default_factory=utc_now_iso)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
