"""
Story state models for adventure progress tracking.

StoryState is the canonical per-adventure, per-player record: where the story
is, which scenes/beats/stages are done, what the player decided, story flags
and the in-game calendar. It is persisted as one JSON document per
(adventureId, pcId) pair using camelCase keys.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


DEFAULT_GAME_DATE = "001-1105"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """Dump with camelCase keys in JSON-safe form."""
        return self.model_dump(mode="json", by_alias=True)


class TimeSkip(BaseModel):
    """A requested calendar advance: hours, days or weeks."""

    amount: int = Field(ge=0)
    unit: Literal["h", "d", "w"]


class Decision(CamelModel):
    """
    A recorded player decision.

    Re-recording the same id overwrites the previous entry; decisions are
    not versioned.
    """

    id: str
    timestamp: str = Field(default_factory=utc_now_iso)
    scene: str = "unknown"  # scene active when recorded
    choice: Any = None
    details: Optional[str] = None
    consequences: Dict[str, Any] = Field(default_factory=dict)


class StoryState(CamelModel):
    """
    Mutable progress record for one player character in one adventure.

    completed_scenes and completed_beats are ordered, duplicate-free and
    append-only; use the helpers below rather than appending directly.
    """

    adventure_id: str
    pc_id: str
    current_act: Optional[str] = None
    current_scene: Optional[str] = None
    current_stage: Optional[str] = None
    completed_scenes: List[str] = Field(default_factory=list)
    completed_stages: Dict[str, List[str]] = Field(default_factory=dict)
    completed_beats: List[str] = Field(default_factory=list)
    beat_timestamps: Dict[str, str] = Field(default_factory=dict)
    decisions: Dict[str, Decision] = Field(default_factory=dict)
    flags: Dict[str, Any] = Field(default_factory=dict)
    game_date: str = DEFAULT_GAME_DATE
    scene_history: List[str] = Field(default_factory=list)
    pending_fine: Optional[Any] = None  # set by encounter outcomes, settled elsewhere
    start_date: str = Field(default_factory=utc_now_iso)
    last_played: Optional[str] = None
    revision: int = 0  # optimistic version stamp of the last load/save

    def add_completed_scene(self, scene_id: str) -> bool:
        """Append scene_id to completed_scenes once. Returns True if added."""
        if scene_id in self.completed_scenes:
            return False
        self.completed_scenes.append(scene_id)
        return True

    def add_completed_beat(self, beat_id: str) -> bool:
        """Append beat_id to completed_beats once. Returns True if added."""
        if beat_id in self.completed_beats:
            return False
        self.completed_beats.append(beat_id)
        return True

    def push_history(self, scene_id: str, limit: int) -> None:
        """Push onto the bounded scene history, dropping the oldest entries."""
        self.scene_history.append(scene_id)
        while len(self.scene_history) > limit:
            self.scene_history.pop(0)
