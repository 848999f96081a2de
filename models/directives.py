"""
Directive models - the typed commands embedded in narrator text.

A Directive is a tagged union discriminated by ``type``. The parser in
backend/story/directives.py produces these directly; the turn router
dispatches on ``type`` with one handler per variant.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .story import TimeSkip


class DirectiveType(str, Enum):
    SCENE = "scene"
    FLASHBACK = "flashback"
    MONTAGE = "montage"
    STAGE = "stage"
    SKILL_CHECK = "skill_check"
    NPC_DIALOGUE = "npc_dialogue"
    BEAT_COMPLETE = "beat_complete"
    DECISION = "decision"


class SceneDirective(BaseModel):
    """[SCENE: id] / [SCENE: id, TIME: +3d] / legacy [NEXT_SCENE: id]."""

    type: Literal[DirectiveType.SCENE] = DirectiveType.SCENE
    scene_id: str
    time_skip: Optional[TimeSkip] = None


class FlashbackDirective(BaseModel):
    type: Literal[DirectiveType.FLASHBACK] = DirectiveType.FLASHBACK
    scene_id: str


class MontageDirective(BaseModel):
    type: Literal[DirectiveType.MONTAGE] = DirectiveType.MONTAGE
    scene_ids: List[str] = Field(min_length=1)


class StageDirective(BaseModel):
    type: Literal[DirectiveType.STAGE] = DirectiveType.STAGE
    stage_id: str


class SkillCheckDirective(BaseModel):
    """[SKILL_CHECK: Athletics 8+ climbing the cliff]."""

    type: Literal[DirectiveType.SKILL_CHECK] = DirectiveType.SKILL_CHECK
    skill: str
    threshold: int
    reason: str


class NpcDialogueDirective(BaseModel):
    type: Literal[DirectiveType.NPC_DIALOGUE] = DirectiveType.NPC_DIALOGUE
    npc_id: str


class BeatCompleteDirective(BaseModel):
    type: Literal[DirectiveType.BEAT_COMPLETE] = DirectiveType.BEAT_COMPLETE
    beat_id: str


class DecisionDirective(BaseModel):
    """[DECISION: id = value]."""

    type: Literal[DirectiveType.DECISION] = DirectiveType.DECISION
    id: str
    value: str


Directive = Annotated[
    Union[
        SceneDirective,
        FlashbackDirective,
        MontageDirective,
        StageDirective,
        SkillCheckDirective,
        NpcDialogueDirective,
        BeatCompleteDirective,
        DecisionDirective,
    ],
    Field(discriminator="type"),
]
