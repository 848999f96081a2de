"""
Skill check result model.

success, margin, exceptional and fumble are derived from the stored roll and
modifiers and cannot be set independently.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, computed_field


EXCEPTIONAL_MARGIN = 6
FUMBLE_ROLL = 2


class SkillCheckResult(BaseModel):
    """Outcome of a 2d6 skill check."""

    model_config = ConfigDict(frozen=True)

    skill: str
    roll: int = Field(ge=2, le=12)  # raw two-die result
    skill_mod: int = 0
    attr_mod: int = 0
    modifier: int = 0  # situational bonus/penalty
    threshold: int

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> int:
        return self.roll + self.skill_mod + self.attr_mod + self.modifier

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        return self.total >= self.threshold

    @computed_field  # type: ignore[misc]
    @property
    def margin(self) -> int:
        return self.total - self.threshold

    @computed_field  # type: ignore[misc]
    @property
    def exceptional(self) -> bool:
        return self.margin >= EXCEPTIONAL_MARGIN

    @computed_field  # type: ignore[misc]
    @property
    def fumble(self) -> bool:
        # Depends only on the dice, never on modifiers
        return self.roll == FUMBLE_ROLL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and turn results."""
        return self.model_dump()
