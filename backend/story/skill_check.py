"""
Skill Check Resolver - 2D6 dice resolution for Traveller-style checks.

Roll math: total = 2d6 + skill level + characteristic modifier + situational
modifier, compared against a threshold ("8+" means total >= 8). The
characteristic modifier is floor((value - 7) / 3) and the characteristic used
for each skill comes from tables/skill_attributes.yaml.

All functions are stateless. Pass an ``rng`` (anything with ``randint``) for
deterministic rolls; otherwise the module-level ``random`` functions are used.
"""

import logging
import os
import random
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml

from models.checks import SkillCheckResult

logger = logging.getLogger(__name__)

TABLES_DIR = os.path.join(os.path.dirname(__file__), "tables")
SKILL_ATTRIBUTES_FILE = os.path.join(TABLES_DIR, "skill_attributes.yaml")

AVERAGE_CHARACTERISTIC = 7
DEFAULT_ATTRIBUTE = "int"

_TRAILING_LEVEL = re.compile(r"(\d+)\s*$")


@lru_cache(maxsize=1)
def load_skill_attributes() -> Dict[str, Any]:
    """Load the skill -> characteristic table."""
    try:
        with open(SKILL_ATTRIBUTES_FILE, "r", encoding="utf-8") as f:
            table = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load skill attribute table: {e}")
        table = {}
    return {
        "default": table.get("default", DEFAULT_ATTRIBUTE),
        "skills": dict(table.get("skills") or {}),
    }


def _normalize(name: str) -> str:
    return re.sub(r"[_\s]", "", str(name).lower())


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a dict-like or attribute-style PC record."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def roll_dice(n: int, sides: int, rng: Optional[random.Random] = None) -> int:
    """Roll n dice with the given number of sides and return the sum."""
    source = rng or random
    return sum(source.randint(1, sides) for _ in range(n))


def roll_2d6(rng: Optional[random.Random] = None) -> int:
    """Roll two independent d6; always in [2, 12]."""
    return roll_dice(2, 6, rng)


def get_skill_modifier(pc: Any, skill_name: str) -> int:
    """
    Skill level the PC has in skill_name (0 if untrained).

    Looks at the structured ``skills`` list ({name, level}) first, using a
    normalised partial name match, then falls back to ``skills_notable``
    strings such as "Pilot-2".
    """
    if pc is None or not skill_name:
        return 0

    normalized = _normalize(skill_name)
    for entry in _field(pc, "skills") or []:
        name = _normalize(_field(entry, "name", ""))
        if not name:
            continue
        if name == normalized or name in normalized or normalized in name:
            level = _field(entry, "level", 0)
            return int(level or 0)

    level = _notable_skill_level(pc, skill_name)
    return level if level is not None else 0


def get_attribute_modifier(pc: Any, skill_name: str) -> int:
    """Characteristic modifier for a skill: floor((value - 7) / 3)."""
    characteristics = _field(pc, "characteristics")
    if not characteristics:
        return 0

    table = load_skill_attributes()
    # Table keys use underscores (vacc_suit); compare normalised names
    by_name = {_normalize(key): value for key, value in table["skills"].items()}
    attribute = by_name.get(_normalize(skill_name)) or table["default"]

    value = characteristics.get(attribute)
    if value is None:
        value = characteristics.get(attribute.upper(), AVERAGE_CHARACTERISTIC)
    return (int(value) - AVERAGE_CHARACTERISTIC) // 3


def perform_check(
    skill: str,
    threshold: int,
    modifier: int = 0,
    pc: Any = None,
    rng: Optional[random.Random] = None,
    forced_roll: Optional[int] = None,
) -> SkillCheckResult:
    """
    Resolve a skill check. Never fails.

    Args:
        skill: Skill being tested
        threshold: Target number to meet or exceed
        modifier: Situational bonus/penalty
        pc: Optional PC record; supplies skill and characteristic modifiers
        rng: Optional random source for deterministic rolls
        forced_roll: Use this 2d6 result instead of rolling (testing/replay)

    Returns:
        SkillCheckResult with derived success/margin/exceptional/fumble
    """
    roll = forced_roll if forced_roll is not None else roll_2d6(rng)
    result = SkillCheckResult(
        skill=skill,
        roll=roll,
        skill_mod=get_skill_modifier(pc, skill) if pc is not None else 0,
        attr_mod=get_attribute_modifier(pc, skill) if pc is not None else 0,
        modifier=modifier,
        threshold=threshold,
    )
    logger.debug(
        f"{skill} check: rolled {result.roll} -> {result.total} vs {threshold}+ "
        f"({'success' if result.success else 'failure'})"
    )
    return result


def _notable_skill_level(pc: Any, skill: str) -> Optional[int]:
    notable: List[str] = _field(pc, "skills_notable") or []
    wanted = str(skill).lower()
    for entry in notable:
        if not isinstance(entry, str) or not entry.lower().startswith(wanted):
            continue
        match = _TRAILING_LEVEL.search(entry)
        if match:
            return int(match.group(1))
        return None
    return None


def has_skill_level(pc: Any, skill: str, min_level: int) -> bool:
    """
    Whether the PC has skill at min_level or better.

    Matches ``skills_notable`` entries ("Pilot-2", "Vacc Suit-0") by
    case-insensitive prefix. A missing skill or missing level is False.
    """
    if pc is None or not skill:
        return False
    level = _notable_skill_level(pc, skill)
    return level is not None and level >= min_level


def format_check_result(skill: str, total: int, threshold: int, success: bool) -> str:
    """One-line summary, e.g. "[Recon check: 9 vs 8+ = Success]"."""
    outcome = "Success" if success else "Failure"
    return f"[{skill} check: {total} vs {threshold}+ = {outcome}]"


def format_detailed_result(result: SkillCheckResult) -> str:
    """Multi-line breakdown of a check for display."""
    lines = [
        f"Rolling 2D6 + {result.skill} ({result.skill_mod}) + modifier ({result.attr_mod + result.modifier})...",
        f"Result: {result.roll} + {result.total - result.roll} = {result.total} vs difficulty {result.threshold}+",
    ]

    if result.fumble:
        lines.append("FUMBLE! Critical failure.")
    elif result.exceptional:
        lines.append("Exceptional success!")
    elif result.success:
        lines.append(f"Success by {result.margin}.")
    else:
        lines.append(f"Failed by {-result.margin}.")

    return "\n".join(lines)
