"""
Tests for the 2D6 skill check resolver.
"""

import random

import pytest
from pydantic import ValidationError

from backend.story.skill_check import (
    format_check_result,
    format_detailed_result,
    get_attribute_modifier,
    get_skill_modifier,
    has_skill_level,
    perform_check,
    roll_2d6,
    roll_dice,
)
from models.checks import SkillCheckResult


@pytest.fixture
def pc():
    return {
        "skills": [{"name": "Vacc Suit", "level": 1}],
        "skills_notable": ["Pilot-2", "Streetwise-1", "Electronics (comms)-0"],
        "characteristics": {"dex": 10, "int": 4, "edu": 7},
    }


class TestRoll2d6:
    """Dice distribution."""

    def test_always_in_range(self):
        rng = random.Random(1105)
        rolls = [roll_2d6(rng) for _ in range(1000)]

        assert all(2 <= roll <= 12 for roll in rolls)

    def test_distribution_is_plausible(self):
        rng = random.Random(42)
        rolls = [roll_2d6(rng) for _ in range(1000)]

        assert len(set(rolls)) >= 5
        assert 6.5 <= sum(rolls) / len(rolls) <= 7.5

    def test_sums_two_dice(self, scripted_rng):
        assert roll_2d6(scripted_rng([3, 5])) == 8

    def test_roll_dice_sums_n_dice(self, scripted_rng):
        rng = scripted_rng([1, 2, 3])

        assert roll_dice(3, 6, rng) == 6
        assert rng.calls == 3


class TestPerformCheck:
    """Derived result fields."""

    @pytest.mark.parametrize("roll", range(2, 13))
    @pytest.mark.parametrize("modifier", [-3, 0, 4])
    def test_derived_fields(self, roll, modifier):
        result = perform_check("Recon", 8, modifier=modifier, forced_roll=roll)

        assert result.total == roll + modifier
        assert result.success == (result.total >= 8)
        assert result.margin == result.total - 8
        assert result.fumble == (roll == 2)

    def test_exceptional_at_margin_six(self):
        assert perform_check("Recon", 4, forced_roll=10).exceptional
        assert not perform_check("Recon", 5, forced_roll=10).exceptional

    def test_uses_injected_rng(self, scripted_rng):
        result = perform_check("Recon", 8, rng=scripted_rng([6, 6]))

        assert result.roll == 12
        assert result.success

    def test_pc_modifiers_are_added(self, pc):
        # Pilot-2 and dex 10 -> +1
        result = perform_check("Pilot", 10, pc=pc, forced_roll=7)

        assert result.skill_mod == 2
        assert result.attr_mod == 1
        assert result.total == 10
        assert result.success

    def test_result_is_frozen(self):
        result = perform_check("Recon", 8, forced_roll=7)

        with pytest.raises(ValidationError):
            result.roll = 12

    def test_roll_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            SkillCheckResult(skill="Recon", roll=13, threshold=8)


class TestModifiers:
    """Skill and characteristic lookups."""

    def test_structured_skill_partial_match(self, pc):
        assert get_skill_modifier(pc, "vacc_suit") == 1

    def test_notable_skill_fallback(self, pc):
        assert get_skill_modifier(pc, "Streetwise") == 1

    def test_untrained_skill_is_zero(self, pc):
        assert get_skill_modifier(pc, "Gunner") == 0
        assert get_skill_modifier(None, "Gunner") == 0

    def test_attribute_modifier_floors(self, pc):
        # int 4 -> floor(-3 / 3) = -1
        assert get_attribute_modifier(pc, "Recon") == -1
        # edu 7 -> 0
        assert get_attribute_modifier(pc, "Engineer") == 0

    def test_unlisted_skill_uses_default_characteristic(self, pc):
        assert get_attribute_modifier(pc, "Gambler") == -1

    def test_no_characteristics(self):
        assert get_attribute_modifier({}, "Pilot") == 0


class TestHasSkillLevel:
    """Skill level thresholds."""

    def test_meets_level(self, pc):
        assert has_skill_level(pc, "pilot", 2)
        assert not has_skill_level(pc, "Pilot", 3)

    def test_level_zero(self, pc):
        assert has_skill_level(pc, "Electronics", 0)

    def test_missing_skill(self, pc):
        assert not has_skill_level(pc, "Gunner", 0)
        assert not has_skill_level(None, "Pilot", 0)


class TestFormatting:
    """Text summaries."""

    def test_one_line_summary(self):
        assert format_check_result("Recon", 9, 8, True) == "[Recon check: 9 vs 8+ = Success]"

    def test_detailed_fumble(self):
        text = format_detailed_result(perform_check("Recon", 4, modifier=5, forced_roll=2))

        assert "FUMBLE" in text
        assert "Result: 2 + 5 = 7 vs difficulty 4+" in text
