"""
Tests for the runtime router: narrator text in, story changes out.
"""

import pytest

from backend.story.context import StoryContext
from runtime.main import describe_turn
from runtime.router import StoryRouter
from conftest import ADVENTURE_ID, PC_ID, write_adventure


MINISTER = {
    "id": "minister",
    "disposition": {"modifiers": {"arrived": 1}},
    "triggers": [
        {
            "id": "minister-thanks",
            "type": "beat",
            "once": True,
            "condition": {"beat": "arrived"},
            "targetPcs": [PC_ID],
            "message": {"subject": "Thank you"},
        }
    ],
}


@pytest.fixture
def router(context):
    return StoryRouter(context, npcs=[MINISTER])


class TestApplyNarration:
    """Dispatch of each directive kind."""

    def test_plain_narration(self, router, story_state):
        result = router.apply_narration(story_state, "The rain keeps falling.")

        assert result.success
        assert result.directive is None
        assert result.narration == "The rain keeps falling."
        assert result.messages == []

    def test_scene_directive(self, context, router, story_state):
        result = router.apply_narration(
            story_state, "You head to the yard.\n[SCENE: ship-repairs, TIME: +2d]"
        )

        assert result.success
        assert result.narration == "You head to the yard."
        assert result.transition.new_scene == "ship-repairs"
        assert story_state.game_date == "012-1105"
        assert context.story_states.load(ADVENTURE_ID, PC_ID).current_scene == "ship-repairs"

    def test_legacy_next_scene(self, router, story_state):
        router.apply_narration(story_state, "[NEXT_SCENE: crisis]")

        assert story_state.current_scene == "crisis"

    def test_missing_scene_fails_turn(self, router, story_state):
        result = router.apply_narration(story_state, "[SCENE: nowhere]")

        assert not result.success
        assert result.error_message == "Scene not found: nowhere"
        assert result.transition.new_scene == "nowhere"

    def test_flashback(self, router, story_state):
        result = router.apply_narration(story_state, "Years ago... [FLASHBACK: crisis]")

        assert result.transition.is_flashback
        assert story_state.current_scene == "arrival"

    def test_montage(self, router, story_state):
        result = router.apply_narration(story_state, "[MONTAGE: ship-repairs, mountain-climb]")

        assert [scene["id"] for scene in result.montage.scenes] == ["ship-repairs", "mountain-climb"]
        assert story_state.current_scene == "mountain-climb"

    def test_stage(self, router, story_state):
        router.apply_narration(story_state, "[STAGE: lower-slopes]")

        assert story_state.current_stage == "lower-slopes"

    def test_skill_check(self, temp_dir, scripted_rng):
        context = StoryContext.at(temp_dir, rng=scripted_rng([5, 4]))
        write_adventure(context.adventures_dir)
        state = context.story_states.load_or_create(context.repository, ADVENTURE_ID, PC_ID)
        router = StoryRouter(context, npcs=[MINISTER])

        result = router.apply_narration(state, "[SKILL_CHECK: Recon 8+ spot the ambush]")

        assert result.check.total == 9
        assert result.check_summary == "[Recon check: 9 vs 8+ = Success]"
        assert result.messages == []

    def test_npc_dialogue(self, router, story_state):
        result = router.apply_narration(story_state, "The minister clears his throat. [NPC_DIALOGUE: minister]")

        assert result.npc_id == "minister"

    def test_decision_persisted(self, context, router, story_state):
        result = router.apply_narration(
            story_state, "[DECISION: help-minister = agreed]", player_action="I'll do it."
        )

        assert result.decision.choice == "agreed"
        saved = context.story_states.load(ADVENTURE_ID, PC_ID)
        assert saved.decisions["help-minister"].details == "I'll do it."
        assert saved.decisions["help-minister"].scene == "arrival"

    def test_skill_check_wins_over_scene(self, router, story_state):
        result = router.apply_narration(
            story_state, "[SCENE: crisis] [SKILL_CHECK: Pilot 6+ land safely]"
        )

        assert result.check is not None
        assert story_state.current_scene == "arrival"


class TestBeatsAndNpcReactions:
    """Beat completion feeds dispositions and triggers."""

    def test_beat_applies_modifier_and_fires_trigger(self, context, router, story_state):
        result = router.apply_narration(story_state, "[BEAT_COMPLETE: arrived]")

        assert result.beat_completed == "arrived"
        assert context.dispositions.get_disposition("minister", PC_ID).level == 1
        assert [(m.from_npc, m.subject) for m in result.messages] == [("minister", "Thank you")]

    def test_repeated_beat_is_ignored(self, context, router, story_state):
        router.apply_narration(story_state, "[BEAT_COMPLETE: arrived]")
        result = router.apply_narration(story_state, "[BEAT_COMPLETE: arrived]")

        assert result.beat_completed is None
        assert result.messages == []
        assert context.dispositions.get_disposition("minister", PC_ID).level == 1

    def test_describe_turn(self, router, story_state):
        result = router.apply_narration(story_state, "Done. [BEAT_COMPLETE: arrived]")

        text = describe_turn(result)
        assert "Done." in text
        assert "arrived" in text
