"""
Tests for NPC-initiated triggers and flag-gated encounters.
"""

import pytest

from backend.story.encounters import apply_encounter_outcome, should_trigger_encounter
from backend.story.story_state import record_beat
from backend.story.triggers import (
    TriggerEngine,
    check_requires,
    create_npc_message,
    evaluate_trigger,
)
from conftest import ADVENTURE_ID


@pytest.fixture
def engine(temp_dir):
    return TriggerEngine(temp_dir / "trigger-state.json")


def beat_trigger(**overrides):
    trigger = {
        "id": "minister-thanks",
        "type": "beat",
        "once": True,
        "condition": {"beat": "arrived"},
        "targetPcs": ["alex"],
        "message": {"subject": "Thank you", "body": "Welcome to Walston."},
    }
    trigger.update(overrides)
    return trigger


class TestRequirements:
    """Beat prerequisites with negation."""

    def test_positive_and_negated(self):
        assert check_requires(["arrived"], ["arrived"]).should_fire
        assert not check_requires(["arrived"], []).should_fire
        assert check_requires(["!left"], ["arrived"]).should_fire

        blocked = check_requires(["arrived", "!left"], ["arrived", "left"])
        assert not blocked.should_fire
        assert blocked.reason == "Required beat 'left' already complete"

    def test_no_requirements(self):
        assert check_requires(None, []).should_fire


class TestEvaluateTrigger:
    """Individual trigger types."""

    def test_beat_trigger(self, story_state):
        assert not evaluate_trigger(beat_trigger(), story_state, set()).should_fire

        record_beat(story_state, "arrived")
        assert evaluate_trigger(beat_trigger(), story_state, set()).should_fire

    def test_once_trigger_already_fired(self, story_state):
        record_beat(story_state, "arrived")

        result = evaluate_trigger(beat_trigger(), story_state, {"minister-thanks"})

        assert not result.should_fire
        assert result.reason == "Already fired (once)"

    def test_flag_trigger(self, story_state):
        trigger = {"id": "alarm", "type": "flag", "condition": {"flag": "volcano_active", "value": True}}

        assert not evaluate_trigger(trigger, story_state, set()).should_fire
        story_state.flags["volcano_active"] = True
        assert evaluate_trigger(trigger, story_state, set()).should_fire

    def test_time_trigger(self, story_state):
        trigger = {
            "id": "check-in",
            "type": "time",
            "condition": {"daysAfterBeat": "arrived", "days": 3},
        }
        assert not evaluate_trigger(trigger, story_state, set(), "020-1105").should_fire

        record_beat(story_state, "arrived", "010-1105")
        early = evaluate_trigger(trigger, story_state, set(), "012-1105")
        assert not early.should_fire
        assert early.reason == "Only 2 days elapsed (required: 3)"
        assert evaluate_trigger(trigger, story_state, set(), "013-1105").should_fire

    def test_time_trigger_across_year_end(self, story_state):
        trigger = {"id": "new-year", "type": "time", "condition": {"daysAfterBeat": "arrived", "days": 3}}
        record_beat(story_state, "arrived", "364-1105")

        assert evaluate_trigger(trigger, story_state, set(), "002-1106").should_fire

    def test_unknown_type(self, story_state):
        result = evaluate_trigger({"id": "x", "type": "mystery"}, story_state, set())

        assert not result.should_fire
        assert result.reason == "Unknown trigger type: mystery"


class TestTriggerEngine:
    """Processing triggers across NPCs."""

    def test_once_trigger_fires_once(self, engine, story_state):
        record_beat(story_state, "arrived")
        npcs = [{"id": "minister", "triggers": [beat_trigger()]}]

        first = engine.process_all_triggers(story_state, story_state.game_date, npcs)
        second = engine.process_all_triggers(story_state, story_state.game_date, npcs)

        assert [(m.from_npc, m.to, m.subject) for m in first] == [("minister", "alex", "Thank you")]
        assert second == []
        assert engine.has_fired("minister-thanks")

    def test_fired_state_persists(self, temp_dir, engine, story_state):
        record_beat(story_state, "arrived")
        npcs = [{"id": "minister", "triggers": [beat_trigger()]}]
        engine.process_all_triggers(story_state, None, npcs)

        reopened = TriggerEngine(temp_dir / "trigger-state.json")
        assert reopened.process_all_triggers(story_state, None, npcs) == []

    def test_wrong_shaped_fired_map_reads_as_unfired(self, engine, story_state):
        engine.store.write({"fired": ["minister-thanks"], "scheduled": []})
        record_beat(story_state, "arrived")
        npcs = [{"id": "minister", "triggers": [beat_trigger()]}]

        assert not engine.has_fired("minister-thanks")
        assert len(engine.process_all_triggers(story_state, None, npcs)) == 1
        assert engine.has_fired("minister-thanks")

    def test_repeatable_trigger_and_broadcast(self, engine, story_state):
        record_beat(story_state, "arrived")
        trigger = beat_trigger(once=False)
        del trigger["targetPcs"]
        npcs = [{"id": "minister", "triggers": [trigger]}]

        engine.process_all_triggers(story_state, None, npcs)
        messages = engine.process_all_triggers(story_state, None, npcs)

        assert [m.to for m in messages] == ["broadcast"]
        assert not engine.has_fired("minister-thanks")

    def test_npcs_without_trigger_lists_skipped(self, engine, story_state):
        npcs = [{"id": "chauffeur"}, {"id": "mechanic", "triggers": "nope"}]

        assert engine.process_all_triggers(story_state, None, npcs) == []

    def test_message_shape(self):
        message = create_npc_message("minister", "alex", beat_trigger())
        data = message.to_json_dict()

        assert data["from"] == "minister"
        assert data["triggerId"] == "minister-thanks"
        assert data["type"] == "npc-initiated"
        assert data["body"] == "Welcome to Walston."
        assert data["id"]

    def test_message_defaults(self):
        message = create_npc_message("minister", "alex", {"id": "bare"})

        assert message.subject == "Message"
        assert message.body == ""


class TestEncounters:
    """Flag-gated encounters."""

    def test_prerequisites(self, context, story_state):
        encounter = context.repository.load_encounter(ADVENTURE_ID, "customs")

        assert should_trigger_encounter(story_state, encounter)
        story_state.flags["customs_cleared"] = True
        assert not should_trigger_encounter(story_state, encounter)

    def test_has_flag_prerequisite(self, story_state):
        encounter = {"trigger": {"prerequisite": {"has_flag": "smuggling"}}}

        assert not should_trigger_encounter(story_state, encounter)
        story_state.flags["smuggling"] = True
        assert should_trigger_encounter(story_state, encounter)
        assert should_trigger_encounter(story_state, {})

    def test_outcome_sets_flags_and_fine(self, context, story_state):
        encounter = context.repository.load_encounter(ADVENTURE_ID, "customs")

        outcome = apply_encounter_outcome(story_state, encounter, "pay")

        assert outcome["fine"] == 500
        assert story_state.flags["customs_cleared"] is True
        assert story_state.pending_fine == 500

    def test_unknown_outcome(self, context, story_state, caplog):
        encounter = context.repository.load_encounter(ADVENTURE_ID, "customs")

        assert apply_encounter_outcome(story_state, encounter, "flee") is None
        assert story_state.pending_fine is None
        assert "Unknown encounter outcome: flee" in caplog.text
