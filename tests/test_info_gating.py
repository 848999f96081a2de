"""
Tests for skill-gated NPC knowledge.
"""

import pytest

from backend.story.info_gating import PREVIOUSLY_UNLOCKED, KnowledgeGate

FAIL = [1, 1]  # rolls 2
PASS = [6, 6]  # rolls 12


@pytest.fixture
def gated_info():
    return {
        "content": "The survey team never left the mountain.",
        "requires": {"skill": "Streetwise", "threshold": 8},
        "alternates": [{"skill": "Persuade", "threshold": 10}],
        "unlockOnSuccess": True,
    }


@pytest.fixture
def npc_config(gated_info):
    return {
        "knowledge_base": {"port": "The starport is class C."},
        "gated_knowledge": {"survey": gated_info},
    }


def make_gate(temp_dir, rng):
    return KnowledgeGate(temp_dir / "pc-unlocks.json", rng=rng)


class TestAttemptAccess:
    """Rolling for gated knowledge."""

    def test_primary_success_unlocks(self, temp_dir, scripted_rng, gated_info):
        gate = make_gate(temp_dir, scripted_rng(PASS))

        result = gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert result.accessible
        assert result.content == gated_info["content"]
        assert result.reason == "Passed Streetwise check (rolled 12 vs 8)"
        assert gate.is_unlocked("alex", "minister", "survey")

    def test_idempotent_after_success(self, temp_dir, scripted_rng, gated_info):
        rng = scripted_rng(PASS)
        gate = make_gate(temp_dir, rng)
        gate.attempt_access(gated_info, None, "alex", "minister", "survey")
        rolls_so_far = rng.calls

        first = gate.attempt_access(gated_info, None, "alex", "minister", "survey")
        second = gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert first.to_dict() == second.to_dict()
        assert first.accessible and first.reason == PREVIOUSLY_UNLOCKED
        assert rng.calls == rolls_so_far

    def test_each_attempt_rolls_before_success(self, temp_dir, scripted_rng, gated_info):
        gated_info["alternates"] = []
        gate = make_gate(temp_dir, scripted_rng(FAIL + PASS))

        first = gate.attempt_access(gated_info, None, "alex", "minister", "survey")
        second = gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert not first.accessible
        assert second.accessible
        assert second.reason != first.reason

    def test_alternate_success(self, temp_dir, scripted_rng, gated_info):
        gate = make_gate(temp_dir, scripted_rng(FAIL + PASS))

        result = gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert result.accessible
        assert result.reason == "Passed Persuade check (alternate)"
        assert gate.is_unlocked("alex", "minister", "survey")

    def test_all_checks_fail(self, temp_dir, scripted_rng, gated_info):
        gate = make_gate(temp_dir, scripted_rng(FAIL))

        result = gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert not result.accessible
        assert result.content is None
        assert result.reason == "Failed Streetwise check"
        assert not gate.is_unlocked("alex", "minister", "survey")

    def test_no_primary_requirement(self, temp_dir, scripted_rng):
        gate = make_gate(temp_dir, scripted_rng(FAIL))

        result = gate.attempt_access({"content": "x"}, None, "alex", "minister", "rumour")

        assert result.reason == "Failed required check"

    def test_success_without_unlock_flag_is_not_recorded(self, temp_dir, scripted_rng, gated_info):
        gated_info["unlockOnSuccess"] = False
        gate = make_gate(temp_dir, scripted_rng(PASS))

        assert gate.attempt_access(gated_info, None, "alex", "minister", "survey").accessible
        assert not gate.is_unlocked("alex", "minister", "survey")

    def test_snake_case_unlock_flag(self, temp_dir, scripted_rng, gated_info):
        del gated_info["unlockOnSuccess"]
        gated_info["unlock_on_success"] = True
        gate = make_gate(temp_dir, scripted_rng(PASS))

        gate.attempt_access(gated_info, None, "alex", "minister", "survey")

        assert gate.is_unlocked("alex", "minister", "survey")

    def test_pc_modifiers_apply(self, temp_dir, scripted_rng, gated_info):
        # 2 + Streetwise-3 + int 13 (+2) = 7; still short of 8
        pc = {"skills_notable": ["Streetwise-3"], "characteristics": {"int": 13}}
        gated_info["alternates"] = []
        gate = make_gate(temp_dir, scripted_rng([1, 1, 1, 2]))

        assert not gate.attempt_access(gated_info, pc, "alex", "minister", "survey").accessible
        assert gate.attempt_access(gated_info, pc, "alex", "minister", "survey").accessible


class TestUnlockQueries:
    """Unlock records and knowledge views."""

    def test_unlocks_are_scoped(self, temp_dir):
        gate = make_gate(temp_dir, None)
        gate.record_unlock("alex", "minister", "survey")
        gate.record_unlock("alex", "minister", "survey")

        assert gate.store.load()["unlocks"] == {"alex": {"minister": ["survey"]}}
        assert not gate.is_unlocked("sam", "minister", "survey")
        assert not gate.is_unlocked("alex", "chauffeur", "survey")
        assert not gate.is_unlocked(None, "minister", "survey")

    @pytest.mark.parametrize(
        "unlocks",
        [
            "oops",
            {"alex": ["survey"]},
            {"alex": {"minister": "survey"}},
        ],
    )
    def test_wrong_shaped_unlocks_read_as_locked(self, temp_dir, unlocks):
        gate = make_gate(temp_dir, None)
        gate.store.write({"unlocks": unlocks})

        assert not gate.is_unlocked("alex", "minister", "survey")

        gate.record_unlock("alex", "minister", "survey")
        assert gate.is_unlocked("alex", "minister", "survey")

    def test_accessible_knowledge(self, temp_dir, npc_config):
        gate = make_gate(temp_dir, None)

        view = gate.get_accessible_knowledge(npc_config, None, "alex", "minister")
        assert view.public == {"port": "The starport is class C."}
        assert view.accessible == {}
        assert view.gated == ["survey"]

        gate.record_unlock("alex", "minister", "survey")
        view = gate.get_accessible_knowledge(npc_config, None, "alex", "minister")
        assert view.accessible == {"survey": "The survey team never left the mountain."}
        assert view.gated == []

    def test_can_access_info(self, temp_dir, npc_config):
        gate = make_gate(temp_dir, None)

        assert gate.can_access_info(npc_config, "alex", "minister", "port")
        assert not gate.can_access_info(npc_config, "alex", "minister", "survey")
        assert not gate.can_access_info(npc_config, "alex", "minister", "unknown")

        gate.record_unlock("alex", "minister", "survey")
        assert gate.can_access_info(npc_config, "alex", "minister", "survey")
