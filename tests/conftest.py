"""
Shared fixtures: a scratch directory, a small adventure on disk and scripted dice.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable

import pytest

from backend.story.context import StoryContext

ADVENTURE_ID = "high-and-dry"
PC_ID = "alex"

SCENES: Dict[str, Dict[str, Any]] = {
    "arrival": {
        "title": "Arrival at Walston",
        "description": "The Highndry limps into port.",
        "narrator_prompt": "Describe the starport.",
        "plot_triggers": {"on_exit": [{"set_flag": "left_port", "value": True}]},
        "on_complete": {"emails": [{"template": "welcome", "from_npc": "minister"}]},
        "npcs_present": ["minister", "chauffeur"],
        "npc_injection_rules": {"minister": {"demeanor": "anxious"}},
        "objectives": ["Meet the minister"],
    },
    "ship-repairs": {
        "title": "Ship Repairs",
        "description": "Getting the Highndry spaceworthy.",
        "narrator_prompt": "The hull groans.",
        "stages": [{"name": "Lower Slopes"}, {"name": "Crater Rim"}],
    },
    "mountain-climb": {
        "title": "The Climb",
        "description": "Up the volcano.",
        "plot_triggers": {"on_enter": [{"set_flag": "volcano_active", "value": True}]},
    },
    "crisis": {
        "title": "Eruption",
        "description": "Everything goes wrong.",
    },
}


class SequenceRng:
    """Random source that returns scripted randint values in order."""

    def __init__(self, values: Iterable[int]):
        self.values = list(values)
        self.calls = 0

    def randint(self, low: int, high: int) -> int:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        assert low <= value <= high
        return value


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


def write_adventure(adventures_dir: Path) -> None:
    root = adventures_dir / ADVENTURE_ID
    write_json(
        root / "adventure.json",
        {
            "id": ADVENTURE_ID,
            "title": "High and Dry",
            "acts": ["act-1"],
            "timing": {"start_date": "010-1105"},
            "story_beats": [{"id": "arrived"}, {"id": "summit"}],
        },
    )
    write_json(
        root / "acts" / "act-1.json",
        {"id": "act-1", "number": 1, "title": "Act One", "scenes": ["arrival", "ship-repairs"]},
    )
    for scene_id, scene in SCENES.items():
        write_json(root / "scenes" / f"{scene_id}.json", scene)
    write_json(
        root / "encounters" / "customs.json",
        {
            "trigger": {"prerequisite": {"lacks_flag": "customs_cleared"}},
            "outcomes": {"pay": {"flags": {"customs_cleared": True}, "fine": 500}},
        },
    )


@pytest.fixture
def temp_dir():
    """Create temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def context(temp_dir):
    """StoryContext over a scratch directory holding the sample adventure."""
    ctx = StoryContext.at(temp_dir)
    write_adventure(ctx.adventures_dir)
    return ctx


@pytest.fixture
def story_state(context):
    """Fresh story state for the sample adventure."""
    return context.story_states.load_or_create(context.repository, ADVENTURE_ID, PC_ID)


@pytest.fixture
def scripted_rng():
    """Factory for random sources with scripted die results."""
    return SequenceRng
