"""
StoryContext - the set of stores and settings one engine instance works with.

All file locations and tunables are carried here and handed to the stores
explicitly; no module keeps paths or state at import time. Build one from
config with ``StoryContext.from_config()`` or point it at a scratch directory
in tests.
"""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from models.story import DEFAULT_GAME_DATE
from .adventure_data import AdventureRepository
from .disposition import DispositionLedger
from .events import EventBus
from .info_gating import KnowledgeGate
from .scene_manager import DEFAULT_HISTORY_LIMIT, EmailSender, PersonaLoader, SceneManager
from .story_state import StoryStateStore
from .triggers import TriggerEngine
from .world_facts import WorldFactsStore

logger = logging.getLogger(__name__)

DISPOSITIONS_FILE = "dispositions.json"
UNLOCKS_FILE = "pc-unlocks.json"
WORLD_FACTS_FILE = "world-facts.json"
TRIGGER_STATE_FILE = "trigger-state.json"
STORY_STATES_DIR = "story"


@dataclass
class StoryContext:
    """
    Wires the story engine's stores together.

    Attributes:
        state_dir: Root directory for every persisted state file
        adventures_dir: Root of the authored adventure content
        default_game_date: Start date when an adventure does not set one
        history_limit: Scene history depth for back navigation
        rng: Random source for checks (module random when None)
    """

    state_dir: Path
    adventures_dir: Path
    default_game_date: str = DEFAULT_GAME_DATE
    history_limit: int = DEFAULT_HISTORY_LIMIT
    rng: Optional[random.Random] = None
    events: EventBus = field(default_factory=EventBus)

    def __post_init__(self):
        self.state_dir = Path(self.state_dir)
        self.adventures_dir = Path(self.adventures_dir)
        self.repository = AdventureRepository(self.adventures_dir)
        self.story_states = StoryStateStore(
            self.state_dir / STORY_STATES_DIR, default_game_date=self.default_game_date
        )
        self.dispositions = DispositionLedger(self.state_dir / DISPOSITIONS_FILE)
        self.knowledge_gate = KnowledgeGate(self.state_dir / UNLOCKS_FILE, rng=self.rng)
        self.world_facts = WorldFactsStore(self.state_dir / WORLD_FACTS_FILE)
        self.triggers = TriggerEngine(self.state_dir / TRIGGER_STATE_FILE)

    @classmethod
    def from_config(cls, rng: Optional[random.Random] = None) -> "StoryContext":
        """Build a context from config.py (environment overrides applied there)."""
        import config

        logger.debug(
            f"Story context: state={config.STORY_STATE_DIR} adventures={config.STORY_ADVENTURES_DIR}"
        )
        return cls(
            state_dir=Path(config.STORY_STATE_DIR),
            adventures_dir=Path(config.STORY_ADVENTURES_DIR),
            default_game_date=config.STORY_DEFAULT_GAME_DATE,
            history_limit=config.STORY_SCENE_HISTORY_LIMIT,
            rng=rng,
        )

    @classmethod
    def at(cls, root: Union[str, Path], **kwargs) -> "StoryContext":
        """Context with state under <root>/state and content under <root>/adventures."""
        root = Path(root)
        return cls(state_dir=root / "state", adventures_dir=root / "adventures", **kwargs)

    def scene_manager(
        self,
        email_sender: Optional[EmailSender] = None,
        persona_loader: Optional[PersonaLoader] = None,
    ) -> SceneManager:
        return SceneManager(
            self.repository,
            store=self.story_states,
            email_sender=email_sender,
            persona_loader=persona_loader,
            event_bus=self.events,
            history_limit=self.history_limit,
        )
