"""
Adventure content loader.

Adventure content is authored JSON laid out as::

    <adventures_dir>/<adventure_id>/adventure.json
    <adventures_dir>/<adventure_id>/acts/<act_id>.json
    <adventures_dir>/<adventure_id>/scenes/<scene_id>.json
    <adventures_dir>/<adventure_id>/encounters/<encounter_id>.json

The engine only reads this data. Direct loads of a missing document raise
ContentNotFoundError; the list_* helpers return empty lists instead.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import ContentNotFoundError

logger = logging.getLogger(__name__)


class AdventureRepository:
    """Read-only access to adventure, act, scene and encounter documents."""

    def __init__(self, adventures_dir: Union[str, Path]):
        self.adventures_dir = Path(adventures_dir)

    def load_adventure(self, adventure_id: str) -> Dict[str, Any]:
        return self._load(
            "adventure", adventure_id, self.adventures_dir / str(adventure_id) / "adventure.json"
        )

    def load_act(self, adventure_id: str, act_id: str) -> Dict[str, Any]:
        return self._load("act", act_id, self._path(adventure_id, "acts", act_id))

    def load_scene(self, adventure_id: str, scene_id: str) -> Dict[str, Any]:
        scene = self._load("scene", scene_id, self._path(adventure_id, "scenes", scene_id))
        scene.setdefault("id", scene_id)
        return scene

    def load_encounter(self, adventure_id: str, encounter_id: str) -> Dict[str, Any]:
        return self._load(
            "encounter", encounter_id, self._path(adventure_id, "encounters", encounter_id)
        )

    def list_adventures(self) -> List[str]:
        if not self.adventures_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.adventures_dir.iterdir()
            if (entry / "adventure.json").is_file()
        )

    def list_acts(self, adventure_id: str) -> List[str]:
        return self._list(adventure_id, "acts")

    def list_scenes(self, adventure_id: str) -> List[str]:
        return self._list(adventure_id, "scenes")

    def list_encounters(self, adventure_id: str) -> List[str]:
        return self._list(adventure_id, "encounters")

    def load_acts(self, adventure_id: str) -> List[Dict[str, Any]]:
        """Load every readable act, sorted by act number."""
        acts = []
        for act_id in self.list_acts(adventure_id):
            try:
                acts.append(self.load_act(adventure_id, act_id))
            except ContentNotFoundError as e:
                logger.warning(f"Skipping unreadable act {act_id}: {e}")
        acts.sort(key=lambda act: act.get("number") or 0)
        return acts

    def get_starting_scene(self, adventure_id: str) -> str:
        """
        Scene an adventure opens on.

        Uses ``startingScene`` (or ``starting_scene``) from adventure.json,
        otherwise the first scene listed by the first act.

        Raises:
            ContentNotFoundError: If no starting scene can be determined
        """
        adventure = self.load_adventure(adventure_id)
        starting = adventure.get("startingScene") or adventure.get("starting_scene")
        if starting:
            return starting

        for act in self.load_acts(adventure_id):
            scenes = act.get("scenes") or []
            if scenes:
                first = scenes[0]
                return first["id"] if isinstance(first, dict) else first

        raise ContentNotFoundError("starting scene", adventure_id)

    def _path(self, adventure_id: str, folder: str, item_id: str) -> Path:
        return self.adventures_dir / str(adventure_id) / folder / f"{item_id}.json"

    def _list(self, adventure_id: str, folder: str) -> List[str]:
        directory = self.adventures_dir / str(adventure_id) / folder
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob("*.json"))

    def _load(self, kind: str, item_id: str, path: Path) -> Dict[str, Any]:
        if not item_id or not path.is_file():
            raise ContentNotFoundError(kind, str(item_id))
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ContentNotFoundError(kind, str(item_id)) from e
        if not isinstance(data, dict):
            raise ContentNotFoundError(kind, str(item_id))
        return data
