"""
JSON document persistence for the story engine stores.

Every store (story state, dispositions, knowledge unlocks, world facts,
trigger state) is a single JSON document loaded whole and rewritten whole.
Two rules apply to all of them:

- Lenient reads: a missing, unreadable or malformed file reads as the store's
  empty default shape. Dependents rely on reads always succeeding. Nested
  values of the wrong type are read through child_dict / child_list, which
  treat them as empty.
- Versioned writes: each document carries a ``_version`` stamp. Writes go to a
  temporary file and are moved into place with ``os.replace``. A write made
  against a stale version raises StaleDocumentError; ``update`` re-runs the
  mutation against a fresh read instead of silently dropping the other
  writer's changes.
"""

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from .errors import PersistenceError, StaleDocumentError

logger = logging.getLogger(__name__)

VERSION_KEY = "_version"
DEFAULT_UPDATE_ATTEMPTS = 3

T = TypeVar("T")


def child_dict(container: Dict[str, Any], key: str) -> Dict[str, Any]:
    """container[key] as a dict; any other value is replaced with an empty one."""
    value = container.get(key)
    if not isinstance(value, dict):
        value = {}
        container[key] = value
    return value


def child_list(container: Dict[str, Any], key: str) -> List[Any]:
    """container[key] as a list; any other value is replaced with an empty one."""
    value = container.get(key)
    if not isinstance(value, list):
        value = []
        container[key] = value
    return value


class JsonDocumentStore:
    """
    A single JSON document on disk with optimistic version stamping.
    """

    def __init__(
        self,
        path: Union[str, Path],
        default_factory: Callable[[], Dict[str, Any]],
        update_attempts: int = DEFAULT_UPDATE_ATTEMPTS,
    ):
        """
        Args:
            path: File holding the document
            default_factory: Builds the empty document shape
            update_attempts: How many times update() re-reads on a version clash
        """
        self.path = Path(path)
        self.default_factory = default_factory
        self.update_attempts = update_attempts

    def read(self) -> Tuple[Dict[str, Any], int]:
        """
        Load the document and its version stamp.

        Returns:
            (document without the version key, version); the default shape and
            version 0 when the file is missing or unreadable.
        """
        raw = self._read_raw()
        if raw is None:
            return self.default_factory(), 0

        version = raw.pop(VERSION_KEY, 0)
        if not isinstance(version, int):
            version = 0

        # Fill in any top-level keys missing from older files
        document = self.default_factory()
        document.update(raw)
        return document, version

    def load(self) -> Dict[str, Any]:
        """Load the document, discarding the version stamp."""
        document, _ = self.read()
        return document

    def current_version(self) -> int:
        """Version stamp currently on disk (0 when absent or unreadable)."""
        raw = self._read_raw()
        if raw is None:
            return 0
        version = raw.get(VERSION_KEY, 0)
        return version if isinstance(version, int) else 0

    def write(self, document: Dict[str, Any], expected_version: Optional[int] = None) -> int:
        """
        Write the whole document.

        Args:
            document: Document to persist (the version key is managed here)
            expected_version: Version the caller read; None skips the check

        Returns:
            The new version stamp

        Raises:
            StaleDocumentError: If the file moved past expected_version
            PersistenceError: If the file cannot be written
        """
        on_disk = self.current_version()
        if expected_version is not None and on_disk != expected_version:
            raise StaleDocumentError(str(self.path), expected_version, on_disk)

        new_version = on_disk + 1
        payload = dict(document)
        payload[VERSION_KEY] = new_version

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write '{self.path}': {str(e)}") from e

        logger.debug(f"Wrote {self.path} at version {new_version}")
        return new_version

    def update(self, mutator: Callable[[Dict[str, Any]], T]) -> T:
        """
        Load, mutate and save the document.

        The mutator receives a fresh copy of the document and may be called
        again if another writer saved in between.

        Returns:
            Whatever the last mutator call returned

        Raises:
            StaleDocumentError: If every attempt hit a version clash
            PersistenceError: If update_attempts is below 1
        """
        last_error: Optional[StaleDocumentError] = None
        for attempt in range(1, self.update_attempts + 1):
            document, version = self.read()
            working = copy.deepcopy(document)
            result = mutator(working)
            try:
                self.write(working, expected_version=version)
                return result
            except StaleDocumentError as e:
                logger.warning(
                    f"Version clash on {self.path} (attempt {attempt}/{self.update_attempts}): {e}"
                )
                last_error = e

        if last_error is None:
            raise PersistenceError(f"No update attempts allowed for '{self.path}'")
        raise last_error

    def _read_raw(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Treating unreadable state file {self.path} as empty: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Treating non-object state file {self.path} as empty")
            return None
        return data
