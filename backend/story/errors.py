"""
Exception hierarchy for the story engine.
"""


class StoryEngineError(Exception):
    """Base exception for story engine operations."""

    pass


class ContentNotFoundError(StoryEngineError, LookupError):
    """Raised when an adventure, act, scene or encounter cannot be found."""

    def __init__(self, kind: str, content_id: str):
        self.kind = kind
        self.content_id = content_id
        super().__init__(f"{kind.capitalize()} not found: {content_id}")


class PersistenceError(StoryEngineError):
    """Raised when a state document cannot be written."""

    pass


class StaleDocumentError(PersistenceError):
    """Raised when a document changed on disk since it was read."""

    def __init__(self, path: str, expected: int, found: int):
        self.path = path
        self.expected = expected
        self.found = found
        super().__init__(
            f"Document '{path}' is at version {found}, expected {expected}"
        )
