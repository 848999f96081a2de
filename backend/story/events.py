"""
Event bus for story state changes.

Provides a lightweight pub/sub mechanism so collaborators (UI, notification
hooks, logs) can observe scene transitions without the scene manager knowing
about them. Each StoryContext owns its own bus; there is no global instance.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]


class EventTypes:
    """Story event type constants."""

    SCENE_ENTERED = "scene.entered"
    SCENE_COMPLETED = "scene.completed"
    SCENE_FLASHBACK = "scene.flashback"
    MONTAGE_PLAYED = "scene.montage"
    STAGE_SELECTED = "stage.selected"
    BEAT_COMPLETED = "beat.completed"
    TIME_SKIPPED = "time.skipped"


class EventBus:
    """In-process event bus for story notifications."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """
        Subscribe a handler to an event type.

        Args:
            event_type: The type of event to listen for
            handler: Function to call when event is published
        """
        handlers = self._subscribers.setdefault(event_type, [])
        # Prevent duplicate subscriptions
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns:
            True if handler was found and removed, False otherwise
        """
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def publish(self, event_type: str, event_data: Dict[str, Any]) -> None:
        """
        Publish an event to all subscribers.

        A failing handler is logged and does not stop the others.
        """
        event_data = dict(event_data)
        event_data["timestamp"] = datetime.now(timezone.utc).isoformat()
        event_data["event_type"] = event_type

        for handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(event_data)
            except Exception:
                logger.exception(f"Error in event handler for {event_type}")

    def clear_subscribers(self, event_type: Optional[str] = None) -> None:
        """Clear subscribers for an event type, or all subscribers."""
        if event_type:
            self._subscribers.pop(event_type, None)
        else:
            self._subscribers.clear()

    def get_subscriber_count(self, event_type: str) -> int:
        return len(self._subscribers.get(event_type, []))
