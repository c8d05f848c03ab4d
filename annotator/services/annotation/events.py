"""
Change notifications

A small observer used by the store (annotation changes) and the tool state
machine (presentation updates). Listeners are plain callables; a failing
listener is logged and never prevents the others from running.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

# Topics
ANNOTATIONS_CHANGED = "annotations:changed"
PRESENTATION_CHANGED = "presentation:changed"


class ChangeKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


class ChangeSource(str, Enum):
    EDIT = "edit"
    UNDO = "undo"
    REDO = "redo"


@dataclass(frozen=True)
class AnnotationEvent:
    """
    One store mutation

    Attributes:
        kind: What happened to the annotations
        annotation_ids: Affected annotation ids
        source: Whether the change came from an edit or from undo / redo
    """
    kind: ChangeKind
    annotation_ids: Tuple[int, ...]
    source: ChangeSource = ChangeSource.EDIT


class EventBus:
    """Topic-based publish / subscribe"""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, topic: str, listener: Listener) -> Callable[[], None]:
        """
        Subscribe to a topic

        Returns:
            Function that removes this subscription when called
        """
        self._listeners.setdefault(topic, []).append(listener)
        return lambda: self.off(topic, listener)

    def off(self, topic: str, listener: Listener) -> None:
        listeners = self._listeners.get(topic, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, topic: str, payload: Any = None) -> None:
        # Copy so listeners may unsubscribe while being called
        for listener in list(self._listeners.get(topic, [])):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Error in listener for '{topic}'")

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, []))

    def clear(self) -> None:
        self._listeners.clear()
