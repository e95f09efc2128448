"""Change notifications passed from the stores to whoever subscribes."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    LINE_ITEMS_CHANGED = "line-items-changed"
    BONUS_SCHEME_CHANGED = "bonus-scheme-changed"
    ASSET_CREATED = "asset-created"
    ASSET_UPDATED = "asset-updated"
    ASSET_DELETED = "asset-deleted"
    DEPRECIATION_CREATED = "depreciation-created"
    DEPRECIATION_UPDATED = "depreciation-updated"
    DEPRECIATION_DELETED = "depreciation-deleted"


@dataclass(frozen=True)
class Event:
    type: EventType
    business_id: str
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None


Listener = Callable[[Event], None]


class EventBus:
    """Synchronous publish/subscribe; each subscriber owns its unsubscribe handle."""

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = defaultdict(list)

    def subscribe(self, event_type: EventType, listener: Listener) -> Callable[[], None]:
        self._listeners[event_type].append(listener)
        return lambda: self.unsubscribe(event_type, listener)

    def unsubscribe(self, event_type: EventType, listener: Listener) -> None:
        if listener in self._listeners.get(event_type, []):
            self._listeners[event_type].remove(listener)

    def publish(self, event: Event) -> None:
        for listener in list(self._listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed for %s", event.type.value)

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
