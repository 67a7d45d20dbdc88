import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from loguru import logger
from pydantic import BaseModel, Field


class EditEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_type: str
    source: str
    payload: Dict[str, Any]


class EventBus:
    """A lightweight, synchronous event bus for pipeline observability.

    One bus per session; the controller owns it and hands it to subscribers.
    """

    def __init__(self):
        self._subscribers: List[Callable[[EditEvent], None]] = []

    def subscribe(self, callback: Callable[[EditEvent], None]) -> None:
        """Register a callback to be executed when an event is emitted."""
        self._subscribers.append(callback)

    def emit(self, event_type: str, source: str, payload: Dict[str, Any]) -> EditEvent:
        """Construct and broadcast an EditEvent to all subscribers."""
        event = EditEvent(
            event_type=event_type,
            source=source,
            payload=payload,
        )

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # A broken subscriber must not stop a batch halfway.
                logger.warning(f"[EVENTS] Subscriber failed on {event_type}: {e}")

        return event
