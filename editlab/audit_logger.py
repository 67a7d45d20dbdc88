from pathlib import Path
from typing import Iterable

from editlab.event_bus import EditEvent, EventBus

FLUSH_ON = ("batch_applied", "batch_reverted")


class AuditLogger:
    """
    Subscribes to an EventBus and appends events to a JSONL file.

    Events are buffered until one of `flush_on` arrives, so a request
    that ends without touching the project leaves nothing on disk.
    """

    def __init__(self, file_path: Path, event_bus: EventBus, flush_on: Iterable[str] = FLUSH_ON):
        self.file_path = Path(file_path)
        self.flush_on = frozenset(flush_on)
        self.written = False
        self._buffer: list[EditEvent] = []
        event_bus.subscribe(self.log_event)

    def log_event(self, event: EditEvent) -> None:
        self._buffer.append(event)
        if event.event_type in self.flush_on:
            self.flush()

    def flush(self) -> None:
        if not self._buffer:
            return
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, "a", encoding="utf-8") as f:
            f.writelines(event.model_dump_json() + "\n" for event in self._buffer)
        self._buffer.clear()
        self.written = True
