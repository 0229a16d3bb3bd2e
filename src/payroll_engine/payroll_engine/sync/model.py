from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..attendance.model import AttendanceEvent
from ..core.enums import EventType


@dataclass
class SyncQueueItem:
    """An attendance action captured while offline.

    ``original_timestamp`` is the capture time and is what gets replayed, so
    the event lands on the day it happened rather than the day it synced.
    """

    item_id: int
    action: EventType
    original_timestamp: datetime
    payload: dict[str, Any]
    dedup_key: str
    created_at: datetime
    attempts: int = 0
    synced: bool = False
    discarded: bool = False
    last_error: Optional[str] = field(default=None, compare=False)

    @property
    def is_pending(self) -> bool:
        return not self.synced and not self.discarded

    @property
    def employee_id(self) -> int:
        return int(self.payload["employee_id"])

    @property
    def device_id(self) -> str:
        return str(self.payload.get("device_id") or "")

    def to_event(self) -> AttendanceEvent:
        event = AttendanceEvent.from_dict(self.payload)
        if event.timestamp != self.original_timestamp:
            # payload may have been re-stamped by the client; capture time wins
            data = dict(self.payload, timestamp=self.original_timestamp.isoformat())
            event = AttendanceEvent.from_dict(data)
        return event

    @classmethod
    def from_event(cls, item_id: int, event: AttendanceEvent, *, created_at: datetime) -> "SyncQueueItem":
        return cls(
            item_id=item_id,
            action=event.type,
            original_timestamp=event.timestamp,
            payload=event.to_dict(),
            dedup_key=event.dedup_key,
            created_at=created_at,
        )

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "action": self.action.value,
            "original_timestamp": self.original_timestamp.isoformat(),
            "payload": self.payload,
            "dedup_key": self.dedup_key,
            "created_at": self.created_at.isoformat(),
            "attempts": self.attempts,
            "synced": self.synced,
            "discarded": self.discarded,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncQueueItem":
        return cls(
            item_id=int(data["item_id"]),
            action=EventType(data["action"]),
            original_timestamp=datetime.fromisoformat(data["original_timestamp"]),
            payload=dict(data["payload"]),
            dedup_key=str(data["dedup_key"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            attempts=int(data.get("attempts", 0)),
            synced=bool(data.get("synced", False)),
            discarded=bool(data.get("discarded", False)),
            last_error=data.get("last_error"),
        )
