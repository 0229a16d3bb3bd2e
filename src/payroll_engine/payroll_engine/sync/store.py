from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol, Sequence

from .model import SyncQueueItem


class SyncQueueStore(Protocol):
    """Client-side persistence for the offline queue."""

    def load(self) -> list[SyncQueueItem]:
        raise NotImplementedError

    def save(self, items: Sequence[SyncQueueItem]) -> None:
        raise NotImplementedError


class JsonFileSyncStore(SyncQueueStore):
    """Whole queue in one JSON file, rewritten atomically on every save."""

    def __init__(self, path: Path | str):
        self._path = Path(path)

    def load(self) -> list[SyncQueueItem]:
        if not self._path.exists():
            return []
        data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        return [SyncQueueItem.from_dict(row) for row in data]

    def save(self, items: Sequence[SyncQueueItem]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".sync-", suffix=".json", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump([i.to_dict() for i in items], fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
