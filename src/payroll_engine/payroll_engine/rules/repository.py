from __future__ import annotations

from typing import Optional, Protocol

from .model import RulesSnapshot


class RulesSnapshotRepository(Protocol):
    """Append-only store of rules snapshots; rows are never updated."""

    def get_latest(self) -> Optional[RulesSnapshot]:
        raise NotImplementedError

    def get_by_id(self, snapshot_id: int) -> Optional[RulesSnapshot]:
        raise NotImplementedError

    def create_snapshot(self, rules: RulesSnapshot) -> RulesSnapshot:
        """Persist a new version and return it with its assigned id."""

        raise NotImplementedError
