from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...core.enums import DayStatus
from ...rules.model import AttendanceRules
from ..model import AttendanceDay


@dataclass(frozen=True)
class StatusDecision:
    status: DayStatus
    note: Optional[str] = None


class DayStatusStrategy(ABC):
    """Strategy Pattern: encapsulate how a finalized day is classified."""

    @abstractmethod
    def decide(self, *, day: AttendanceDay, rules: AttendanceRules) -> StatusDecision:
        raise NotImplementedError
