from __future__ import annotations

from dataclasses import dataclass

from ..rules.model import AttendanceRules
from .model import AttendanceDay
from .strategies.base import DayStatusStrategy
from .strategies.half_day_strategy import HalfDayStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class DayStatusStrategyFactory:
    """Factory Pattern: choose the status strategy for a finalized day.

    Half-day wins over late: a short day is one half-day deduction, never
    also a late count.
    """

    def for_day(self, *, day: AttendanceDay, rules: AttendanceRules) -> DayStatusStrategy:
        # strict: working exactly the threshold is not a half day
        if day.total_working_minutes < rules.half_day_threshold_minutes:
            return HalfDayStrategy()
        if day.is_late:
            return LateStrategy()
        return PresentStrategy()
