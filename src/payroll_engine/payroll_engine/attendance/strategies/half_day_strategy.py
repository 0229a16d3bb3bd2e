from __future__ import annotations

from ...core.enums import DayStatus
from ...rules.model import AttendanceRules
from ..model import AttendanceDay
from .base import DayStatusStrategy, StatusDecision


class HalfDayStrategy(DayStatusStrategy):
    """Worked strictly less than the half-day threshold."""

    def decide(self, *, day: AttendanceDay, rules: AttendanceRules) -> StatusDecision:
        return StatusDecision(
            status=DayStatus.HALF_DAY,
            note=f"worked {day.total_working_minutes} min < {rules.half_day_threshold_hours}h",
        )
