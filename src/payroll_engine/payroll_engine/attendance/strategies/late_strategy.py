from __future__ import annotations

from ...core.enums import DayStatus
from ...rules.model import AttendanceRules
from ..model import AttendanceDay
from .base import DayStatusStrategy, StatusDecision


class LateStrategy(DayStatusStrategy):
    """Late check-in past grace + threshold."""

    def decide(self, *, day: AttendanceDay, rules: AttendanceRules) -> StatusDecision:
        return StatusDecision(status=DayStatus.LATE, note=f"late by {day.late_minutes} min")
