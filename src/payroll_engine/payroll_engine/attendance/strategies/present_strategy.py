from __future__ import annotations

from ...core.enums import DayStatus
from ...rules.model import AttendanceRules
from ..model import AttendanceDay
from .base import DayStatusStrategy, StatusDecision


class PresentStrategy(DayStatusStrategy):
    """On-time check-in, full day."""

    def decide(self, *, day: AttendanceDay, rules: AttendanceRules) -> StatusDecision:
        note = None
        if day.early_checkout_minutes:
            note = f"left {day.early_checkout_minutes} min early"
        return StatusDecision(status=DayStatus.PRESENT, note=note)
