from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..common.datetime_utils import month_bounds
from ..core.enums import DayStatus
from ..attendance.model import AttendanceDay


@dataclass(frozen=True)
class SmartLateResult:
    late_count: int
    half_day_conversions: int
    remainder_lates: int


class SmartLateRuleAccumulator:
    """Smart late rule: every N lates in a pay period cost one half day.

    Counts every late day in the period, consecutive or not; nothing carries
    over into the next period. With the rule disabled every late stays a
    plain late.
    """

    def __init__(self, lates_for_half_day: int, *, enabled: bool = True):
        self._per_half_day = int(lates_for_half_day)
        self._enabled = bool(enabled) and self._per_half_day > 0

    def accumulate(self, days: Iterable[AttendanceDay], *, year: int, month: int) -> SmartLateResult:
        start, end = month_bounds(year, month)
        late_count = sum(1 for d in days if d.status == DayStatus.LATE and start <= d.work_date <= end)

        if not self._enabled:
            return SmartLateResult(late_count=late_count, half_day_conversions=0, remainder_lates=late_count)

        conversions, remainder = divmod(late_count, self._per_half_day)
        return SmartLateResult(late_count=late_count, half_day_conversions=conversions, remainder_lates=remainder)
