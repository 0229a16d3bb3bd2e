"""Turns ordered attendance events into one AttendanceDay per employee/date.

The aggregator is pure: every operation takes a day and returns a new one,
so a rejected event leaves the caller's day untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Optional

from ..common.datetime_utils import whole_minutes
from ..common.geo import haversine_meters
from ..core.enums import DayPhase, DayStatus, EventType
from ..core.exceptions import DomainError, ErrorCode, GeoFenceViolationError, ValidationError
from ..rules.model import AttendanceRules, GeoFence
from ..shifts.model import Shift
from .factory import DayStatusStrategyFactory
from .model import AttendanceDay, AttendanceEvent, BreakPeriod

logger = logging.getLogger(__name__)

MARKABLE_STATUSES = {DayStatus.ABSENT, DayStatus.HOLIDAY, DayStatus.LEAVE}


@dataclass
class AggregationResult:
    day: AttendanceDay
    rejected: list[tuple[AttendanceEvent, DomainError]] = field(default_factory=list)


class AttendanceDayAggregator:
    def __init__(
        self,
        rules: AttendanceRules,
        geo_fence: Optional[GeoFence] = None,
        *,
        strategy_factory: Optional[DayStatusStrategyFactory] = None,
    ):
        self._rules = rules
        self._geo_fence = geo_fence
        self._factory = strategy_factory or DayStatusStrategyFactory()

    @staticmethod
    def new_day(employee_id: int, work_date: date, *, shift_id: Optional[int] = None) -> AttendanceDay:
        return AttendanceDay(employee_id=int(employee_id), work_date=work_date, shift_id=shift_id)

    # -------- validation --------
    def validate_location(self, event: AttendanceEvent) -> float:
        """Recompute distance to the office; the client's hint is never trusted."""
        fence = self._geo_fence
        if fence is None or not fence.enabled:
            return 0.0

        distance = haversine_meters(event.location, fence.office)
        if event.is_within_radius is not None and event.is_within_radius != (distance <= fence.radius_meters):
            logger.warning(
                "Client geo hint disagrees for employee=%s device=%s (distance=%.0fm)",
                event.employee_id,
                event.device_id,
                distance,
            )
        if distance > fence.radius_meters:
            raise GeoFenceViolationError(
                f"Outside the geo-fence: {distance:.0f}m > {fence.radius_meters:.0f}m",
                employee_id=event.employee_id,
                work_date=event.work_date,
                distance_meters=round(distance),
                radius_meters=fence.radius_meters,
            )
        return distance

    def _reject(self, day: AttendanceDay, event: AttendanceEvent, message: str, code: ErrorCode) -> ValidationError:
        return ValidationError(
            message,
            code=code,
            employee_id=day.employee_id,
            work_date=day.work_date,
            event_type=event.type.value,
            dedup_key=event.dedup_key,
        )

    # -------- transitions --------
    def apply(self, day: AttendanceDay, event: AttendanceEvent, *, shift: Optional[Shift] = None) -> AttendanceDay:
        """Apply one event; returns ``day`` itself when the dedup key was already seen."""
        if event.dedup_key in day.dedup_keys:
            return day

        if event.employee_id != day.employee_id or event.work_date != day.work_date:
            raise self._reject(day, event, "Event belongs to another employee/date", ErrorCode.OUT_OF_ORDER)
        if not day.is_open:
            raise self._reject(day, event, f"Day is {day.phase.value}", ErrorCode.INVALID_TRANSITION)
        if day.last_event_at is not None and event.timestamp < day.last_event_at:
            raise self._reject(day, event, "Event is older than the last accepted one", ErrorCode.OUT_OF_ORDER)

        self.validate_location(event)

        if event.type == EventType.CHECK_IN:
            updated = self._check_in(day, event)
        elif event.type == EventType.BREAK_START:
            updated = self._break_start(day, event)
        elif event.type == EventType.BREAK_END:
            updated = self._break_end(day, event)
        else:
            updated = self._check_out(day, event)

        updated = replace(updated, dedup_keys=day.dedup_keys | {event.dedup_key}, last_event_at=event.timestamp)
        if event.type == EventType.CHECK_OUT:
            updated = self.finalize(updated, shift=shift)
        return updated

    def _check_in(self, day: AttendanceDay, event: AttendanceEvent) -> AttendanceDay:
        if day.check_in is not None:
            raise self._reject(day, event, "Already checked in", ErrorCode.INVALID_TRANSITION)
        return replace(day, check_in=event.timestamp)

    def _break_start(self, day: AttendanceDay, event: AttendanceEvent) -> AttendanceDay:
        if not day.has_session or day.on_break:
            raise self._reject(day, event, "Break can only start while checked in", ErrorCode.INVALID_TRANSITION)
        if len(day.breaks) >= self._rules.max_breaks_per_day:
            raise self._reject(
                day, event, f"Maximum {self._rules.max_breaks_per_day} breaks allowed per day", ErrorCode.BREAK_LIMIT_EXCEEDED
            )
        return replace(day, breaks=day.breaks + (BreakPeriod(seq=len(day.breaks) + 1, start=event.timestamp),))

    def _break_end(self, day: AttendanceDay, event: AttendanceEvent) -> AttendanceDay:
        if not day.on_break:
            raise self._reject(day, event, "No active break", ErrorCode.INVALID_TRANSITION)
        closed = replace(day.breaks[-1], end=event.timestamp)
        return replace(day, breaks=day.breaks[:-1] + (closed,))

    def _check_out(self, day: AttendanceDay, event: AttendanceEvent) -> AttendanceDay:
        if not day.has_session or day.on_break:
            raise self._reject(day, event, "Check-out requires an open session with no active break", ErrorCode.INVALID_TRANSITION)
        return replace(day, check_out=event.timestamp)

    # -------- finalization --------
    def finalize(self, day: AttendanceDay, *, shift: Optional[Shift] = None) -> AttendanceDay:
        if day.check_in is None or day.check_out is None:
            raise ValidationError(
                "Cannot finalize a day without check-in and check-out",
                code=ErrorCode.INVALID_STATE,
                employee_id=day.employee_id,
                work_date=day.work_date,
            )

        rules = self._rules
        break_minutes = 0
        overrun = 0
        for b in day.breaks:
            minutes = whole_minutes(b.end - b.start)
            break_minutes += minutes
            overrun += max(0, minutes - rules.break_duration_minutes)

        working = max(0, whole_minutes(day.check_out - day.check_in) - break_minutes)
        overtime = max(0, working - int(rules.overtime_threshold_minutes))

        is_late, late_minutes, early_minutes = False, 0, 0
        if shift is not None:
            delay = whole_minutes(day.check_in - shift.start_on(day.work_date))
            is_late = delay > rules.grace_time_minutes + rules.late_threshold_minutes
            late_minutes = delay - rules.grace_time_minutes if is_late else 0
            early_minutes = max(0, whole_minutes(shift.end_on(day.work_date) - day.check_out))

        computed = replace(
            day,
            phase=DayPhase.FINALIZED,
            total_break_minutes=break_minutes,
            break_overrun_minutes=overrun,
            total_working_minutes=working,
            overtime_minutes=overtime,
            is_late=is_late,
            late_minutes=late_minutes,
            early_checkout_minutes=early_minutes,
            shift_id=shift.shift_id if shift else day.shift_id,
        )
        decision = self._factory.for_day(day=computed, rules=rules).decide(day=computed, rules=rules)
        return replace(computed, status=decision.status, note=decision.note)

    def close_if_elapsed(self, day: AttendanceDay, *, as_of: datetime) -> AttendanceDay:
        """An open day whose date has passed without checkout becomes incomplete."""
        if day.is_open and as_of.date() > day.work_date:
            logger.info("Attendance day incomplete: employee=%s date=%s", day.employee_id, day.work_date)
            return replace(day, phase=DayPhase.INCOMPLETE, note="no checkout recorded")
        return day

    def mark(self, employee_id: int, work_date: date, status: DayStatus, *, note: Optional[str] = None) -> AttendanceDay:
        """Finalized non-worked day (absent/holiday/leave) recorded by an admin."""
        if status not in MARKABLE_STATUSES:
            raise ValidationError(
                f"Only {sorted(s.value for s in MARKABLE_STATUSES)} can be marked",
                code=ErrorCode.INVALID_STATE,
                employee_id=employee_id,
                work_date=work_date,
            )
        return AttendanceDay(
            employee_id=int(employee_id),
            work_date=work_date,
            phase=DayPhase.FINALIZED,
            status=status,
            note=note,
        )

    def aggregate(
        self,
        employee_id: int,
        work_date: date,
        events: Iterable[AttendanceEvent],
        *,
        shift: Optional[Shift] = None,
    ) -> AggregationResult:
        """Fold a time-ordered event sequence; rejected events are collected, not applied."""
        result = AggregationResult(day=self.new_day(employee_id, work_date))
        for event in events:
            try:
                result.day = self.apply(result.day, event, shift=shift)
            except DomainError as exc:
                result.rejected.append((event, exc))
        return result
