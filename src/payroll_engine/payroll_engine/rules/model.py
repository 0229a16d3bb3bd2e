from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from ..common.geo import Location
from ..common.money import to_decimal
from ..core.constants import DEFAULT_GEOFENCE_RADIUS_METERS


@dataclass(frozen=True)
class AttendanceRules:
    grace_time_minutes: int = 15
    late_threshold_minutes: int = 0
    half_day_threshold_hours: Decimal = Decimal("4")
    overtime_threshold_hours: Decimal = Decimal("8")
    break_duration_minutes: int = 60
    max_breaks_per_day: int = 2

    @property
    def half_day_threshold_minutes(self) -> Decimal:
        return self.half_day_threshold_hours * 60

    @property
    def overtime_threshold_minutes(self) -> Decimal:
        return self.overtime_threshold_hours * 60


@dataclass(frozen=True)
class LeaveRules:
    paid_per_year: int = 12
    sick_per_year: int = 6
    max_consecutive: int = 10
    carry_forward: bool = False
    max_carry_forward_days: int = 0


@dataclass(frozen=True)
class PayrollRules:
    """Payroll knobs; penalty amounts are integer minor units."""

    overtime_rate_multiplier: Decimal = Decimal("1.5")
    late_penalty_amount: int = 10000
    half_day_penalty_amount: int = 0
    smart_late_rule_enabled: bool = True
    lates_for_half_day: int = 3
    include_weekends: bool = False
    include_holidays: bool = False


@dataclass(frozen=True)
class GeoFence:
    enabled: bool = True
    office: Location = Location(lat=0.0, lng=0.0)
    radius_meters: float = DEFAULT_GEOFENCE_RADIUS_METERS


@dataclass(frozen=True)
class RulesSnapshot:
    """Immutable, timestamped copy of the business rules.

    A PayrollRecord pins ``snapshot_id``; later edits create a new snapshot
    and never touch this one.
    """

    snapshot_id: int
    created_at: datetime
    attendance: AttendanceRules = field(default_factory=AttendanceRules)
    leave: LeaveRules = field(default_factory=LeaveRules)
    payroll: PayrollRules = field(default_factory=PayrollRules)
    geo_fence: GeoFence = field(default_factory=GeoFence)
    holidays: frozenset[date] = frozenset()

    def is_holiday(self, d: date) -> bool:
        return d in self.holidays

    def to_dict(self) -> dict:
        a, lv, p, g = self.attendance, self.leave, self.payroll, self.geo_fence
        return {
            "snapshot_id": self.snapshot_id,
            "created_at": self.created_at.isoformat(),
            "attendance": {
                "grace_time_minutes": a.grace_time_minutes,
                "late_threshold_minutes": a.late_threshold_minutes,
                "half_day_threshold_hours": str(a.half_day_threshold_hours),
                "overtime_threshold_hours": str(a.overtime_threshold_hours),
                "break_duration_minutes": a.break_duration_minutes,
                "max_breaks_per_day": a.max_breaks_per_day,
            },
            "leave": {
                "paid_per_year": lv.paid_per_year,
                "sick_per_year": lv.sick_per_year,
                "max_consecutive": lv.max_consecutive,
                "carry_forward": lv.carry_forward,
                "max_carry_forward_days": lv.max_carry_forward_days,
            },
            "payroll": {
                "overtime_rate_multiplier": str(p.overtime_rate_multiplier),
                "late_penalty_amount": p.late_penalty_amount,
                "half_day_penalty_amount": p.half_day_penalty_amount,
                "smart_late_rule_enabled": p.smart_late_rule_enabled,
                "lates_for_half_day": p.lates_for_half_day,
                "include_weekends": p.include_weekends,
                "include_holidays": p.include_holidays,
            },
            "geo_fence": {
                "enabled": g.enabled,
                "office": {"lat": g.office.lat, "lng": g.office.lng},
                "radius_meters": g.radius_meters,
            },
            "holidays": sorted(d.isoformat() for d in self.holidays),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, snapshot_id: Optional[int] = None) -> "RulesSnapshot":
        a = data.get("attendance") or {}
        lv = data.get("leave") or {}
        p = data.get("payroll") or {}
        g = data.get("geo_fence") or {}
        office = g.get("office") or {}

        defaults_a, defaults_p = AttendanceRules(), PayrollRules()
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return cls(
            snapshot_id=int(snapshot_id if snapshot_id is not None else data.get("snapshot_id", 0)),
            created_at=created_at or datetime.now(),
            attendance=AttendanceRules(
                grace_time_minutes=int(a.get("grace_time_minutes", defaults_a.grace_time_minutes)),
                late_threshold_minutes=int(a.get("late_threshold_minutes", defaults_a.late_threshold_minutes)),
                half_day_threshold_hours=to_decimal(a.get("half_day_threshold_hours", defaults_a.half_day_threshold_hours)),
                overtime_threshold_hours=to_decimal(a.get("overtime_threshold_hours", defaults_a.overtime_threshold_hours)),
                break_duration_minutes=int(a.get("break_duration_minutes", defaults_a.break_duration_minutes)),
                max_breaks_per_day=int(a.get("max_breaks_per_day", defaults_a.max_breaks_per_day)),
            ),
            leave=LeaveRules(
                paid_per_year=int(lv.get("paid_per_year", 12)),
                sick_per_year=int(lv.get("sick_per_year", 6)),
                max_consecutive=int(lv.get("max_consecutive", 10)),
                carry_forward=bool(lv.get("carry_forward", False)),
                max_carry_forward_days=int(lv.get("max_carry_forward_days", 0)),
            ),
            payroll=PayrollRules(
                overtime_rate_multiplier=to_decimal(p.get("overtime_rate_multiplier", defaults_p.overtime_rate_multiplier)),
                late_penalty_amount=int(p.get("late_penalty_amount", defaults_p.late_penalty_amount)),
                half_day_penalty_amount=int(p.get("half_day_penalty_amount", defaults_p.half_day_penalty_amount)),
                smart_late_rule_enabled=bool(p.get("smart_late_rule_enabled", defaults_p.smart_late_rule_enabled)),
                lates_for_half_day=int(p.get("lates_for_half_day", defaults_p.lates_for_half_day)),
                include_weekends=bool(p.get("include_weekends", defaults_p.include_weekends)),
                include_holidays=bool(p.get("include_holidays", defaults_p.include_holidays)),
            ),
            geo_fence=GeoFence(
                enabled=bool(g.get("enabled", True)),
                office=Location(lat=float(office.get("lat", 0.0)), lng=float(office.get("lng", 0.0))),
                radius_meters=float(g.get("radius_meters", DEFAULT_GEOFENCE_RADIUS_METERS)),
            ),
            holidays=frozenset(date.fromisoformat(d) for d in data.get("holidays") or []),
        )
