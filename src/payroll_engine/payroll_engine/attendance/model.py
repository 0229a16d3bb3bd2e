from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..common.geo import Location
from ..core.enums import DayPhase, DayStatus, EventType


@dataclass(frozen=True)
class AttendanceEvent:
    """Domain entity: one raw attendance action. Immutable once accepted."""

    employee_id: int
    type: EventType
    timestamp: datetime
    location: Location
    device_id: str
    dedup_key: str
    # advisory only; the engine always recomputes the distance itself
    is_within_radius: Optional[bool] = None

    @property
    def work_date(self) -> date:
        return self.timestamp.date()

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "location": {"lat": self.location.lat, "lng": self.location.lng},
            "device_id": self.device_id,
            "dedup_key": self.dedup_key,
            "is_within_radius": self.is_within_radius,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceEvent":
        loc = data.get("location") or {}
        ts = data["timestamp"]
        return cls(
            employee_id=int(data["employee_id"]),
            type=EventType(data["type"]),
            timestamp=ts if isinstance(ts, datetime) else datetime.fromisoformat(ts),
            location=Location(lat=float(loc["lat"]), lng=float(loc["lng"])),
            device_id=str(data["device_id"]),
            dedup_key=str(data["dedup_key"]),
            is_within_radius=data.get("is_within_radius"),
        )


@dataclass(frozen=True)
class BreakPeriod:
    """Entry of the day's append-only break log, addressed by (day, seq)."""

    seq: int
    start: datetime
    end: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end is None


@dataclass(frozen=True)
class AttendanceDay:
    """Domain entity: one employee's attendance for one calendar date.

    Derived figures (working/break minutes, lateness, overtime) are only
    filled on finalize, always recomputed from the stored timestamps.
    """

    employee_id: int
    work_date: date
    phase: DayPhase = DayPhase.OPEN
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    breaks: tuple[BreakPeriod, ...] = ()
    dedup_keys: frozenset[str] = frozenset()
    last_event_at: Optional[datetime] = None
    status: Optional[DayStatus] = None
    is_late: bool = False
    late_minutes: int = 0
    total_working_minutes: int = 0
    total_break_minutes: int = 0
    overtime_minutes: int = 0
    early_checkout_minutes: int = 0
    break_overrun_minutes: int = 0
    note: Optional[str] = None
    day_id: Optional[int] = None
    version: int = 0
    shift_id: Optional[int] = field(default=None, compare=False)

    @property
    def is_open(self) -> bool:
        return self.phase == DayPhase.OPEN

    @property
    def is_finalized(self) -> bool:
        return self.phase == DayPhase.FINALIZED

    @property
    def on_break(self) -> bool:
        return bool(self.breaks) and self.breaks[-1].is_open

    @property
    def has_session(self) -> bool:
        return self.check_in is not None and self.check_out is None

    @property
    def total_working_hours(self) -> Decimal:
        return Decimal(self.total_working_minutes) / 60

    @property
    def overtime_hours(self) -> Decimal:
        return Decimal(self.overtime_minutes) / 60

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "date": self.work_date.isoformat(),
            "phase": self.phase.value,
            "check_in": self.check_in.isoformat() if self.check_in else None,
            "check_out": self.check_out.isoformat() if self.check_out else None,
            "breaks": [
                {"seq": b.seq, "start": b.start.isoformat(), "end": b.end.isoformat() if b.end else None}
                for b in self.breaks
            ],
            "status": self.status.value if self.status else None,
            "is_late": self.is_late,
            "late_minutes": self.late_minutes,
            "total_working_hours": str(self.total_working_hours.quantize(Decimal("0.01"))),
            "total_break_minutes": self.total_break_minutes,
            "overtime_hours": str(self.overtime_hours.quantize(Decimal("0.01"))),
            "early_checkout_minutes": self.early_checkout_minutes,
            "break_overrun_minutes": self.break_overrun_minutes,
            "note": self.note,
        }
