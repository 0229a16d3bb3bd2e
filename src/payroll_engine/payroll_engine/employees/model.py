from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Compensation:
    """Pay inputs in integer minor units (hourly_rate is per hour)."""

    basic_salary: int
    allowances: int = 0
    hourly_rate: int = 0


@dataclass(frozen=True)
class Employee:
    employee_id: int
    full_name: str
    shift_id: Optional[int]
    compensation: Compensation
    is_active: bool = True
