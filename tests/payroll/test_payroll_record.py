from datetime import datetime

import pytest

from conftest import make_rules, month_of_days
from src.payroll_engine.payroll_engine.core.enums import AuditAction, PaymentMethod, PayrollStatus, Role
from src.payroll_engine.payroll_engine.core.exceptions import ErrorCode, ImmutableRecordError, ValidationError
from src.payroll_engine.payroll_engine.employees.model import Compensation
from src.payroll_engine.payroll_engine.payroll.calculator.base import PayrollInput
from src.payroll_engine.payroll_engine.payroll.calculator.standard_calculator import StandardPayrollCalculator
from src.payroll_engine.payroll_engine.payroll.model import PayrollFigures, PayrollRecord, Signature

AT = datetime(2025, 7, 1, 10, 0)


def _figures():
    return StandardPayrollCalculator().calculate(
        PayrollInput(
            employee_id=1,
            year=2025,
            month=6,
            days=month_of_days(1, 2025, 6),
            leaves=[],
            rules=make_rules(),
            compensation=Compensation(basic_salary=21000),
        )
    )


def _signature(role):
    return Signature(
        owner_role=role, owner_id=1, image_hash="h", device_id="d", ip_address="127.0.0.1", timestamp=AT
    )


def _locked_record():
    record = PayrollRecord(employee_id=1, year=2025, month=6, payroll_id=7)
    record.apply_calculation(_figures(), rules_snapshot_id=1, actor="admin:1", at=AT)
    record.lock(verified=(_signature(Role.EMPLOYEE), _signature(Role.ADMIN)), actor="admin:1", at=AT)
    return record


def test_calculation_moves_draft_to_calculated():
    record = PayrollRecord(employee_id=1, year=2025, month=6)
    record.apply_calculation(_figures(), rules_snapshot_id=3, actor="admin:1", at=AT)

    assert record.status == PayrollStatus.CALCULATED
    assert record.rules_snapshot_id == 3
    assert record.net_payable == 21000
    assert [e.action for e in record.audit_trail] == [AuditAction.CALCULATE]


def test_locked_record_rejects_field_writes():
    record = _locked_record()
    before = record.to_dict()

    with pytest.raises(ImmutableRecordError):
        record.figures = None
    with pytest.raises(ImmutableRecordError):
        record.employee_signature = None
    with pytest.raises(ImmutableRecordError):
        record.apply_calculation(_figures(), rules_snapshot_id=2, actor="admin:1", at=AT)

    assert record.to_dict() == before


def test_locked_record_can_only_become_paid():
    record = _locked_record()

    with pytest.raises(ImmutableRecordError):
        record.approve(actor="admin:1", at=AT)

    record.mark_paid(actor="admin:1", at=AT, payment_method=PaymentMethod.CASH, payment_reference="R-1")

    assert record.status == PayrollStatus.PAID
    assert record.payment_method == PaymentMethod.CASH
    with pytest.raises(ImmutableRecordError):
        record.payment_reference = "R-2"


def test_paid_is_terminal():
    record = _locked_record()
    record.mark_paid(actor="admin:1", at=AT)

    with pytest.raises(ValidationError) as exc:
        record.mark_paid(actor="admin:1", at=AT)

    assert exc.value.code == ErrorCode.INVALID_TRANSITION


def test_draft_cannot_be_approved():
    record = PayrollRecord(employee_id=1, year=2025, month=6)

    with pytest.raises(ValidationError):
        record.approve(actor="admin:1", at=AT)

    assert record.status == PayrollStatus.DRAFT


def test_loaded_locked_record_keeps_its_fields():
    original = _locked_record()
    copy = original.copy()

    assert copy.is_locked
    assert copy.to_dict() == original.to_dict()


def test_figures_survive_dict_round_trip():
    figures = _figures()

    assert PayrollFigures.from_dict(figures.to_dict()) == figures


def test_missing_signatures_lists_empty_slots():
    record = PayrollRecord(employee_id=1, year=2025, month=6)
    record.apply_calculation(_figures(), rules_snapshot_id=1, actor="admin:1", at=AT)
    record.attach_signature(_signature(Role.EMPLOYEE), actor="employee:1", at=AT)

    assert record.missing_signatures() == ["admin"]
