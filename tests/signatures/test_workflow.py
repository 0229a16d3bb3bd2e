import threading
from dataclasses import replace
from datetime import datetime

import pytest

from conftest import FakePayrollRepo, make_rules, month_of_days
from src.payroll_engine.payroll_engine.core.enums import AuditAction, PaymentMethod, PayrollStatus, Role
from src.payroll_engine.payroll_engine.core.exceptions import (
    AuthorizationError,
    ConcurrencyConflictError,
    ErrorCode,
    ImmutableRecordError,
    ValidationError,
    VerificationError,
)
from src.payroll_engine.payroll_engine.employees.model import Compensation
from src.payroll_engine.payroll_engine.payroll.calculator.base import PayrollInput
from src.payroll_engine.payroll_engine.payroll.calculator.standard_calculator import StandardPayrollCalculator
from src.payroll_engine.payroll_engine.payroll.model import PayrollRecord
from src.payroll_engine.payroll_engine.signatures.actors import AdminActor, EmployeeActor, actor_from_session
from src.payroll_engine.payroll_engine.signatures.hashing import signature_hash
from src.payroll_engine.payroll_engine.signatures.workflow import SignatureLockWorkflow

AT = datetime(2025, 7, 1, 9, 30)
ADMIN = AdminActor(100)
OWNER = EmployeeActor(1)


@pytest.fixture
def payrolls():
    repo = FakePayrollRepo()
    figures = StandardPayrollCalculator().calculate(
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
    record = PayrollRecord(employee_id=1, year=2025, month=6)
    record.apply_calculation(figures, rules_snapshot_id=1, actor=ADMIN.label, at=AT)
    repo.create(record)
    return repo


@pytest.fixture
def workflow(payrolls):
    return SignatureLockWorkflow(payrolls, clock=lambda: AT)


def _sign_both(workflow):
    workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="data:image/png;base64,AAA", device_id="phone", ip_address="10.0.0.2")
    workflow.sign(1, ADMIN, role=Role.ADMIN, image_data="data:image/png;base64,BBB", device_id="desk", ip_address="10.0.0.1")


def test_sign_stores_hash_bound_to_slot(workflow, payrolls):
    record = workflow.sign(
        1, OWNER, role=Role.EMPLOYEE, image_data="img", device_id="phone", ip_address="10.0.0.2"
    )

    sig = record.employee_signature
    assert sig.image_hash == signature_hash(
        image_data="img", owner_role=Role.EMPLOYEE, owner_id=1, payroll_id=1, timestamp=AT
    )
    assert sig.verified is False
    assert payrolls.stored(1).employee_signature == sig


def test_employee_signs_only_own_payroll(workflow):
    with pytest.raises(AuthorizationError):
        workflow.sign(1, EmployeeActor(2), role=Role.EMPLOYEE, image_data="img", device_id="d", ip_address="ip")


def test_employee_cannot_take_admin_slot(workflow):
    with pytest.raises(AuthorizationError):
        workflow.sign(1, OWNER, role=Role.ADMIN, image_data="img", device_id="d", ip_address="ip")


def test_empty_signature_is_rejected(workflow):
    with pytest.raises(ValidationError) as exc:
        workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="  ", device_id="d", ip_address="ip")

    assert exc.value.code == ErrorCode.MISSING_FIELD


def test_slot_cannot_be_signed_twice(workflow):
    workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="img", device_id="d", ip_address="ip")

    with pytest.raises(ValidationError):
        workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="img2", device_id="d", ip_address="ip")


def test_lock_requires_both_signatures(workflow, payrolls):
    workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="img", device_id="d", ip_address="ip")

    with pytest.raises(ValidationError) as exc:
        workflow.lock(1, ADMIN)

    assert exc.value.code == ErrorCode.MISSING_SIGNATURE
    assert exc.value.details["missing"] == ["admin"]
    assert payrolls.stored(1).status == PayrollStatus.CALCULATED


def test_lock_verifies_and_audits_once(workflow, payrolls):
    _sign_both(workflow)

    record = workflow.lock(1, ADMIN)

    assert record.status == PayrollStatus.LOCKED
    assert record.locked_by == ADMIN.label
    assert record.employee_signature.verified and record.admin_signature.verified
    stored = payrolls.stored(1)
    assert [e.action for e in stored.audit_trail].count(AuditAction.LOCK) == 1
    assert [e.seq for e in stored.audit_trail] == list(range(1, len(stored.audit_trail) + 1))


def test_tampered_signature_blocks_lock(workflow, payrolls):
    _sign_both(workflow)
    stored = payrolls.stored(1)
    stored.replace_signature(replace(stored.employee_signature, image_data="forged"))

    with pytest.raises(VerificationError) as exc:
        workflow.lock(1, ADMIN)

    assert exc.value.details["slot"] == "employee"
    assert payrolls.stored(1).status == PayrollStatus.CALCULATED


def test_manual_verify_marks_slot(workflow):
    _sign_both(workflow)

    record = workflow.verify_signature(1, ADMIN, role=Role.ADMIN)

    assert record.admin_signature.verified is True
    assert record.employee_signature.verified is False
    assert record.audit_trail[-1].action == AuditAction.VERIFY


def test_concurrent_lock_has_one_winner(workflow, payrolls):
    _sign_both(workflow)
    barrier = threading.Barrier(2)
    won, lost = [], []

    def lock():
        barrier.wait()
        try:
            won.append(workflow.lock(1, ADMIN))
        except ConcurrencyConflictError as exc:
            lost.append(exc)

    threads = [threading.Thread(target=lock) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert (len(won), len(lost)) == (1, 1)
    assert [e.action for e in payrolls.stored(1).audit_trail].count(AuditAction.LOCK) == 1


class ReadThenInterleave:
    """Runs ``between`` right after the first read, before the reader commits."""

    def __init__(self, repo, between):
        self._repo = repo
        self._between = between

    def get_by_id(self, payroll_id):
        record = self._repo.get_by_id(payroll_id)
        between, self._between = self._between, None
        if between is not None:
            between()
        return record

    def __getattr__(self, name):
        return getattr(self._repo, name)


def test_simultaneous_signatures_never_drop_a_slot(workflow, payrolls):
    def employee_signs():
        workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="img-e", device_id="phone", ip_address="10.0.0.2")

    admin_side = SignatureLockWorkflow(ReadThenInterleave(payrolls, employee_signs), clock=lambda: AT)

    with pytest.raises(ConcurrencyConflictError):
        admin_side.sign(1, ADMIN, role=Role.ADMIN, image_data="img-a", device_id="desk", ip_address="10.0.0.1")

    stored = payrolls.stored(1)
    assert stored.employee_signature is not None
    assert stored.missing_signatures() == ["admin"]

    admin_side.sign(1, ADMIN, role=Role.ADMIN, image_data="img-a", device_id="desk", ip_address="10.0.0.1")
    assert payrolls.stored(1).missing_signatures() == []


def test_lock_loses_to_recalculation_read_before_it(workflow, payrolls):
    _sign_both(workflow)

    def recalculate():
        record = payrolls.get_by_id(1)
        record.apply_calculation(record.figures, rules_snapshot_id=1, actor=ADMIN.label, at=AT)
        assert payrolls.save(record, expected_statuses={PayrollStatus.CALCULATED})

    stale = SignatureLockWorkflow(ReadThenInterleave(payrolls, recalculate), clock=lambda: AT)

    with pytest.raises(ConcurrencyConflictError):
        stale.lock(1, ADMIN)

    stored = payrolls.stored(1)
    assert stored.status == PayrollStatus.CALCULATED
    assert stored.missing_signatures() == ["employee", "admin"]


def test_locked_payroll_refuses_signatures_and_approval(workflow):
    _sign_both(workflow)
    workflow.lock(1, ADMIN)

    with pytest.raises(ImmutableRecordError):
        workflow.sign(1, OWNER, role=Role.EMPLOYEE, image_data="img", device_id="d", ip_address="ip")
    with pytest.raises(ImmutableRecordError):
        workflow.approve(1, ADMIN)


def test_approve_then_lock_then_pay(workflow, payrolls):
    workflow.approve(1, ADMIN)
    _sign_both(workflow)
    workflow.lock(1, ADMIN)

    record = workflow.mark_paid(1, ADMIN, payment_method=PaymentMethod.CHEQUE, payment_reference="CHQ-9")

    assert record.status == PayrollStatus.PAID
    assert payrolls.stored(1).payment_reference == "CHQ-9"
    assert [e.action for e in record.audit_trail][-3:] == [AuditAction.SIGN, AuditAction.LOCK, AuditAction.PAY]


def test_cannot_pay_before_lock(workflow):
    with pytest.raises(ValidationError) as exc:
        workflow.mark_paid(1, ADMIN)

    assert exc.value.code == ErrorCode.INVALID_TRANSITION


def test_employee_cannot_lock(workflow):
    with pytest.raises(AuthorizationError):
        workflow.lock(1, OWNER)


def test_actor_from_session():
    assert isinstance(actor_from_session(5, "admin"), AdminActor)
    assert actor_from_session("7", "employee").actor_id == 7
    with pytest.raises(AuthorizationError):
        actor_from_session(5, "manager")
    with pytest.raises(AuthorizationError):
        actor_from_session(None, "admin")
