"""Dual-signature lock workflow for payroll records.

States move draft -> calculated -> approved -> locked -> paid. Locking needs
both signature slots filled and each stored hash to match a fresh
recomputation. Every write is a compare-and-swap on the status read just
before it, so of two concurrent writers exactly one wins.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.enums import AuditAction, PaymentMethod, PayrollStatus, Permission, Role
from ..core.exceptions import (
    AuthorizationError,
    ConcurrencyConflictError,
    ErrorCode,
    ImmutableRecordError,
    ValidationError,
    VerificationError,
)
from ..payroll.model import PayrollRecord, Signature, verified_copy
from ..payroll.repository import PayrollRepository
from .actors import Actor
from .hashing import hashes_match, signature_hash

logger = logging.getLogger(__name__)

_SIGN_PERMISSION = {Role.EMPLOYEE: Permission.SIGN_AS_EMPLOYEE, Role.ADMIN: Permission.SIGN_AS_ADMIN}


class SignatureLockWorkflow:
    def __init__(self, payrolls: PayrollRepository, *, clock: Callable[[], datetime] = now_local):
        self._payrolls = payrolls
        self._clock = clock

    def _load(self, payroll_id: int) -> PayrollRecord:
        record = self._payrolls.get_by_id(payroll_id)
        if record is None:
            raise ValidationError("Payroll not found", code=ErrorCode.NOT_FOUND, payroll_id=payroll_id)
        return record

    def _commit(self, record: PayrollRecord, previous: PayrollStatus) -> PayrollRecord:
        if not self._payrolls.save(record, expected_statuses={previous}):
            raise ConcurrencyConflictError(
                f"Payroll is no longer {previous.value}",
                employee_id=record.employee_id,
                period=record.period,
                payroll_id=record.payroll_id,
            )
        return record

    @staticmethod
    def _recompute(record: PayrollRecord, signature: Signature) -> str:
        return signature_hash(
            image_data=signature.image_data,
            owner_role=signature.owner_role,
            owner_id=signature.owner_id,
            payroll_id=int(record.payroll_id),
            timestamp=signature.timestamp,
        )

    def _check(self, record: PayrollRecord, signature: Signature) -> Signature:
        if not hashes_match(signature.image_hash, self._recompute(record, signature)):
            logger.warning(
                "Signature hash mismatch: payroll=%s slot=%s", record.payroll_id, signature.owner_role.value
            )
            raise VerificationError(
                f"{signature.owner_role.value} signature does not match its stored hash",
                employee_id=record.employee_id,
                period=record.period,
                payroll_id=record.payroll_id,
                slot=signature.owner_role.value,
            )
        return verified_copy(signature)

    # -------- operations --------
    def sign(
        self,
        payroll_id: int,
        actor: Actor,
        *,
        role: Role,
        image_data: str,
        device_id: str,
        ip_address: str,
    ) -> PayrollRecord:
        actor.require(_SIGN_PERMISSION[role], payroll_id=payroll_id)
        image_data = require_non_empty(image_data, "image_data")
        record = self._load(payroll_id)

        if role == Role.EMPLOYEE and actor.actor_id != record.employee_id:
            raise AuthorizationError(
                "Employees can only sign their own payroll",
                employee_id=record.employee_id,
                period=record.period,
                actor=actor.label,
            )
        if record.is_locked:
            raise ImmutableRecordError(
                f"Payroll is {record.status.value}; signing is closed",
                employee_id=record.employee_id,
                period=record.period,
            )
        if record.signature_for(role) is not None:
            raise ValidationError(
                f"{role.value} signature already present",
                code=ErrorCode.INVALID_STATE,
                employee_id=record.employee_id,
                period=record.period,
            )

        at = self._clock()
        signature = Signature(
            owner_role=role,
            owner_id=actor.actor_id,
            image_hash="",
            device_id=require_non_empty(device_id, "device_id"),
            ip_address=require_non_empty(ip_address, "ip_address"),
            timestamp=at,
            image_data=image_data,
        )
        signature = replace(signature, image_hash=self._recompute(record, signature))

        previous = record.status
        record.attach_signature(signature, actor=actor.label, at=at)
        self._commit(record, previous)
        logger.info("Payroll %s signed by %s", record.payroll_id, actor.label)
        return record

    def verify_signature(self, payroll_id: int, actor: Actor, *, role: Role) -> PayrollRecord:
        """Manual admin check of one slot; marks it verified when the hash matches."""
        actor.require(Permission.VERIFY_SIGNATURE, payroll_id=payroll_id)
        record = self._load(payroll_id)
        if record.is_locked:
            raise ImmutableRecordError(
                "Signatures of a locked payroll are final", employee_id=record.employee_id, period=record.period
            )
        signature = record.signature_for(role)
        if signature is None:
            raise ValidationError(
                f"No {role.value} signature to verify",
                code=ErrorCode.MISSING_SIGNATURE,
                employee_id=record.employee_id,
                period=record.period,
            )

        previous = record.status
        record.replace_signature(self._check(record, signature))
        record.append_audit(AuditAction.VERIFY, actor.label, self._clock(), detail=role.value)
        return self._commit(record, previous)

    def approve(self, payroll_id: int, actor: Actor) -> PayrollRecord:
        actor.require(Permission.APPROVE, payroll_id=payroll_id)
        record = self._load(payroll_id)
        previous = record.status
        record.approve(actor=actor.label, at=self._clock())
        return self._commit(record, previous)

    def lock(self, payroll_id: int, actor: Actor) -> PayrollRecord:
        actor.require(Permission.LOCK, payroll_id=payroll_id)
        record = self._load(payroll_id)
        previous = record.status

        if previous in (PayrollStatus.LOCKED, PayrollStatus.PAID):
            raise ConcurrencyConflictError(
                f"Payroll is already {previous.value}",
                employee_id=record.employee_id,
                period=record.period,
                payroll_id=record.payroll_id,
            )
        if previous not in (PayrollStatus.CALCULATED, PayrollStatus.APPROVED):
            raise ValidationError(
                f"Cannot lock a {previous.value} payroll",
                code=ErrorCode.INVALID_TRANSITION,
                employee_id=record.employee_id,
                period=record.period,
            )

        missing = record.missing_signatures()
        if missing:
            raise ValidationError(
                f"Missing signature(s): {', '.join(missing)}",
                code=ErrorCode.MISSING_SIGNATURE,
                employee_id=record.employee_id,
                period=record.period,
                missing=missing,
            )

        verified = (
            self._check(record, record.employee_signature),
            self._check(record, record.admin_signature),
        )
        record.lock(verified=verified, actor=actor.label, at=self._clock())
        self._commit(record, previous)
        logger.info("Payroll %s locked by %s", record.payroll_id, actor.label)
        return record

    def mark_paid(
        self,
        payroll_id: int,
        actor: Actor,
        *,
        payment_method: PaymentMethod = PaymentMethod.BANK,
        payment_reference: Optional[str] = None,
    ) -> PayrollRecord:
        actor.require(Permission.MARK_PAID, payroll_id=payroll_id)
        record = self._load(payroll_id)
        previous = record.status
        record.mark_paid(
            actor=actor.label,
            at=self._clock(),
            payment_method=payment_method,
            payment_reference=payment_reference,
        )
        return self._commit(record, previous)
