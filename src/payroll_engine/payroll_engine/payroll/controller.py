from __future__ import annotations

from flask import Flask, jsonify, request, session

from ..common.validators import require_fields
from ..common.web import admin_required, error_response, login_required
from ..container import Container
from ..core.enums import PaymentMethod, Role
from ..core.exceptions import AuthorizationError, DomainError, ErrorCode, ValidationError
from ..signatures.actors import actor_from_session


def register(app: Flask, container: Container) -> None:
    def _actor():
        return actor_from_session(session.get("user_id"), session.get("role"))

    @app.route("/api/payroll/calculate", methods=["POST"], endpoint="api_payroll_calculate")
    @admin_required
    def api_payroll_calculate():
        data = request.get_json(silent=True) or {}
        try:
            require_fields(data, "year", "month")
            year, month = int(data["year"]), int(data["month"])
            if data.get("employee_id") is not None:
                record = container.payroll_service.calculate(
                    int(data["employee_id"]),
                    year,
                    month,
                    actor=_actor(),
                    refresh_rules=bool(data.get("refresh_rules", False)),
                )
                return jsonify({"payroll": record.to_dict()}), 200

            batch = container.payroll_service.calculate_batch(
                year, month, actor=_actor(), employee_ids=data.get("employee_ids")
            )
        except (TypeError, ValueError) as e:
            return error_response(ValidationError(str(e), code=ErrorCode.MISSING_FIELD))
        except DomainError as e:
            return error_response(e)
        # partial success still answers 200; callers read the errors list
        return jsonify(batch.to_dict()), 200

    @app.route("/api/payroll/<int:payroll_id>", methods=["GET"], endpoint="api_payroll_get")
    @login_required
    def api_payroll_get(payroll_id: int):
        try:
            record = container.payroll_service.get(payroll_id)
            if session.get("role") != Role.ADMIN.value and record.employee_id != int(session["user_id"]):
                raise AuthorizationError("Not your payroll", employee_id=record.employee_id)
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 200

    @app.route("/api/payroll/<int:payroll_id>/signatures", methods=["POST"], endpoint="api_payroll_sign")
    @login_required
    def api_payroll_sign(payroll_id: int):
        data = request.get_json(silent=True) or {}
        try:
            require_fields(data, "signature", "device_id")
            actor = _actor()
            record = container.signature_workflow.sign(
                payroll_id,
                actor,
                role=actor.role,
                image_data=str(data["signature"]),
                device_id=str(data["device_id"]),
                ip_address=str(data.get("ip_address") or request.remote_addr or "unknown"),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 201

    @app.route(
        "/api/payroll/<int:payroll_id>/signatures/<role>/verify",
        methods=["POST"],
        endpoint="api_payroll_verify_signature",
    )
    @admin_required
    def api_payroll_verify_signature(payroll_id: int, role: str):
        try:
            record = container.signature_workflow.verify_signature(payroll_id, _actor(), role=Role(role))
        except ValueError:
            return error_response(ValidationError(f"Unknown signature slot {role!r}", code=ErrorCode.MISSING_FIELD))
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 200

    @app.route("/api/payroll/<int:payroll_id>/approve", methods=["POST"], endpoint="api_payroll_approve")
    @admin_required
    def api_payroll_approve(payroll_id: int):
        try:
            record = container.signature_workflow.approve(payroll_id, _actor())
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 200

    @app.route("/api/payroll/<int:payroll_id>/lock", methods=["POST"], endpoint="api_payroll_lock")
    @admin_required
    def api_payroll_lock(payroll_id: int):
        try:
            record = container.signature_workflow.lock(payroll_id, _actor())
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 200

    @app.route("/api/payroll/<int:payroll_id>/pay", methods=["POST"], endpoint="api_payroll_pay")
    @admin_required
    def api_payroll_pay(payroll_id: int):
        data = request.get_json(silent=True) or {}
        try:
            record = container.signature_workflow.mark_paid(
                payroll_id,
                _actor(),
                payment_method=PaymentMethod(data.get("payment_method", PaymentMethod.BANK.value)),
                payment_reference=data.get("payment_reference"),
            )
        except ValueError as e:
            return error_response(ValidationError(str(e), code=ErrorCode.MISSING_FIELD))
        except DomainError as e:
            return error_response(e)
        return jsonify({"payroll": record.to_dict()}), 200
