from __future__ import annotations

from datetime import datetime

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import now_local, parse_iso_date
from ..common.validators import require_fields
from ..common.web import admin_required, error_response, login_required
from ..core.enums import DayStatus, Role
from ..core.exceptions import AuthorizationError, DomainError, ErrorCode, ValidationError
from ..container import Container
from .model import AttendanceEvent


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/events", methods=["POST"], endpoint="api_attendance_event")
    @login_required
    def api_attendance_event():
        data = request.get_json(silent=True) or {}
        try:
            require_fields(data, "employee_id", "type", "timestamp", "location", "device_id", "dedup_key")
            event = AttendanceEvent.from_dict(data)
            if session.get("role") != Role.ADMIN.value and event.employee_id != int(session["user_id"]):
                raise AuthorizationError("Employees can only record their own attendance", employee_id=event.employee_id)
            day = container.attendance_service.record_event(event)
        except (KeyError, TypeError, ValueError) as e:
            return error_response(ValidationError(f"Malformed event: {e}", code=ErrorCode.MISSING_FIELD))
        except DomainError as e:
            return error_response(e)
        return jsonify({"day": day.to_dict()}), 200

    @app.route(
        "/api/attendance/days/<int:employee_id>/<work_date>/mark",
        methods=["POST"],
        endpoint="api_attendance_mark",
    )
    @admin_required
    def api_attendance_mark(employee_id: int, work_date: str):
        data = request.get_json(silent=True) or {}
        try:
            require_fields(data, "status")
            day = container.attendance_service.mark_day(
                employee_id,
                parse_iso_date(work_date),
                DayStatus(data["status"]),
                note=data.get("note"),
            )
        except ValueError as e:
            return error_response(ValidationError(str(e), code=ErrorCode.MISSING_FIELD, employee_id=employee_id))
        except DomainError as e:
            return error_response(e)
        return jsonify({"day": day.to_dict()}), 201

    @app.route("/api/attendance/close-elapsed", methods=["POST"], endpoint="api_attendance_close_elapsed")
    @admin_required
    def api_attendance_close_elapsed():
        data = request.get_json(silent=True) or {}
        try:
            as_of = datetime.fromisoformat(data["as_of"]) if data.get("as_of") else now_local()
            closed = container.attendance_service.close_elapsed_days(as_of=as_of)
        except (TypeError, ValueError) as e:
            return error_response(ValidationError(f"Invalid as_of: {e}", code=ErrorCode.MISSING_FIELD))
        except DomainError as e:
            return error_response(e)
        return jsonify({"closed": [d.to_dict() for d in closed]}), 200
