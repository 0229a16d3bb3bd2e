from __future__ import annotations

from functools import wraps

from flask import jsonify, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    CalculationError,
    ConcurrencyConflictError,
    DomainError,
    DuplicateSessionError,
    ErrorCode,
    GeoFenceViolationError,
    ImmutableRecordError,
    VerificationError,
)

_STATUS_BY_TYPE = (
    (AuthorizationError, 403),
    (ConcurrencyConflictError, 409),
    (DuplicateSessionError, 409),
    (ImmutableRecordError, 409),
    (GeoFenceViolationError, 422),
    (VerificationError, 422),
    (CalculationError, 422),
)


def error_response(exc: DomainError):
    status = 400
    if exc.code == ErrorCode.NOT_FOUND:
        status = 404
    else:
        for exc_type, code in _STATUS_BY_TYPE:
            if isinstance(exc, exc_type):
                status = code
                break
    return jsonify({"error": exc.to_dict()}), status


def login_required(view):
    """The session is populated upstream; this only checks it is there."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"error": {"code": "Unauthenticated", "message": "Login required"}}), 401
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"error": {"code": "Unauthenticated", "message": "Login required"}}), 401
        if session.get("role") != Role.ADMIN.value:
            return jsonify({"error": {"code": ErrorCode.FORBIDDEN.value, "message": "Admin only"}}), 403
        return view(*args, **kwargs)

    return wrapper
