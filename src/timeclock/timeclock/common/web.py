from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..core.result import OperationResult

logger = logging.getLogger(__name__)


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("employee_id"):
            return error_response("Authentication required", 401)
        return view(*args, **kwargs)

    return wrapper


def management_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("employee_id"):
            return error_response("Authentication required", 401)
        if session.get("role") != Role.MANAGEMENT.value:
            return error_response("Management access required", 403)
        return view(*args, **kwargs)

    return wrapper


def current_employee_id() -> str:
    return str(session["employee_id"])


def is_management() -> bool:
    return session.get("role") == Role.MANAGEMENT.value


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def error_response(message: str, status: int, *, code: Optional[str] = None):
    body: dict[str, Any] = {"success": False, "error": message}
    if code:
        body["code"] = code
    return jsonify(body), status


def result_response(result: OperationResult, data: Any = None):
    """Render an OperationResult: 200 with data, or 400 with the error."""
    if not result.success:
        return error_response(result.error or "Request failed", 400, code=result.code)
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    return jsonify(body), 200
