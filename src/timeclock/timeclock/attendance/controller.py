from __future__ import annotations

import logging
from dataclasses import asdict

from flask import Flask, jsonify, request

from ..common.web import (
    current_employee_id,
    error_response,
    json_body,
    login_required,
    management_required,
    result_response,
)
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_STATS_DAYS
from ..core.enums import ClockAction
from ..core.exceptions import DomainError
from ..container import Container

logger = logging.getLogger(__name__)

# JSON (camelCase) -> record field names accepted by management edits.
_EDIT_KEYS = {
    "clockIn": "clock_in",
    "clockOut": "clock_out",
    "breaks": "breaks",
    "payrollId": "payroll_id",
    "noShowReason": "no_show_reason",
    "employeeNote": "employee_note",
    "managerNote": "manager_note",
}


def register(app: Flask, container: Container) -> None:
    def _perform(action: ClockAction):
        try:
            date_key = json_body().get("date")
        except DomainError as e:
            return error_response(str(e), 400)
        result = container.attendance_engine.perform(action, current_employee_id(), date_key)
        return result_response(result, result.data.to_dict() if result.data else None)

    @app.route("/api/attendance/clock-in", methods=["POST"], endpoint="attendance_clock_in")
    @login_required
    def clock_in():
        return _perform(ClockAction.CLOCK_IN)

    @app.route("/api/attendance/clock-out", methods=["POST"], endpoint="attendance_clock_out")
    @login_required
    def clock_out():
        return _perform(ClockAction.CLOCK_OUT)

    @app.route("/api/attendance/break/start", methods=["POST"], endpoint="attendance_break_start")
    @login_required
    def break_start():
        return _perform(ClockAction.START_BREAK)

    @app.route("/api/attendance/break/end", methods=["POST"], endpoint="attendance_break_end")
    @login_required
    def break_end():
        return _perform(ClockAction.END_BREAK)

    @app.route("/api/attendance/today", methods=["GET"], endpoint="attendance_today")
    @login_required
    def today():
        """Current record for the caller's local day (open overnight shift included)."""
        try:
            record = container.attendance_engine.get_current_record(current_employee_id(), request.args.get("date"))
        except DomainError as e:
            return error_response(str(e), 400)
        except Exception:
            logger.exception("Failed to load today's attendance")
            return error_response("Failed to load attendance", 500)
        return jsonify({"success": True, "data": record.to_dict() if record else None}), 200

    @app.route("/api/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    def history():
        try:
            limit = int(request.args.get("limit", DEFAULT_HISTORY_LIMIT))
            records = container.attendance_service.get_history(current_employee_id(), limit=limit)
        except ValueError:
            return error_response("limit must be an integer", 400)
        except DomainError as e:
            return error_response(str(e), 400)
        except Exception:
            logger.exception("Failed to load attendance history")
            return error_response("Failed to load attendance history", 500)
        return jsonify({"success": True, "data": [r.to_dict() for r in records]}), 200

    @app.route("/api/attendance/stats", methods=["GET"], endpoint="attendance_stats")
    @login_required
    def stats():
        try:
            days = int(request.args.get("days", DEFAULT_STATS_DAYS))
            data = container.attendance_service.get_employee_stats(
                current_employee_id(), request.args.get("date"), days=days
            )
        except ValueError:
            return error_response("days must be an integer", 400)
        except DomainError as e:
            return error_response(str(e), 400)
        except Exception:
            logger.exception("Failed to compute attendance stats")
            return error_response("Failed to compute attendance stats", 500)
        return jsonify({"success": True, "data": asdict(data)}), 200

    @app.route("/api/attendance/<employee_id>/<date>", methods=["GET"], endpoint="attendance_by_date")
    @management_required
    def get_by_date(employee_id: str, date: str):
        try:
            record = container.attendance_management.get_attendance_by_date(employee_id, date)
        except DomainError as e:
            return error_response(str(e), 400)
        if record is None:
            return error_response("No attendance record found", 404)
        return jsonify({"success": True, "data": record.to_dict()}), 200

    @app.route("/api/attendance/<employee_id>/<date>", methods=["PUT"], endpoint="attendance_update")
    @management_required
    def update(employee_id: str, date: str):
        try:
            body = json_body()
        except DomainError as e:
            return error_response(str(e), 400)

        updates = {_EDIT_KEYS.get(k, k): v for k, v in body.items()}
        result = container.attendance_management.update_attendance(
            employee_id, date, updates, edited_by=current_employee_id()
        )
        return result_response(result, result.data.to_dict() if result.data else None)
