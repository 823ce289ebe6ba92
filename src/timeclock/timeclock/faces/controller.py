from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..common.web import (
    current_employee_id,
    error_response,
    is_management,
    json_body,
    login_required,
    management_required,
    result_response,
)
from ..core.exceptions import DomainError, ValidationError
from ..container import Container
from .detector import DetectorOptions, decode_data_url

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    def _target_employee(body: dict) -> str:
        """Management may act for another employee; everyone else only for themselves."""
        requested = body.get("employeeId")
        if requested and is_management():
            return str(requested)
        return current_employee_id()

    def _descriptor_from_image(data_url: str) -> list[float]:
        frame = decode_data_url(data_url)
        if frame is None:
            raise ValidationError("Invalid image")
        detection = container.face_detector.detect(frame, DetectorOptions())
        if detection is None:
            raise ValidationError("No face detected")
        return list(detection.descriptor)

    @app.route("/api/face/enroll", methods=["POST"], endpoint="face_enroll")
    @login_required
    def enroll():
        try:
            body = json_body()
            descriptor = body.get("descriptor")
            if descriptor is None and body.get("image"):
                descriptor = _descriptor_from_image(str(body["image"]))
        except DomainError as e:
            return error_response(str(e), 400)
        except Exception:
            logger.exception("Face enrollment image processing failed")
            return error_response("Failed to process image", 500)

        result = container.face_service.save_descriptor(_target_employee(body), descriptor)
        return result_response(result)

    @app.route("/api/face/status", methods=["GET"], endpoint="face_status")
    @login_required
    def status():
        try:
            enrolled = container.face_service.is_enrolled(current_employee_id())
        except Exception:
            logger.exception("Failed to read face enrollment status")
            return error_response("Failed to read enrollment status", 500)
        return jsonify({"success": True, "data": {"enrolled": enrolled}}), 200

    @app.route("/api/face/verify", methods=["POST"], endpoint="face_verify")
    @login_required
    def verify():
        try:
            body = json_body()
            outcome = container.face_service.verify_descriptor(_target_employee(body), body.get("descriptor"))
        except DomainError as e:
            return error_response(str(e), 400)
        except Exception:
            logger.exception("Face verification error")
            return error_response("Verification failed", 500)

        if not outcome.enrolled:
            return error_response("No face registered", 400, code="NotEnrolled")
        return jsonify({"success": True, "data": outcome.to_dict()}), 200

    @app.route("/api/face/<employee_id>", methods=["DELETE"], endpoint="face_forget")
    @management_required
    def forget(employee_id: str):
        removed = container.face_service.forget(employee_id)
        return jsonify({"success": True, "data": {"removed": removed}}), 200
