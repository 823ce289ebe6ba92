from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.engine import AttendanceEngine
from .attendance.management import AttendanceManagementService
from .attendance.mysql_attendance_repository import MySQLAttendanceStore
from .attendance.repository import AttendanceStore
from .attendance.service import AttendanceService
from .clocking.gate import FaceGatedClock
from .database.connection import DBConfig, DatabaseConnection
from .faces.camera import CameraProvider, OpenCVCameraProvider
from .faces.detector import FaceDetector, FaceRecognitionDetector
from .faces.mysql_face_repository import MySQLFaceStore
from .faces.repository import FaceStore
from .faces.service import FaceService


@dataclass(frozen=True)
class Container:
    attendance_store: AttendanceStore
    face_store: FaceStore

    attendance_engine: AttendanceEngine
    attendance_service: AttendanceService
    attendance_management: AttendanceManagementService
    face_service: FaceService

    face_detector: FaceDetector
    camera: CameraProvider
    gated_clock: FaceGatedClock


def assemble(
    *,
    attendance_store: AttendanceStore,
    face_store: FaceStore,
    detector: Optional[FaceDetector] = None,
    camera: Optional[CameraProvider] = None,
) -> Container:
    """Wire services over the given stores; tests pass in-memory ones."""
    detector = detector or FaceRecognitionDetector()
    camera = camera or OpenCVCameraProvider()

    engine = AttendanceEngine(attendance_store)
    face_service = FaceService(face_store)

    return Container(
        attendance_store=attendance_store,
        face_store=face_store,
        attendance_engine=engine,
        attendance_service=AttendanceService(attendance_store),
        attendance_management=AttendanceManagementService(attendance_store),
        face_service=face_service,
        face_detector=detector,
        camera=camera,
        gated_clock=FaceGatedClock(engine, face_service, detector=detector, camera=camera),
    )


def build_container(
    *,
    db_config: dict,
    camera_index: str | int = 0,
    camera_width: Optional[int] = None,
    camera_height: Optional[int] = None,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    camera = OpenCVCameraProvider(camera_index, width=camera_width, height=camera_height)
    return assemble(
        attendance_store=MySQLAttendanceStore(conn),
        face_store=MySQLFaceStore(conn),
        camera=camera,
    )
