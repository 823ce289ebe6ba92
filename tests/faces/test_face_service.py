from __future__ import annotations

from src.timeclock.timeclock.faces.service import FaceService
from tests.fakes import descriptor


def test_save_and_read_descriptor(face_store, fixed_now):
    service = FaceService(face_store)

    result = service.save_descriptor("emp1", descriptor(), now=fixed_now)

    assert result.success
    assert service.get_descriptor("emp1") == descriptor()
    assert service.is_enrolled("emp1")
    assert face_store.get("emp1").updated_at == fixed_now


def test_short_descriptor_is_rejected(face_store):
    result = FaceService(face_store).save_descriptor("emp1", [0.1] * 127)

    assert not result.success
    assert result.error == "Invalid descriptor (must be 128 numbers)"
    assert face_store.get("emp1") is None


def test_non_numeric_descriptor_is_rejected(face_store):
    result = FaceService(face_store).save_descriptor("emp1", ["x"] * 128)
    assert result.error == "Invalid descriptor (must be 128 numbers)"


def test_reenrollment_overwrites(face_store, fixed_now):
    service = FaceService(face_store)
    service.save_descriptor("emp1", descriptor(), now=fixed_now)
    service.save_descriptor("emp1", descriptor(0.2), now=fixed_now)

    assert service.get_descriptor("emp1") == descriptor(0.2)


def test_malformed_stored_descriptor_counts_as_not_enrolled(face_store, fixed_now):
    face_store.save("emp1", [0.1] * 64, updated_at=fixed_now)
    assert FaceService(face_store).get_descriptor("emp1") is None


def test_verify_descriptor(face_store, fixed_now):
    service = FaceService(face_store)
    assert service.verify_descriptor("emp1", descriptor()).enrolled is False

    service.save_descriptor("emp1", descriptor(), now=fixed_now)
    same = service.verify_descriptor("emp1", descriptor(0.01))
    other = service.verify_descriptor("emp1", descriptor(0.1))

    assert same.match and same.to_dict()["band"] == "ACCEPT"
    assert not other.match and other.band.value == "STRONG_MISMATCH"


class BrokenFaceStore:
    def delete(self, employee_id):
        raise RuntimeError("db down")


def test_forget_is_best_effort(face_store, fixed_now):
    service = FaceService(face_store)
    service.save_descriptor("emp1", descriptor(), now=fixed_now)

    assert service.forget("emp1") is True
    assert service.forget("emp1") is False
    assert FaceService(BrokenFaceStore()).forget("emp1") is False
