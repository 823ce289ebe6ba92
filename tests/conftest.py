from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tests.fakes import InMemoryAttendanceStore, InMemoryFaceStore


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 6, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def attendance_store():
    return InMemoryAttendanceStore()


@pytest.fixture
def face_store():
    return InMemoryFaceStore()
