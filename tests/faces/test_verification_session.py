from __future__ import annotations

import asyncio

import pytest

from src.timeclock.timeclock.core.enums import MatchBand, VerificationStep
from src.timeclock.timeclock.core.exceptions import IdentityMismatchError, ResourceUnavailableError
from src.timeclock.timeclock.faces.verification import (
    CAMERA_UNAVAILABLE_MESSAGE,
    NO_VIDEO_MESSAGE,
    NOT_ENROLLED_MESSAGE,
    VerificationSession,
    VerificationSettings,
    hold_status_text,
    no_signal_text,
)
from tests.fakes import FakeCamera, FakeClock, ScriptedDetector, descriptor, hit

FAST = VerificationSettings(
    frame_interval=0,
    camera_retry_delay=0,
    first_frame_timeout=0.05,
    success_close_delay=0.01,
    detection_throttle=1,
)


class Recorder:
    def __init__(self):
        self.verified = 0
        self.closed = 0
        self.views = []

    def on_verified(self):
        self.verified += 1

    def on_closed(self):
        self.closed += 1


def _session(detector, camera, *, stored=None, clock=None, settings=FAST, recorder=None):
    recorder = recorder or Recorder()
    session = VerificationSession(
        detector=detector,
        camera=camera,
        stored_descriptor=descriptor() if stored is None else stored,
        on_verified=recorder.on_verified,
        on_closed=recorder.on_closed,
        on_change=recorder.views.append,
        settings=settings,
        clock=clock or FakeClock(),
    )
    return session, recorder


def run(coro):
    return asyncio.run(asyncio.wait_for(coro, timeout=5))


def test_held_face_verifies_once_and_closes():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor(0.01)), clock=clock)
    camera = FakeCamera()
    session, rec = _session(detector, camera, clock=clock)

    async def scenario():
        await session.start()
        step = await session.wait()
        await session.wait_closed()
        return step

    assert run(scenario()) is VerificationStep.SUCCESS
    assert rec.verified == 1
    assert rec.closed == 1
    # Hold starts on the first hit at t=0.5 and completes at t=2.5.
    assert detector.calls == 5
    assert camera.opens == 1
    assert camera.streams[0].stop_calls == 1
    assert session.snapshot().progress == 100.0
    assert session.snapshot().to_dict()["step"] == "success"
    assert any(v.step is VerificationStep.VERIFYING for v in rec.views)


def test_missed_frame_restarts_hold():
    clock = FakeClock()
    held = hit(descriptor())
    detector = ScriptedDetector([held, held, held, None], default=held, clock=clock)
    session, rec = _session(detector, FakeCamera(), clock=clock)

    async def scenario():
        await session.start()
        return await session.wait()

    assert run(scenario()) is VerificationStep.SUCCESS
    # 3 hits, 1 miss, then a full 5-hit hold.
    assert detector.calls == 9
    assert rec.verified == 1


def test_low_confidence_detection_counts_as_no_face():
    clock = FakeClock()
    weak = hit(descriptor(), score=0.1)
    detector = ScriptedDetector([hit(descriptor()), weak], default=hit(descriptor()), clock=clock)
    session, _ = _session(detector, FakeCamera(), clock=clock)

    async def scenario():
        await session.start()
        return await session.wait()

    assert run(scenario()) is VerificationStep.SUCCESS
    assert detector.calls == 7


def test_mismatch_keeps_camera_and_retry_reuses_it():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor(0.1)), clock=clock)
    camera = FakeCamera()
    session, rec = _session(detector, camera, clock=clock)

    async def scenario():
        await session.start()
        first = await session.wait()
        view = session.snapshot()
        failure = session.failure

        detector.default = hit(descriptor())
        assert session.retry() is True
        second = await session.wait()
        return first, view, failure, second

    first, view, failure, second = run(scenario())

    assert first is VerificationStep.ERROR
    assert view.error == "This face does not match the registered employee. Access denied."
    assert view.retryable
    assert isinstance(failure, IdentityMismatchError)
    assert failure.band is MatchBand.STRONG_MISMATCH
    assert second is VerificationStep.SUCCESS
    assert camera.opens == 1
    assert rec.verified == 1


def test_marginal_distance_message():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor(0.045)), clock=clock)
    session, rec = _session(detector, FakeCamera(), clock=clock)

    async def scenario():
        await session.start()
        return await session.wait()

    assert run(scenario()) is VerificationStep.ERROR
    assert session.snapshot().error.startswith("Face didn't match clearly")
    assert rec.verified == 0


def test_retry_is_refused_when_not_in_error():
    session, _ = _session(ScriptedDetector(), FakeCamera())
    assert session.retry() is False


def test_not_enrolled_never_touches_camera():
    camera = FakeCamera()
    session, rec = _session(ScriptedDetector(), camera, stored=[0.1] * 10)

    run(session.start())

    view = session.snapshot()
    assert view.step is VerificationStep.ERROR
    assert view.error == NOT_ENROLLED_MESSAGE
    assert not view.retryable
    assert camera.opens == 0
    assert rec.verified == 0


def test_camera_never_ready_gives_up_after_bounded_attempts():
    camera = FakeCamera(not_ready=100)
    settings = VerificationSettings(frame_interval=0, camera_retry_delay=0, camera_attempts=3)
    session, _ = _session(ScriptedDetector(), camera, settings=settings)

    run(session.start())

    assert session.step is VerificationStep.ERROR
    assert session.snapshot().error == CAMERA_UNAVAILABLE_MESSAGE
    assert camera.opens == 3


def test_camera_ready_after_retries():
    camera = FakeCamera(not_ready=2)
    session, _ = _session(ScriptedDetector(), camera)

    async def scenario():
        await session.start()
        step = session.step
        session.close()
        return step

    assert run(scenario()) is VerificationStep.DETECTING
    assert camera.opens == 3


def test_permission_denied_is_terminal():
    session, _ = _session(ScriptedDetector(), FakeCamera(deny=True))
    run(session.start())

    assert session.snapshot().error == "Camera permission denied"
    assert isinstance(session.failure, ResourceUnavailableError)
    assert session.retry() is False


def test_no_video_releases_camera():
    camera = FakeCamera(blank=True)
    session, _ = _session(ScriptedDetector(), camera)

    run(session.start())

    assert session.snapshot().error == NO_VIDEO_MESSAGE
    assert camera.streams[0].stop_calls == 1
    assert not session.camera_open


def test_model_load_failure_is_terminal():
    detector = ScriptedDetector()
    detector.load_error = ResourceUnavailableError("Failed to load face detector: missing model")
    camera = FakeCamera()
    session, _ = _session(detector, camera)

    run(session.start())

    assert session.step is VerificationStep.ERROR
    assert session.snapshot().error == "Failed to load face detector: missing model"
    assert camera.opens == 0


def test_close_is_idempotent_and_stops_detection():
    detector = ScriptedDetector(default=None)
    camera = FakeCamera()
    session, rec = _session(detector, camera)

    async def scenario():
        await session.start()
        await asyncio.sleep(0.02)
        session.close()
        session.close()
        await session.wait()
        await asyncio.sleep(0.01)
        calls = detector.calls
        await asyncio.sleep(0.02)
        return calls

    calls_at_close = run(scenario())

    assert rec.closed == 1
    assert rec.verified == 0
    assert camera.streams[0].stop_calls == 1
    assert detector.calls == calls_at_close


def test_detector_errors_are_transient():
    clock = FakeClock()
    detector = ScriptedDetector([RuntimeError("bad frame"), RuntimeError("bad frame")], default=hit(descriptor()), clock=clock)
    session, rec = _session(detector, FakeCamera(), clock=clock)

    async def scenario():
        await session.start()
        return await session.wait()

    assert run(scenario()) is VerificationStep.SUCCESS
    assert rec.verified == 1


def test_throttle_runs_detection_on_every_second_frame():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor()), clock=clock)
    camera = FakeCamera()
    settings = VerificationSettings(frame_interval=0, camera_retry_delay=0, success_close_delay=0.01, detection_throttle=2)
    session, _ = _session(detector, camera, clock=clock, settings=settings)

    async def scenario():
        await session.start()
        await session.wait()

    run(scenario())

    # One read for the first-frame check, then two frames per detection.
    assert camera.streams[0].reads == 2 * detector.calls + 1


def test_update_callbacks_replaces_completion_handler():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor()), clock=clock)
    session, rec = _session(detector, FakeCamera(), clock=clock)
    replaced = []
    session.update_callbacks(on_verified=lambda: replaced.append(True))

    async def scenario():
        await session.start()
        await session.wait()

    run(scenario())

    assert replaced == [True]
    assert rec.verified == 0


def test_failing_completion_handler_does_not_break_session():
    clock = FakeClock()
    detector = ScriptedDetector(default=hit(descriptor()), clock=clock)
    session, _ = _session(detector, FakeCamera(), clock=clock)

    def boom():
        raise RuntimeError("clock-in failed")

    session.update_callbacks(on_verified=boom)

    async def scenario():
        await session.start()
        await session.wait()
        await session.wait_closed()

    run(scenario())
    assert session.closed


@pytest.mark.parametrize(
    "progress, text",
    [(10, "Face detected! Hold still..."), (50, "Keep holding... almost there"), (90, "Just a moment more...")],
)
def test_hold_status_text(progress, text):
    assert hold_status_text(progress) == text


def test_no_signal_guidance_escalates():
    assert no_signal_text(60) == "Looking for your face..."
    assert no_signal_text(120) == "Make sure your face is well-lit and centered"
    assert no_signal_text(240) == "Try moving closer to the camera"
    assert no_signal_text(300).startswith("Having trouble?")
