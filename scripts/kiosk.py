"""Clock an employee in/out from a local camera.

    python scripts/kiosk.py EMPLOYEE_ID clockIn
    python scripts/kiosk.py EMPLOYEE_ID enroll

Employees without an enrolled face clock immediately; enrolled employees
hold their face in front of the camera until verified.
"""
from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import sys
from datetime import date
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.timeclock.timeclock.container import build_container
from src.timeclock.timeclock.core.enums import ClockAction
from src.timeclock.timeclock.faces.enrollment import EnrollmentSession
from src.timeclock.timeclock.logging_config import configure_logging

logger = logging.getLogger("timeclock.scripts.kiosk")


def _print_view(view) -> None:
    print(f"\r[{view.step.value:>9}] {view.progress:5.1f}%  {view.status_text:<70}", end="", flush=True)


async def _clock(container, employee_id: str, action: ClockAction, date_key: str) -> int:
    outcome = {}

    def on_result(result) -> None:
        outcome["result"] = result

    session = container.gated_clock.begin(
        employee_id, action, date_key, on_result=on_result, on_change=_print_view
    )
    if session is not None:
        await session.start()
        step = await session.wait()
        if session.snapshot().error:
            print()
            logger.warning("Verification ended at %s: %s", step.value, session.snapshot().error)
        session.close()
        print()

    result = outcome.get("result")
    if result is None:
        return 1
    if not result.success:
        logger.warning("%s failed: %s", action.value, result.error)
        return 1
    logger.info("%s recorded for %s (%s)", action.value, employee_id, result.data.state.value)
    return 0


async def _enroll(container, employee_id: str) -> int:
    session = EnrollmentSession(detector=container.face_detector, camera=container.camera, faces=container.face_service)
    result = await session.run(employee_id)
    if not result.success:
        logger.warning("Enrollment failed: %s", result.error)
        return 1
    logger.info("Face enrolled for %s", employee_id)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("employee_id")
    parser.add_argument("action", choices=[a.value for a in ClockAction] + ["enroll"])
    parser.add_argument("--date", default=None, help="Local day key YYYY-MM-DD (default: today)")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        camera_index=getattr(settings, "CAMERA_INDEX", 0),
        camera_width=getattr(settings, "CAMERA_WIDTH", None),
        camera_height=getattr(settings, "CAMERA_HEIGHT", None),
    )

    if args.action == "enroll":
        return asyncio.run(_enroll(container, args.employee_id))

    date_key = args.date or date.today().isoformat()
    return asyncio.run(_clock(container, args.employee_id, ClockAction(args.action), date_key))


if __name__ == "__main__":
    raise SystemExit(main())
