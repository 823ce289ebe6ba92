from __future__ import annotations

import json
from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, from_mysql_datetime, load_json_column, to_mysql_datetime
from .model import FaceDescriptor
from .repository import FaceStore


class MySQLFaceStore(FaceStore):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, employee_id: str) -> Optional[FaceDescriptor]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT employee_id, descriptor, updated_at FROM employee_faces WHERE employee_id=%s",
                (employee_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            values = load_json_column(r.get("descriptor"), [])
            return FaceDescriptor(
                employee_id=str(r["employee_id"]),
                descriptor=tuple(values) if isinstance(values, list) else (),
                updated_at=from_mysql_datetime(r.get("updated_at")),
            )

    def save(self, employee_id: str, descriptor: Sequence[float], *, updated_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO employee_faces (employee_id, descriptor, updated_at)
                VALUES (%s, %s, %s)
                ON DUPLICATE KEY UPDATE descriptor=VALUES(descriptor), updated_at=VALUES(updated_at)
                """,
                (employee_id, json.dumps([float(v) for v in descriptor]), to_mysql_datetime(updated_at)),
            )

    def delete(self, employee_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM employee_faces WHERE employee_id=%s", (employee_id,))
            return cur.rowcount > 0
