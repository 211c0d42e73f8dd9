from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime
from typing import Protocol

from questlog.db_converters import _row_to_checkin
from questlog.db_models import Checkin, DailyTotals
from questlog.errors import ConflictError


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class CheckinMixin:
    def find_checkin(self: DbProtocol, goal_id: str, task_id: str | None, day: date) -> Checkin | None:
        with self._connect() as conn:
            if task_id is None:
                row = conn.execute(
                    "SELECT * FROM checkins WHERE goal_id = ? AND task_id IS NULL AND date = ?",
                    (goal_id, day.isoformat()),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT * FROM checkins WHERE goal_id = ? AND task_id = ? AND date = ?",
                    (goal_id, task_id, day.isoformat()),
                ).fetchone()
        return _row_to_checkin(row) if row else None

    def list_checkins(self: DbProtocol, goal_id: str, start: date, end: date) -> list[Checkin]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM checkins
                WHERE goal_id = ? AND date >= ? AND date <= ?
                ORDER BY date ASC, created_at ASC
                """,
                (goal_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_row_to_checkin(r) for r in rows]

    def goal_ids_checked_on(self: DbProtocol, day: date) -> set[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT goal_id FROM checkins WHERE date = ?",
                (day.isoformat(),),
            ).fetchall()
        return {row["goal_id"] for row in rows}

    def count_checkins(self: DbProtocol) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM checkins").fetchone()
        return int(row["n"]) if row else 0

    def insert_checkin(
        self: DbProtocol,
        goal_id: str,
        task_id: str | None,
        day: date,
        xp_earned: int,
        created_at: datetime,
    ) -> Checkin:
        checkin_id = str(uuid.uuid4())
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO checkins(id, goal_id, task_id, date, xp_earned, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (checkin_id, goal_id, task_id, day.isoformat(), xp_earned, created_at.isoformat()),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Checkin already exists for this goal, task and date") from exc
            row = conn.execute("SELECT * FROM checkins WHERE id = ?", (checkin_id,)).fetchone()
        assert row is not None
        return _row_to_checkin(row)

    def delete_checkin(self: DbProtocol, checkin_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM checkins WHERE id = ?", (checkin_id,))
        return cur.rowcount > 0

    def daily_checkin_totals(self: DbProtocol, start: date, end: date) -> dict[date, DailyTotals]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT date, COALESCE(SUM(xp_earned), 0) AS xp_total, COUNT(*) AS checkin_count
                FROM checkins
                WHERE date >= ? AND date <= ?
                GROUP BY date
                """,
                (start.isoformat(), end.isoformat()),
            ).fetchall()

        result: dict[date, DailyTotals] = {}
        for row in rows:
            day = date.fromisoformat(row["date"])
            result[day] = DailyTotals(
                date=day,
                xp_earned=int(row["xp_total"]),
                checkins_count=int(row["checkin_count"]),
            )
        return result
