from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Protocol

from questlog.db_converters import _row_to_badge, _row_to_profile
from questlog.db_models import Badge, Profile


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_profile(self) -> Profile: ...


class ProgressMixin:
    """Profile singleton, badge unlock state and the perfect-day log."""

    def get_profile(self: DbProtocol) -> Profile:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM profile WHERE id = 1").fetchone()
        assert row is not None
        return _row_to_profile(row)

    def update_profile(self: DbProtocol, xp_total: int, level: int, perfect_days: int) -> Profile:
        with self._connect() as conn:
            conn.execute(
                "UPDATE profile SET xp_total = ?, level = ?, perfect_days = ? WHERE id = 1",
                (xp_total, level, perfect_days),
            )
            row = conn.execute("SELECT * FROM profile WHERE id = 1").fetchone()
        assert row is not None
        return _row_to_profile(row)

    def update_profile_settings(self: DbProtocol, theme: str | None = None, accent: str | None = None) -> Profile:
        with self._connect() as conn:
            if theme is not None:
                conn.execute("UPDATE profile SET theme = ? WHERE id = 1", (theme,))
            if accent is not None:
                conn.execute("UPDATE profile SET accent = ? WHERE id = 1", (accent,))
            row = conn.execute("SELECT * FROM profile WHERE id = 1").fetchone()
        assert row is not None
        return _row_to_profile(row)

    def list_badges(self: DbProtocol) -> list[Badge]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM badges ORDER BY CAST(substr(id, 2) AS INTEGER)").fetchall()
        return [_row_to_badge(r) for r in rows]

    def unlock_badge(self: DbProtocol, key: str, unlocked_at: datetime) -> Badge | None:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE badges SET unlocked_at = ? WHERE key = ? AND unlocked_at IS NULL",
                (unlocked_at.isoformat(), key),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM badges WHERE key = ?", (key,)).fetchone()
        assert row is not None
        return _row_to_badge(row)

    def is_perfect_day_logged(self: DbProtocol, day: date) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM perfect_days_log WHERE date = ?",
                (day.isoformat(),),
            ).fetchone()
        return row is not None

    def append_perfect_day(self: DbProtocol, day: date, achieved_at: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO perfect_days_log(date, achieved_at) VALUES (?, ?)",
                (day.isoformat(), achieved_at.isoformat()),
            )
        return cur.rowcount > 0

    def list_perfect_days(self: DbProtocol, start: date, end: date) -> list[date]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT date FROM perfect_days_log WHERE date >= ? AND date <= ? ORDER BY date ASC",
                (start.isoformat(), end.isoformat()),
            ).fetchall()
        return [date.fromisoformat(row["date"]) for row in rows]
