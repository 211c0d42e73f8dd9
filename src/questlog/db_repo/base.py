from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from questlog.db_constants import BADGE_DEFINITIONS, DEFAULT_ACCENT, DEFAULT_THEME


class _SharedConnection:
    """Hands out the open transaction connection without committing or closing it."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def __enter__(self) -> sqlite3.Connection:
        return self._conn

    def __exit__(self, *exc_info: object) -> bool:
        return False


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._write_lock = threading.RLock()
        self._init_db()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _connect(self) -> sqlite3.Connection | _SharedConnection:
        active = getattr(self._local, "conn", None)
        if active is not None:
            return _SharedConnection(active)
        return self._open()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """One unit of work: every repository call inside shares a connection.

        Writers are serialized by a process-wide lock plus ``BEGIN IMMEDIATE``;
        any exception rolls back all writes made inside the block.
        """
        if getattr(self._local, "conn", None) is not None:
            yield
            return
        with self._write_lock:
            conn = self._open()
            self._local.conn = conn
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()
            finally:
                self._local.conn = None
                conn.close()

    def ping(self) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 AS ok").fetchone()
        return row is not None and int(row["ok"]) == 1

    def _init_db(self) -> None:
        with self._open() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE goals (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        cadence TEXT NOT NULL CHECK(cadence IN ('daily', 'weekly', 'monthly')),
                        color TEXT NOT NULL,
                        xp_per_check INTEGER NOT NULL DEFAULT 10 CHECK(xp_per_check BETWEEN 1 AND 100),
                        archived INTEGER NOT NULL DEFAULT 0,
                        current_streak INTEGER NOT NULL DEFAULT 0 CHECK(current_streak >= 0),
                        best_streak INTEGER NOT NULL DEFAULT 0 CHECK(best_streak >= 0),
                        last_period_key TEXT,
                        freeze_tokens INTEGER NOT NULL DEFAULT 0 CHECK(freeze_tokens >= 0),
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE recurrence (
                        goal_id TEXT PRIMARY KEY REFERENCES goals(id) ON DELETE CASCADE,
                        weekly_target INTEGER,
                        monthly_target INTEGER,
                        weekdays_mask INTEGER,
                        due_time_minutes INTEGER
                    );

                    CREATE TABLE tasks (
                        id TEXT PRIMARY KEY,
                        goal_id TEXT NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
                        title TEXT NOT NULL,
                        notes TEXT,
                        active INTEGER NOT NULL DEFAULT 1,
                        order_index INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_tasks_goal_order ON tasks(goal_id, active, order_index);

                    CREATE TABLE checkins (
                        id TEXT PRIMARY KEY,
                        goal_id TEXT NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
                        task_id TEXT REFERENCES tasks(id),
                        date TEXT NOT NULL,
                        xp_earned INTEGER NOT NULL CHECK(xp_earned >= 0),
                        created_at TEXT NOT NULL
                    );
                    CREATE UNIQUE INDEX idx_checkins_key ON checkins(goal_id, COALESCE(task_id, ''), date);
                    CREATE INDEX idx_checkins_date ON checkins(date);

                    CREATE TABLE profile (
                        id INTEGER PRIMARY KEY CHECK(id = 1),
                        xp_total INTEGER NOT NULL DEFAULT 0 CHECK(xp_total >= 0),
                        level INTEGER NOT NULL DEFAULT 1 CHECK(level >= 1),
                        perfect_days INTEGER NOT NULL DEFAULT 0,
                        theme TEXT NOT NULL,
                        accent TEXT NOT NULL
                    );

                    CREATE TABLE badges (
                        id TEXT PRIMARY KEY,
                        key TEXT NOT NULL UNIQUE,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL,
                        icon TEXT NOT NULL,
                        unlocked_at TEXT
                    );

                    CREATE TABLE perfect_days_log (
                        date TEXT PRIMARY KEY,
                        achieved_at TEXT NOT NULL
                    );
                """,
            }

            now = datetime.now(timezone.utc).isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )

            self._seed_defaults(conn)

    def _seed_defaults(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO profile(id, xp_total, level, perfect_days, theme, accent) VALUES (1, 0, 1, 0, ?, ?)",
            (DEFAULT_THEME, DEFAULT_ACCENT),
        )
        for badge_id, key, title, description, icon in BADGE_DEFINITIONS:
            conn.execute(
                """
                INSERT OR IGNORE INTO badges(id, key, title, description, icon)
                VALUES (?, ?, ?, ?, ?)
                """,
                (badge_id, key, title, description, icon),
            )
