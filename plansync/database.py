"""SQLite task cache for PlanSync.

The remote primary store is the source of truth while online. This cache keeps
every task the device knows about, tagged with a ``needs_sync`` flag, so the app
survives restarts and offline periods.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterable

from plansync.domain.models import (
    CacheRecord,
    Category,
    Priority,
    Task,
    format_timestamp,
    parse_date,
    parse_timestamp,
    utc_now,
)
from plansync.utils import get_base_path

DB_DIR = os.path.join(get_base_path(), "data")
DB_PATH = os.path.join(DB_DIR, "plansync.db")

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "title",
    "description",
    "due_date",
    "due_time",
    "is_completed",
    "priority",
    "category",
    "color",
    "created_at",
    "completed_at",
    "needs_sync",
)

_UPSERT_SQL = (
    f"INSERT OR REPLACE INTO tasks ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)


def _task_to_row(task: Task, needs_sync: bool) -> tuple:
    return (
        task.id,
        task.title,
        task.description,
        task.due_date.isoformat() if task.due_date else None,
        task.due_time,
        1 if task.is_completed else 0,
        task.priority.value,
        task.category.value,
        task.color,
        format_timestamp(task.created_at),
        format_timestamp(task.completed_at),
        1 if needs_sync else 0,
    )


def _row_to_record(row: sqlite3.Row) -> CacheRecord:
    task = Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        due_date=parse_date(row["due_date"]),
        due_time=row["due_time"],
        is_completed=bool(row["is_completed"]),
        priority=Priority.from_value(row["priority"]),
        category=Category.from_value(row["category"]),
        color=row["color"],
        created_at=parse_timestamp(row["created_at"]) or utc_now(),
        completed_at=parse_timestamp(row["completed_at"]),
    )
    return CacheRecord(task=task, needs_sync=bool(row["needs_sync"]))


class LocalTaskCache:
    """Durable key-value store of tasks keyed by id.

    Each method opens its own connection, so calls are safe from the
    coordinator's worker thread as well as the caller's thread.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_PATH

    def _get_connection(self) -> sqlite3.Connection:
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @staticmethod
    def _ensure_column(conn: sqlite3.Connection, table: str, column: str, definition: str):
        existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
        if column not in existing:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    def init_db(self):
        conn = self._get_connection()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id           TEXT    PRIMARY KEY,
                    title        TEXT    NOT NULL,
                    description  TEXT    NOT NULL DEFAULT '',
                    due_date     TEXT,
                    due_time     TEXT,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    priority     TEXT    NOT NULL DEFAULT 'medium',
                    category     TEXT    NOT NULL DEFAULT 'personal',
                    color        TEXT    NOT NULL DEFAULT '#2196F3',
                    created_at   TEXT    NOT NULL,
                    completed_at TEXT,
                    needs_sync   INTEGER NOT NULL DEFAULT 0
                );
                """
            )
            self._ensure_column(conn, "tasks", "color", "TEXT NOT NULL DEFAULT '#2196F3'")
            self._ensure_column(conn, "tasks", "completed_at", "TEXT")
            self._ensure_column(conn, "tasks", "needs_sync", "INTEGER NOT NULL DEFAULT 0")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_needs_sync ON tasks(needs_sync, created_at)")
            conn.commit()
        finally:
            conn.close()
        logger.debug("Task cache ready at %s", self.db_path)

    def reset_all_data(self):
        conn = self._get_connection()
        try:
            conn.executescript("DROP TABLE IF EXISTS tasks;")
        finally:
            conn.close()
        self.init_db()

    def upsert(self, task: Task, needs_sync: bool) -> None:
        conn = self._get_connection()
        try:
            conn.execute(_UPSERT_SQL, _task_to_row(task, needs_sync))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Stored %s (needs_sync=%s)", task.id, needs_sync)

    def upsert_all(self, tasks: Iterable[Task], needs_sync: bool = False) -> None:
        rows = [_task_to_row(task, needs_sync) for task in tasks]
        if not rows:
            return
        conn = self._get_connection()
        try:
            conn.executemany(_UPSERT_SQL, rows)
            conn.commit()
        finally:
            conn.close()
        logger.debug("Cached %d tasks (needs_sync=%s)", len(rows), needs_sync)

    def replace_all(self, tasks: Iterable[Task], needs_sync: bool = False) -> None:
        """Swap the whole table for ``tasks`` in one transaction."""
        rows = [_task_to_row(task, needs_sync) for task in tasks]
        conn = self._get_connection()
        try:
            with conn:
                conn.execute("DELETE FROM tasks")
                conn.executemany(_UPSERT_SQL, rows)
        finally:
            conn.close()
        logger.debug("Replaced cache with %d tasks", len(rows))

    def delete_by_id(self, task_id: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    def get(self, task_id: str) -> CacheRecord | None:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_record(row) if row else None

    def get_all(self) -> list[CacheRecord]:
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT * FROM tasks ORDER BY created_at DESC, rowid DESC").fetchall()
        finally:
            conn.close()
        return [_row_to_record(row) for row in rows]

    def get_all_tasks(self) -> list[Task]:
        return [record.task for record in self.get_all()]

    def get_pending_sync(self) -> list[CacheRecord]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE needs_sync = 1 ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_record(row) for row in rows]

    def get_pending_sync_ids(self) -> list[str]:
        return [record.id for record in self.get_pending_sync()]

    def update_sync_state(self, task_ids: Iterable[str], needs_sync: bool) -> None:
        ids = list(task_ids)
        if not ids:
            return
        conn = self._get_connection()
        try:
            conn.executemany(
                "UPDATE tasks SET needs_sync = ? WHERE id = ?",
                [(1 if needs_sync else 0, task_id) for task_id in ids],
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Set needs_sync=%s on %d tasks", needs_sync, len(ids))

    def mark_synced(self, task_ids: Iterable[str]) -> None:
        self.update_sync_state(task_ids, False)

    def count(self) -> int:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT COUNT(*) AS total FROM tasks").fetchone()
        finally:
            conn.close()
        return int(row["total"])
