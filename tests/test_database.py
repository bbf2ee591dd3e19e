# tests/test_database.py

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone

from plansync.database import LocalTaskCache
from plansync.domain.models import Category, Priority, Task

BASE = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _task(title: str, minutes: int = 0, **fields) -> Task:
    return Task(title=title, created_at=BASE + timedelta(minutes=minutes), **fields)


def test_round_trip_preserves_every_field(cache: LocalTaskCache) -> None:
    task = _task(
        "Pay rent",
        description="Transfer before noon",
        due_date=date(2024, 6, 30),
        due_time="11:45",
        priority=Priority.HIGH,
        category=Category.WORK,
        color="#F44336",
    )
    task.mark_completed(datetime(2024, 6, 29, 9, 1, 2, 345678, tzinfo=timezone.utc))

    cache.upsert(task, needs_sync=True)
    record = cache.get(task.id)

    assert record is not None
    assert record.needs_sync is True
    assert record.task == task
    assert record.task is not task


def test_upsert_replaces_existing_record(cache: LocalTaskCache) -> None:
    task = _task("Draft")
    cache.upsert(task, needs_sync=True)
    task.title = "Final"
    cache.upsert(task, needs_sync=False)

    records = cache.get_all()
    assert len(records) == 1
    assert records[0].task.title == "Final"
    assert records[0].needs_sync is False


def test_get_all_is_newest_first(cache: LocalTaskCache) -> None:
    old, mid, new = _task("old", 0), _task("mid", 5), _task("new", 10)
    cache.upsert_all([mid, old, new])

    assert [record.task.title for record in cache.get_all()] == ["new", "mid", "old"]
    assert all(record.needs_sync is False for record in cache.get_all())


def test_pending_sync_is_oldest_first_and_flagged_only(cache: LocalTaskCache) -> None:
    cache.upsert(_task("third", 20), needs_sync=True)
    cache.upsert(_task("clean", 0), needs_sync=False)
    cache.upsert(_task("first", 5), needs_sync=True)

    assert [record.task.title for record in cache.get_pending_sync()] == ["first", "third"]


def test_update_sync_state_bulk(cache: LocalTaskCache) -> None:
    tasks = [_task(f"t{i}", i) for i in range(3)]
    for task in tasks:
        cache.upsert(task, needs_sync=True)

    cache.update_sync_state([tasks[0].id, tasks[2].id], False)
    assert cache.get_pending_sync_ids() == [tasks[1].id]

    cache.update_sync_state([], False)
    cache.mark_synced([tasks[1].id])
    assert cache.get_pending_sync() == []


def test_delete_missing_id_is_noop(cache: LocalTaskCache) -> None:
    task = _task("keep")
    cache.upsert(task, needs_sync=False)

    cache.delete_by_id("does-not-exist")
    cache.delete_by_id(task.id)
    cache.delete_by_id(task.id)

    assert cache.count() == 0


def test_replace_all_drops_records_not_in_new_set(cache: LocalTaskCache) -> None:
    stale = _task("stale")
    cache.upsert(stale, needs_sync=True)
    fresh = [_task("a", 1), _task("b", 2)]

    cache.replace_all(fresh, needs_sync=True)

    assert cache.get(stale.id) is None
    assert sorted(cache.get_pending_sync_ids()) == sorted(task.id for task in fresh)


def test_init_db_adds_missing_columns(tmp_path) -> None:
    db_path = tmp_path / "legacy.db"
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE tasks (id TEXT PRIMARY KEY, title TEXT NOT NULL, description TEXT NOT NULL DEFAULT '', "
        "due_date TEXT, due_time TEXT, is_completed INTEGER NOT NULL DEFAULT 0, "
        "priority TEXT NOT NULL DEFAULT 'medium', category TEXT NOT NULL DEFAULT 'personal', "
        "created_at TEXT NOT NULL)"
    )
    conn.execute(
        "INSERT INTO tasks (id, title, created_at) VALUES ('legacy', 'Old task', '2024-01-01T00:00:00+00:00')"
    )
    conn.commit()
    conn.close()

    cache = LocalTaskCache(str(db_path))
    cache.init_db()
    record = cache.get("legacy")

    assert record is not None
    assert record.needs_sync is False
    assert record.task.color == "#2196F3"
    assert record.task.completed_at is None


def test_reset_all_data(cache: LocalTaskCache) -> None:
    cache.upsert(_task("x"), needs_sync=True)
    cache.reset_all_data()
    assert cache.count() == 0
