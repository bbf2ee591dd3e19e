# tests/test_backup_store.py

from __future__ import annotations

from plansync.domain.models import Priority, Task
from plansync.infrastructure.backup.backup_store import RemoteBackupStore
from plansync.infrastructure.cache.backup_state_store import BackupStateStore


def test_first_export_creates_and_remembers_bin(backup: RemoteBackupStore, bin_backend) -> None:
    task = Task(title="a", priority=Priority.HIGH)

    assert backup.export_all([task], "user-1") is True

    assert backup.bin_id == "bin-1"
    document = bin_backend.bins["bin-1"]
    assert document["userId"] == "user-1"
    assert isinstance(document["lastUpdated"], int)
    assert document["tasks"] == [task.to_dict()]


def test_later_exports_update_same_bin(backup: RemoteBackupStore, bin_backend) -> None:
    for _ in range(3):
        backup.export_all([Task(title="a")], None)

    assert bin_backend.calls == [("create", None), ("replace", "bin-1"), ("replace", "bin-1")]
    assert bin_backend.bins["bin-1"]["userId"] == "guest"


def test_failed_create_stores_no_id(backup: RemoteBackupStore, bin_backend) -> None:
    bin_backend.fail = True

    assert backup.export_all([Task(title="a")], None) is False
    assert backup.bin_id is None


def test_import_without_bin_is_none_and_silent(backup: RemoteBackupStore, bin_backend) -> None:
    assert backup.import_all() is None
    assert bin_backend.calls == []


def test_import_returns_exported_tasks(backup: RemoteBackupStore) -> None:
    tasks = [Task(title="a"), Task(title="b")]
    backup.export_all(tasks, "user-1")

    assert backup.import_all() == tasks


def test_import_ignores_malformed_document(backup: RemoteBackupStore, bin_backend) -> None:
    backup.export_all([], None)
    bin_backend.bins["bin-1"] = {"tasks": "not a list"}

    assert backup.import_all() is None


def test_bin_id_persists_across_instances(bin_backend, json_cache) -> None:
    RemoteBackupStore(bin_backend, BackupStateStore(json_cache)).export_all([], None)

    reopened = RemoteBackupStore(bin_backend, BackupStateStore(json_cache))
    assert reopened.bin_id == "bin-1"

    reopened.clear_bin_id()
    assert RemoteBackupStore(bin_backend, BackupStateStore(json_cache)).bin_id is None


def test_state_store_ignores_blank_id(json_cache) -> None:
    json_cache.save(BackupStateStore.CACHE_NAME, {"bin_id": "  "})
    assert BackupStateStore(json_cache).load_bin_id() is None
