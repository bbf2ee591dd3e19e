# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from plansync.application.sync_coordinator import SyncCoordinator
from plansync.database import LocalTaskCache
from plansync.infrastructure.backup.backup_store import RemoteBackupStore
from plansync.infrastructure.cache.backup_state_store import BackupStateStore
from plansync.infrastructure.cache.json_cache import JsonCache

from .fakes import FakeBinBackend, FakeConnectivity, FakeIdentity, ImmediateExecutor, RecordingPrimaryStore


@pytest.fixture()
def json_cache(tmp_path: Path) -> JsonCache:
    return JsonCache(str(tmp_path / "cache"))


@pytest.fixture()
def cache(tmp_path: Path) -> LocalTaskCache:
    """Real SQLite cache in a per-test directory; its behaviour is part of what we test."""
    store = LocalTaskCache(str(tmp_path / "tasks.db"))
    store.init_db()
    return store


@pytest.fixture()
def primary() -> RecordingPrimaryStore:
    return RecordingPrimaryStore()


@pytest.fixture()
def bin_backend() -> FakeBinBackend:
    return FakeBinBackend()


@pytest.fixture()
def backup(bin_backend: FakeBinBackend, json_cache: JsonCache) -> RemoteBackupStore:
    return RemoteBackupStore(bin_backend, BackupStateStore(json_cache))


@pytest.fixture()
def connectivity() -> FakeConnectivity:
    return FakeConnectivity(online=True)


@pytest.fixture()
def identity() -> FakeIdentity:
    return FakeIdentity(user_id="user-1")


@pytest.fixture()
def make_coordinator(cache, primary, backup, connectivity, identity):
    def factory(executor=None) -> SyncCoordinator:
        coordinator = SyncCoordinator(
            cache=cache,
            primary=primary,
            backup=backup,
            connectivity=connectivity,
            identity=identity,
            executor=executor or ImmediateExecutor(),
        )
        coordinator.initialize()
        return coordinator

    return factory


@pytest.fixture()
def coordinator(make_coordinator) -> SyncCoordinator:
    return make_coordinator()


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
