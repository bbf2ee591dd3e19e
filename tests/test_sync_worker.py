# tests/test_sync_worker.py

from __future__ import annotations

import pytest

from plansync.domain.models import Task
from plansync.sync_worker import SyncScheduler, SyncWorker


class SignalRecorder:
    def __init__(self, worker: SyncWorker) -> None:
        self.events: list[tuple[str, object]] = []
        for name in (
            "data_changed",
            "pending_changed",
            "sync_finished",
            "sync_error",
            "offline_mode",
            "notice",
            "delete_refused",
        ):
            getattr(worker, name).connect(lambda *args, _name=name: self.events.append((_name, args[0] if args else None)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def values(self, name: str) -> list[object]:
        return [value for event, value in self.events if event == name]


@pytest.fixture()
def worker(qapp, coordinator) -> SyncWorker:
    return SyncWorker(coordinator)


@pytest.fixture()
def recorder(worker) -> SignalRecorder:
    return SignalRecorder(worker)


def test_add_task_emits_change_and_notice(worker, recorder) -> None:
    worker.add_task(Task(title="From the UI"))

    assert "data_changed" in recorder.names()
    assert recorder.values("notice") == ["Task saved, syncing"]
    assert recorder.values("pending_changed")[-1] == 0


def test_blank_title_becomes_a_notice(worker, recorder, coordinator) -> None:
    worker.add_task(Task(title=""))

    assert recorder.values("notice") == ["Task title must not be empty"]
    assert "data_changed" not in recorder.names()
    assert coordinator.get_all_tasks() == []


def test_offline_delete_is_refused(worker, recorder, coordinator, connectivity) -> None:
    task_id = coordinator.add_task(Task(title="x")).task_id
    connectivity.online = False

    worker.delete_task(task_id)

    assert recorder.values("delete_refused") == [task_id]
    assert recorder.values("notice") == ["Cannot delete while offline"]
    assert coordinator.get_task(task_id) is not None


def test_initial_sync_offline_announces_offline_mode(worker, recorder, connectivity, primary) -> None:
    connectivity.online = False

    worker.initial_sync()

    assert recorder.names() == ["offline_mode", "data_changed", "sync_finished"]
    assert primary.calls == []


def test_initial_sync_pulls_then_flushes(worker, recorder, primary) -> None:
    remote = Task(title="remote")
    primary.documents["user-1"] = {remote.id: remote}

    worker.initial_sync()

    assert primary.calls[0] == ("list_all", "user-1")
    assert recorder.names()[0] == "data_changed"
    assert recorder.names()[-1] == "sync_finished"


def test_background_failure_stays_quiet(worker, recorder, coordinator, connectivity, primary) -> None:
    connectivity.online = False
    coordinator.add_task(Task(title="x"))
    connectivity.online = True
    primary.fail_batch = True

    worker.poll()

    assert "sync_error" not in recorder.names()
    assert recorder.values("pending_changed") == [1]


def test_explicit_sync_failure_is_reported(worker, recorder, coordinator, connectivity, primary) -> None:
    connectivity.online = False
    coordinator.add_task(Task(title="x"))
    connectivity.online = True
    primary.fail_batch = True

    worker.sync_now()

    assert recorder.values("sync_error") == ["Sync failed, 1 tasks still pending"]
    assert recorder.values("notice") == ["Sync failed, 1 tasks still pending"]


def test_import_without_backup_gives_notice(worker, recorder) -> None:
    worker.import_now()

    assert recorder.values("notice") == ["No backup has been created yet"]
    assert "sync_error" not in recorder.names()


def test_scheduler_detects_regained_connectivity(worker, connectivity, primary, coordinator) -> None:
    scheduler = SyncScheduler(worker, interval_ms=1000)
    regained = []
    offline = []
    scheduler.connectivity_regained.connect(lambda: regained.append(True))
    worker.offline_mode.connect(lambda: offline.append(True))

    connectivity.online = False
    coordinator.add_task(Task(title="queued"))
    scheduler.check()
    scheduler.check()
    assert offline == [True]
    assert primary.calls == []

    connectivity.online = True
    scheduler.check()

    assert regained == [True]
    assert len(primary.calls_named("batch_put")) == 1
    assert coordinator.get_pending_sync_count() == 0


def test_toggle_of_blank_titled_task_does_not_raise(qapp, make_coordinator, cache) -> None:
    blank = Task(title="")
    cache.upsert(blank, needs_sync=False)
    worker = SyncWorker(make_coordinator())
    recorder = SignalRecorder(worker)

    worker.toggle_task(blank.id)

    assert "data_changed" in recorder.names()
    assert worker.coordinator.get_task(blank.id).is_completed is True
