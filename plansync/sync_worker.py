"""Qt signal bridge between a UI layer and the sync coordinator."""

from __future__ import annotations

import logging

from PyQt6.QtCore import QObject, QTimer, pyqtSignal, pyqtSlot

from plansync.application.sync_coordinator import SyncCoordinator
from plansync.domain.errors import TaskValidationError
from plansync.domain.models import MutationResult, SaveStatus, SyncResult, SyncStatus, Task

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 60_000

_SAVE_NOTICES = {
    SaveStatus.SAVED_LOCAL: "Task saved",
    SaveStatus.PENDING_SYNC: "Task saved, pending sync",
    SaveStatus.SYNCING: "Task saved, syncing",
    SaveStatus.DELETED: "Task deleted",
    SaveStatus.NOT_FOUND: "Task no longer exists",
}


class SyncWorker(QObject):
    """Turns coordinator futures into signals.

    Coordinator callbacks fire on its executor thread; Qt queues the signals
    to receivers living in the UI thread.
    """

    data_changed = pyqtSignal()
    pending_changed = pyqtSignal(int)
    sync_finished = pyqtSignal()
    sync_error = pyqtSignal(str)
    offline_mode = pyqtSignal()
    notice = pyqtSignal(str)
    delete_refused = pyqtSignal(str)

    def __init__(self, coordinator: SyncCoordinator, parent: QObject | None = None):
        super().__init__(parent)
        self.coordinator = coordinator

    # ---- background ----

    @pyqtSlot()
    def initial_sync(self):
        if self.coordinator.identity.current_user_id() is None:
            self.data_changed.emit()
            self.sync_finished.emit()
            return
        if not self.coordinator.connectivity.is_online():
            self.offline_mode.emit()
            self.data_changed.emit()
            self.sync_finished.emit()
            return
        self.coordinator.load_tasks_for_user(on_complete=self._after_initial_pull)

    def _after_initial_pull(self, result: SyncResult):
        if result.ok:
            self.data_changed.emit()
        else:
            self.sync_error.emit(result.message or "Could not load tasks from the cloud.")
        self.coordinator.sync_pending_tasks(on_complete=self._finish_background)

    @pyqtSlot()
    def poll(self):
        self.coordinator.sync_pending_tasks(on_complete=self._finish_background)

    def _finish_background(self, result: SyncResult):
        # Implicit attempts stay quiet on failure; the next poll retries.
        if result.status == SyncStatus.SYNCED:
            self.data_changed.emit()
        elif result.status == SyncStatus.FAILED:
            logger.info("Background sync failed: %s", result.message)
        self.pending_changed.emit(self.coordinator.get_pending_sync_count())
        self.sync_finished.emit()

    # ---- explicit user actions ----

    @pyqtSlot()
    def sync_now(self):
        self.coordinator.sync_pending_tasks(on_complete=self._finish_explicit)

    @pyqtSlot()
    def export_now(self):
        self.coordinator.export_to_backup(on_complete=self._finish_explicit)

    @pyqtSlot()
    def import_now(self):
        self.coordinator.import_from_backup(on_complete=self._finish_explicit)

    def _finish_explicit(self, result: SyncResult):
        if result.status == SyncStatus.FAILED:
            self.sync_error.emit(result.message)
        elif result.ok and result.count:
            self.data_changed.emit()
        self.notice.emit(result.message)
        self.pending_changed.emit(self.coordinator.get_pending_sync_count())
        self.sync_finished.emit()

    @pyqtSlot(object)
    def add_task(self, task: Task):
        try:
            result = self.coordinator.add_task(task)
        except TaskValidationError as exc:
            self.notice.emit(str(exc))
            return
        self._after_mutation(result, announce=True)

    @pyqtSlot(object)
    def update_task(self, task: Task):
        try:
            result = self.coordinator.update_task(task)
        except TaskValidationError as exc:
            self.notice.emit(str(exc))
            return
        self._after_mutation(result, announce=True)

    @pyqtSlot(str)
    def toggle_task(self, task_id: str):
        self._after_mutation(self.coordinator.toggle_completion(task_id), announce=False)

    @pyqtSlot(str)
    def delete_task(self, task_id: str):
        result = self.coordinator.delete_task(task_id)
        if result.status == SaveStatus.REFUSED_OFFLINE:
            self.delete_refused.emit(task_id)
            self.notice.emit("Cannot delete while offline")
            return
        self._after_mutation(result, announce=True)

    def _after_mutation(self, result: MutationResult, *, announce: bool):
        self.data_changed.emit()
        self.pending_changed.emit(self.coordinator.get_pending_sync_count())
        if announce:
            self.notice.emit(_SAVE_NOTICES.get(result.status, ""))
        if result.push is not None:
            result.push.add_done_callback(
                lambda _done: self.pending_changed.emit(self.coordinator.get_pending_sync_count())
            )


class SyncScheduler(QObject):
    """Polls connectivity on a timer and runs catch-up sync while online."""

    connectivity_regained = pyqtSignal()

    def __init__(self, worker: SyncWorker, interval_ms: int = POLL_INTERVAL_MS, parent: QObject | None = None):
        super().__init__(parent)
        self.worker = worker
        self.interval_ms = interval_ms
        self._was_online: bool | None = None
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.check)

    def start(self):
        self._timer.start(self.interval_ms)

    def stop(self):
        self._timer.stop()

    @pyqtSlot()
    def check(self):
        online = self.worker.coordinator.connectivity.is_online()
        if online:
            if self._was_online is False:
                logger.info("Connectivity regained")
                self.connectivity_regained.emit()
            self.worker.poll()
        elif self._was_online is not False:
            self.worker.offline_mode.emit()
        self._was_online = online
