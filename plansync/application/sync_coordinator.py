"""Offline-first owner of the task list.

Every mutation is applied in memory first, persisted to the local cache, and
pushed to the primary store only when a user is signed in and the device is
online. Remote work runs on an executor and reports through futures; network
failures never raise into the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date, datetime, timedelta

from plansync.domain.models import (
    MutationResult,
    SaveStatus,
    SyncResult,
    SyncStatus,
    Task,
    validate_title,
)
from plansync.domain.ports import BackupStore, ConnectivityOracle, IdentityProvider, PrimaryStore, TaskCache

logger = logging.getLogger(__name__)

OnComplete = Callable[[SyncResult], None]


class SyncCoordinator:
    def __init__(
        self,
        cache: TaskCache,
        primary: PrimaryStore,
        backup: BackupStore,
        connectivity: ConnectivityOracle,
        identity: IdentityProvider,
        *,
        executor: Executor | None = None,
    ):
        self.cache = cache
        self.primary = primary
        self.backup = backup
        self.connectivity = connectivity
        self.identity = identity
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="plansync-sync")
        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self._pending_ids: set[str] = set()
        # Bumped on every local mutation; a push acknowledgement only clears
        # needs_sync when the revision it carried is still the latest one.
        self._revisions: dict[str, int] = {}
        self._initialized = False

    # ---- lifecycle ----

    def initialize(self) -> None:
        try:
            self.cache.init_db()
        except Exception:
            logger.exception("Local cache initialisation failed; continuing without durable cache.")
        self._load_from_local()
        self._initialized = True

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("SyncCoordinator.initialize() must be called before use")

    def _load_from_local(self) -> None:
        try:
            records = self.cache.get_all()
        except Exception:
            logger.exception("Failed to hydrate tasks from the local cache.")
            return
        with self._lock:
            self._tasks = [record.task for record in records]
            self._pending_ids = {record.id for record in records if record.needs_sync}
            pending = len(self._pending_ids)
        logger.info("Loaded %d cached tasks (pending=%d)", len(records), pending)

    # ---- helpers ----

    def _persist(self, description: str, action: Callable, *args) -> bool:
        try:
            action(*args)
            return True
        except Exception:
            logger.exception("Local cache %s failed; keeping the change in memory only.", description)
            return False

    def _index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _bump_revision(self, task_id: str) -> int:
        with self._lock:
            revision = self._revisions.get(task_id, 0) + 1
            self._revisions[task_id] = revision
            return revision

    def _acknowledge(self, revisions: dict[str, int]) -> list[str]:
        with self._lock:
            acked = [task_id for task_id, rev in revisions.items() if self._revisions.get(task_id, 0) == rev]
            stale = len(revisions) - len(acked)
            if stale:
                logger.info("%d tasks changed while syncing; they stay pending", stale)
            self._pending_ids.difference_update(acked)
            self._persist("sync-state update", self.cache.update_sync_state, acked, False)
        return acked

    def _signed_in_and_online(self) -> str | None:
        user_id = self.identity.current_user_id()
        if user_id is None or not self.connectivity.is_online():
            return None
        return user_id

    @staticmethod
    def _resolved(result: SyncResult, on_complete: OnComplete | None) -> Future:
        future: Future = Future()
        future.set_result(result)
        if on_complete is not None:
            future.add_done_callback(lambda done: on_complete(done.result()))
        return future

    def _submit(self, job: Callable[..., SyncResult], *args, on_complete: OnComplete | None = None) -> Future:
        def run() -> SyncResult:
            try:
                return job(*args)
            except Exception:
                logger.exception("Sync job %s crashed.", getattr(job, "__name__", job))
                return SyncResult(SyncStatus.FAILED, "Unexpected sync error")

        try:
            future = self._executor.submit(run)
        except RuntimeError:
            logger.error("Sync executor is shut down; %s not run.", getattr(job, "__name__", job))
            return self._resolved(SyncResult(SyncStatus.FAILED, "Sync is shut down"), on_complete)
        if on_complete is not None:
            future.add_done_callback(lambda done: on_complete(done.result()))
        return future

    # ---- mutators ----

    def add_task(self, task: Task) -> MutationResult:
        self._require_initialized()
        validate_title(task.title)
        stored = task.copy()
        with self._lock:
            index = self._index_of(stored.id)
            if index is None:
                self._tasks.insert(0, stored)
            else:
                logger.warning("add_task: %s already exists, replacing it", stored.id)
                self._tasks[index] = stored
        logger.debug("add_task: %s", stored.id)
        return self._save(stored, export_after_push=True)

    def update_task(self, task: Task) -> MutationResult:
        self._require_initialized()
        validate_title(task.title)
        return self._replace(task)

    def _replace(self, task: Task) -> MutationResult:
        stored = task.copy()
        with self._lock:
            index = self._index_of(stored.id)
            if index is None:
                logger.warning("update_task: %s not found", stored.id)
                return MutationResult(SaveStatus.NOT_FOUND, stored.id)
            self._tasks[index] = stored
        return self._save(stored, export_after_push=False)

    def toggle_completion(self, task_id: str) -> MutationResult:
        self._require_initialized()
        with self._lock:
            index = self._index_of(task_id)
            if index is None:
                logger.warning("toggle_completion: %s not found", task_id)
                return MutationResult(SaveStatus.NOT_FOUND, task_id)
            task = self._tasks[index].copy()
        task.toggle_completion()
        # Title untouched; tasks pulled with a blank title can still be toggled.
        return self._replace(task)

    def delete_task(self, task_id: str) -> MutationResult:
        self._require_initialized()
        user_id = self.identity.current_user_id()
        if user_id is not None and not self.connectivity.is_online():
            # A queued delete could resurrect or drop a task edited elsewhere.
            logger.warning("delete_task: refusing to delete %s while offline", task_id)
            return MutationResult(SaveStatus.REFUSED_OFFLINE, task_id)

        with self._lock:
            index = self._index_of(task_id)
            if index is None:
                logger.warning("delete_task: %s not found", task_id)
                return MutationResult(SaveStatus.NOT_FOUND, task_id)
            del self._tasks[index]
            self._pending_ids.discard(task_id)
        self._bump_revision(task_id)
        self._persist("delete", self.cache.delete_by_id, task_id)

        if user_id is None:
            return MutationResult(SaveStatus.DELETED, task_id)
        return MutationResult(SaveStatus.DELETED, task_id, self._submit(self._push_delete, user_id, task_id))

    def _save(self, task: Task, *, export_after_push: bool) -> MutationResult:
        user_id = self.identity.current_user_id()
        if user_id is None:
            with self._lock:
                self._bump_revision(task.id)
                self._persist("upsert", self.cache.upsert, task, False)
                self._pending_ids.discard(task.id)
            logger.debug("Guest mode: %s stored locally", task.id)
            return MutationResult(SaveStatus.SAVED_LOCAL, task.id)

        # Durable until the primary store acknowledges it. Revision and cache
        # row change together so a batch snapshot never sees one without the other.
        with self._lock:
            revision = self._bump_revision(task.id)
            self._persist("upsert", self.cache.upsert, task, True)
            self._pending_ids.add(task.id)

        if not self.connectivity.is_online():
            logger.warning("Offline: %s queued for sync", task.id)
            return MutationResult(SaveStatus.PENDING_SYNC, task.id)

        future = self._submit(self._push_task, user_id, task.copy(), revision, export_after_push)
        return MutationResult(SaveStatus.SYNCING, task.id, future)

    # ---- remote jobs (executor thread) ----

    def _push_task(self, user_id: str, task: Task, revision: int, export_after_push: bool) -> SyncResult:
        if not self.primary.put(user_id, task):
            logger.error("Push of %s failed; it stays pending", task.id)
            with self._lock:
                if self._index_of(task.id) is not None:
                    self._pending_ids.add(task.id)
                    self._persist("sync-state update", self.cache.update_sync_state, [task.id], True)
            return SyncResult(SyncStatus.FAILED, "Saved locally, cloud sync pending")

        self._acknowledge({task.id: revision})
        logger.info("Synced %s", task.id)
        if export_after_push:
            self._export()
        return SyncResult(SyncStatus.SYNCED, "Saved and synced", count=1)

    def _push_delete(self, user_id: str, task_id: str) -> SyncResult:
        if not self.primary.delete(user_id, task_id):
            logger.error("Remote delete of %s failed; it may reappear on the next pull", task_id)
            return SyncResult(SyncStatus.FAILED, "Deleted locally, cloud delete failed")
        logger.info("Deleted %s remotely", task_id)
        return SyncResult(SyncStatus.SYNCED, "Task deleted", count=1)

    def _pull(self, user_id: str) -> SyncResult:
        remote = self.primary.list_all(user_id)
        if remote is None:
            return SyncResult(SyncStatus.FAILED, "Could not load tasks from the cloud")
        # Remote wins for every task it returns; no merge with pending edits.
        if not self._persist("bulk upsert", self.cache.upsert_all, remote, False):
            return SyncResult(SyncStatus.FAILED, "Could not store tasks from the cloud")
        self._load_from_local()
        return SyncResult(SyncStatus.SYNCED, f"Loaded {len(remote)} tasks", count=len(remote),
                          tasks=tuple(self.get_all_tasks()))

    def _sync_pending(self, user_id: str) -> SyncResult:
        # Revisions are read before the records: an edit landing in between
        # then looks newer than what is pushed and stays pending.
        with self._lock:
            snapshot = dict(self._revisions)
        try:
            with self._lock:
                pending = self.cache.get_pending_sync()
        except Exception:
            logger.exception("Could not read pending tasks from the local cache.")
            return SyncResult(SyncStatus.FAILED, "Could not read pending tasks")
        if not pending:
            logger.debug("sync_pending_tasks: nothing to sync")
            return SyncResult(SyncStatus.NOTHING_TO_SYNC, "Everything is up to date")

        revisions = {record.id: snapshot.get(record.id, 0) for record in pending}
        if not self.primary.batch_put(user_id, [record.task for record in pending]):
            logger.error("Batch sync of %d tasks failed; all stay pending", len(pending))
            return SyncResult(SyncStatus.FAILED, f"Sync failed, {len(pending)} tasks still pending")

        acked = self._acknowledge(revisions)
        logger.info("Synced %d pending tasks", len(acked))
        self._export()
        return SyncResult(SyncStatus.SYNCED, f"Synced {len(acked)} tasks", count=len(acked))

    def _export(self) -> SyncResult:
        tasks = self.get_all_tasks()
        if not self.backup.export_all(tasks, self.identity.current_user_id()):
            logger.error("Backup export failed")
            return SyncResult(SyncStatus.FAILED, "Backup export failed")
        logger.info("Exported %d tasks to backup", len(tasks))
        return SyncResult(SyncStatus.SYNCED, f"Exported {len(tasks)} tasks", count=len(tasks))

    def _import(self) -> SyncResult:
        imported = self.backup.import_all()
        if imported is None:
            return SyncResult(SyncStatus.FAILED, "Could not import the backup")

        unique = list({task.id: task for task in imported}.values())
        unique.sort(key=lambda task: task.created_at, reverse=True)
        # Signed-in users push the restored list to the primary store on the next sync.
        needs_sync = self.identity.current_user_id() is not None
        self._persist("replace", self.cache.replace_all, unique, needs_sync)
        with self._lock:
            self._tasks = [task.copy() for task in unique]
            self._pending_ids = {task.id for task in unique} if needs_sync else set()
            for task in unique:
                self._revisions[task.id] = self._revisions.get(task.id, 0) + 1
        logger.info("Imported %d tasks from backup", len(unique))
        return SyncResult(SyncStatus.SYNCED, f"Imported {len(unique)} tasks", count=len(unique),
                          tasks=tuple(task.copy() for task in unique))

    # ---- asynchronous operations ----

    def load_tasks_for_user(self, on_complete: OnComplete | None = None) -> Future:
        self._require_initialized()
        user_id = self.identity.current_user_id()
        if user_id is None:
            logger.warning("load_tasks_for_user: no signed-in user, skipping remote load")
            return self._resolved(SyncResult(SyncStatus.SKIPPED, "Not signed in"), on_complete)
        if not self.connectivity.is_online():
            return self._resolved(SyncResult(SyncStatus.SKIPPED, "Offline"), on_complete)
        return self._submit(self._pull, user_id, on_complete=on_complete)

    def sync_pending_tasks(self, on_complete: OnComplete | None = None) -> Future:
        self._require_initialized()
        user_id = self._signed_in_and_online()
        if user_id is None:
            logger.debug("sync_pending_tasks: no connectivity or no user")
            return self._resolved(SyncResult(SyncStatus.SKIPPED, "Nothing done: offline or not signed in"), on_complete)
        return self._submit(self._sync_pending, user_id, on_complete=on_complete)

    def export_to_backup(self, on_complete: OnComplete | None = None) -> Future:
        self._require_initialized()
        if not self.connectivity.is_online():
            logger.warning("export_to_backup: skipped, offline")
            return self._resolved(SyncResult(SyncStatus.SKIPPED, "Offline"), on_complete)
        return self._submit(self._export, on_complete=on_complete)

    def import_from_backup(self, on_complete: OnComplete | None = None) -> Future:
        self._require_initialized()
        if self.backup.bin_id is None:
            return self._resolved(SyncResult(SyncStatus.NO_BACKUP, "No backup has been created yet"), on_complete)
        if not self.connectivity.is_online():
            logger.warning("import_from_backup: skipped, offline")
            return self._resolved(SyncResult(SyncStatus.SKIPPED, "Offline"), on_complete)
        return self._submit(self._import, on_complete=on_complete)

    # ---- reads ----

    def get_all_tasks(self) -> list[Task]:
        with self._lock:
            return [task.copy() for task in self._tasks]

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            index = self._index_of(task_id)
            return self._tasks[index].copy() if index is not None else None

    def get_tasks_for_date(self, day: date | datetime) -> list[Task]:
        return [task for task in self.get_all_tasks() if task.is_due_on(day)]

    def get_today_tasks(self) -> list[Task]:
        return self.get_tasks_for_date(date.today())

    def get_pending_sync_count(self) -> int:
        with self._lock:
            return len(self._pending_ids)

    def has_pending_sync(self) -> bool:
        return self.get_pending_sync_count() > 0

    def can_delete_while_offline(self) -> bool:
        return self.identity.current_user_id() is None or self.connectivity.is_online()

    def get_backup_bin_id(self) -> str | None:
        return self.backup.bin_id

    def clear_backup_bin_id(self) -> None:
        self.backup.clear_bin_id()

    # ---- demo data ----

    def initialize_sample_tasks(self) -> int:
        """Seed a few tasks for a first-run guest. Returns how many were added."""
        self._require_initialized()
        if self.identity.current_user_id() is not None:
            return 0
        with self._lock:
            if self._tasks:
                return 0

        today = date.today()
        samples = [
            Task(
                title="Review project proposal",
                description="Go through the quarterly project proposal and provide feedback",
                due_date=today,
                due_time="14:00",
            ),
            Task(
                title="Team meeting preparation",
                description="Prepare slides and agenda for tomorrow's team meeting",
                due_date=today,
                due_time="16:30",
            ),
            Task(
                title="Client presentation",
                description="Present the new design concepts to the client",
                due_date=today + timedelta(days=1),
                due_time="10:00",
            ),
        ]
        for task in samples:
            self.add_task(task)
        logger.info("Seeded %d sample tasks", len(samples))
        return len(samples)
