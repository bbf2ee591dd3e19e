from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from plansync.domain.models import Task
from plansync.infrastructure.cache.backup_state_store import BackupStateStore

logger = logging.getLogger(__name__)

GUEST_USER_ID = "guest"


class DocumentStore(Protocol):
    def create(self, document: dict[str, Any]) -> str | None: ...
    def get(self, bin_id: str) -> dict[str, Any] | None: ...
    def replace(self, bin_id: str, document: dict[str, Any]) -> bool: ...


class RemoteBackupStore:
    """Whole-collection mirror of the task list in a single bin.

    Every export overwrites the bin with the complete list (last write wins).
    """

    def __init__(self, gateway: DocumentStore, state: BackupStateStore | None = None):
        self.gateway = gateway
        self.state = state or BackupStateStore()

    @property
    def bin_id(self) -> str | None:
        return self.state.load_bin_id()

    def clear_bin_id(self) -> None:
        self.state.clear()
        logger.info("Backup bin id cleared.")

    def export_all(self, tasks: list[Task], user_id: str | None) -> bool:
        document = {
            "tasks": [task.to_dict() for task in tasks],
            "userId": user_id or GUEST_USER_ID,
            "lastUpdated": int(time.time() * 1000),
        }
        bin_id = self.bin_id
        if bin_id is None:
            logger.debug("Creating backup bin for %s", document["userId"])
            created = self.gateway.create(document)
            if not created:
                return False
            self.state.save_bin_id(created)
            return True

        logger.debug("Updating backup bin %s", bin_id)
        return self.gateway.replace(bin_id, document)

    def import_all(self) -> list[Task] | None:
        bin_id = self.bin_id
        if bin_id is None:
            logger.warning("No backup bin yet, nothing to import.")
            return None

        record = self.gateway.get(bin_id)
        if record is None:
            return None
        items = record.get("tasks")
        if not isinstance(items, list):
            logger.error("Backup bin %s has no task list.", bin_id)
            return None

        tasks = [Task.from_dict(item) for item in items if isinstance(item, dict)]
        logger.info("Loaded %d tasks from backup bin %s", len(tasks), bin_id)
        return tasks
