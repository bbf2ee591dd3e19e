"""
Ports used by the sync coordinator.

The coordinator depends on these Protocols rather than on the concrete
SQLite / Firestore / JSONBin adapters, so tests can swap in fakes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from plansync.domain.models import CacheRecord, Task


class TaskCache(Protocol):
    def init_db(self) -> None: ...
    def upsert(self, task: Task, needs_sync: bool) -> None: ...
    def upsert_all(self, tasks: Iterable[Task], needs_sync: bool = False) -> None: ...
    def replace_all(self, tasks: Iterable[Task], needs_sync: bool = False) -> None: ...
    def delete_by_id(self, task_id: str) -> None: ...
    def get_all(self) -> list[CacheRecord]: ...
    def get_pending_sync(self) -> list[CacheRecord]: ...
    def update_sync_state(self, task_ids: Iterable[str], needs_sync: bool) -> None: ...


class PrimaryStore(Protocol):
    """Per-user document collection; every call is a blocking network round trip."""

    def put(self, user_id: str, task: Task) -> bool: ...
    def delete(self, user_id: str, task_id: str) -> bool: ...
    def list_all(self, user_id: str) -> list[Task] | None: ...
    def batch_put(self, user_id: str, tasks: list[Task]) -> bool: ...


class BackupStore(Protocol):
    @property
    def bin_id(self) -> str | None: ...

    def export_all(self, tasks: list[Task], user_id: str | None) -> bool: ...
    def import_all(self) -> list[Task] | None: ...
    def clear_bin_id(self) -> None: ...


class ConnectivityOracle(Protocol):
    def is_online(self) -> bool: ...


class IdentityProvider(Protocol):
    def current_user_id(self) -> str | None: ...
