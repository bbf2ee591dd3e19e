"""Persistent pointer to the backup bin."""

from __future__ import annotations

from plansync.infrastructure.cache.json_cache import JsonCache


class BackupStateStore:
    """Load/save the backup bin id via JSON cache. No id means no backup exists yet."""

    CACHE_NAME = "backup_state"

    def __init__(self, cache: JsonCache | None = None):
        self._cache = cache or JsonCache()

    def load_bin_id(self) -> str | None:
        payload = self._cache.load_payload(self.CACHE_NAME)
        if payload is None:
            return None
        bin_id = payload.get("bin_id")
        if not isinstance(bin_id, str) or not bin_id.strip():
            return None
        return bin_id

    def save_bin_id(self, bin_id: str) -> None:
        self._cache.save(self.CACHE_NAME, {"bin_id": bin_id})

    def clear(self) -> None:
        self._cache.delete(self.CACHE_NAME)
