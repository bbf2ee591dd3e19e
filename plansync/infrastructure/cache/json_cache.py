from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone

from plansync.utils import get_base_path

logger = logging.getLogger(__name__)


class JsonCache:
    """Small named JSON documents on disk, each wrapped with a ``cached_at`` stamp."""

    def __init__(self, cache_dir: str | None = None):
        base = get_base_path()
        self.cache_dir = cache_dir or os.path.join(base, "data", "cache")
        os.makedirs(self.cache_dir, exist_ok=True)

    def save(self, name: str, payload: dict) -> None:
        path = self._path(name)
        wrapper = {
            "cached_at": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as file:
            json.dump(wrapper, file, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

    def load(self, name: str) -> dict | None:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as file:
                wrapper = json.load(file)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable cache file %s", path)
            return None
        return wrapper if isinstance(wrapper, dict) else None

    def load_payload(self, name: str) -> dict | None:
        wrapper = self.load(name)
        if wrapper is None:
            return None
        payload = wrapper.get("payload")
        return payload if isinstance(payload, dict) else None

    def delete(self, name: str) -> None:
        path = self._path(name)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    def _path(self, name: str) -> str:
        safe_name = name.replace("/", "_")
        return os.path.join(self.cache_dir, f"{safe_name}.json")
