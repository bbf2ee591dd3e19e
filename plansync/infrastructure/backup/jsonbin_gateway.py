"""
JSONBin backup transport.

A bin is one JSON document with no per-record addressing, so the gateway
only knows create / get / replace of the whole document.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.jsonbin.io/v3/"


class JsonBinGateway:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self._session.headers.update({"X-Master-Key": api_key})

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def create(self, document: dict[str, Any]) -> str | None:
        """Create a bin and return its id."""
        try:
            response = self._session.post(self._url("b"), json=document, timeout=self.timeout)
        except requests.RequestException:
            logger.exception("JSONBin create failed: network error.")
            return None
        if not response.ok:
            logger.error("JSONBin create failed with HTTP %s", response.status_code)
            return None
        try:
            bin_id = (response.json().get("metadata") or {}).get("id")
        except ValueError:
            bin_id = None
        if not bin_id:
            logger.error("JSONBin create succeeded but returned no bin id.")
            return None
        logger.info("Created backup bin %s", bin_id)
        return bin_id

    def get(self, bin_id: str) -> dict[str, Any] | None:
        try:
            response = self._session.get(self._url(f"b/{bin_id}/latest"), timeout=self.timeout)
        except requests.RequestException:
            logger.exception("JSONBin read of %s failed: network error.", bin_id)
            return None
        if not response.ok:
            logger.error("JSONBin read of %s failed with HTTP %s", bin_id, response.status_code)
            return None
        try:
            record = response.json().get("record")
        except ValueError:
            logger.error("JSONBin read of %s returned invalid JSON.", bin_id)
            return None
        return record if isinstance(record, dict) else None

    def replace(self, bin_id: str, document: dict[str, Any]) -> bool:
        try:
            response = self._session.put(self._url(f"b/{bin_id}"), json=document, timeout=self.timeout)
        except requests.RequestException:
            logger.exception("JSONBin update of %s failed: network error.", bin_id)
            return False
        if not response.ok:
            logger.error("JSONBin update of %s failed with HTTP %s", bin_id, response.status_code)
            return False
        return True
