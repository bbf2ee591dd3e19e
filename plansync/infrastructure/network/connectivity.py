from __future__ import annotations

import logging
import threading
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_PROBE_URL = "https://www.gstatic.com/generate_204"


class HttpConnectivityOracle:
    """Answers "is the device online" with a cached HTTP probe."""

    def __init__(
        self,
        probe_url: str = DEFAULT_PROBE_URL,
        *,
        timeout: float = 3.0,
        ttl: float = 15.0,
        session: requests.Session | None = None,
    ):
        self.probe_url = probe_url
        self.timeout = timeout
        self.ttl = ttl
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._last_check = 0.0
        self._online = False

    def invalidate(self) -> None:
        with self._lock:
            self._last_check = 0.0

    def is_online(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if self._last_check and now - self._last_check < self.ttl:
                return self._online
            self._online = self._probe()
            self._last_check = now
            logger.debug("is_online: %s", self._online)
            return self._online

    def _probe(self) -> bool:
        try:
            response = self._session.get(self.probe_url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException:
            return False
        return 200 <= response.status_code < 400
