from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httplib2
import requests
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from plansync.domain.errors import AuthRequiredError
from plansync.infrastructure.cache.json_cache import JsonCache

logger = logging.getLogger(__name__)

SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
# Refresh a little before Firebase says the ID token expires.
EXPIRY_MARGIN_SECONDS = 60


class FirebaseIdentityService:
    """Email/password identity backed by Firebase Authentication.

    The sync core only asks ``current_user_id()``; the Firestore gateway asks
    ``get_credentials()`` for a bearer token scoped to the signed-in user.
    """

    SESSION_CACHE_NAME = "session"

    def __init__(
        self,
        api_key: str,
        cache: JsonCache | None = None,
        *,
        timeout: float = 30.0,
        service_factory: Callable[[], Any] | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._cache = cache or JsonCache()
        self._service_factory = service_factory
        self._http = session or requests.Session()
        self._service = None

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _accounts(self):
        if self._service is None:
            if self._service_factory is not None:
                self._service = self._service_factory()
            else:
                self._service = build(
                    "identitytoolkit",
                    "v1",
                    developerKey=self.api_key,
                    http=httplib2.Http(timeout=self.timeout),
                    cache_discovery=False,
                )
        return self._service.accounts()

    def _load_session(self) -> dict | None:
        payload = self._cache.load_payload(self.SESSION_CACHE_NAME)
        if not payload or not payload.get("user_id"):
            return None
        return payload

    def _store_session(self, response: dict, email: str | None = None) -> None:
        previous = self._load_session() or {}
        self._cache.save(
            self.SESSION_CACHE_NAME,
            {
                "user_id": response.get("localId") or response.get("user_id") or previous.get("user_id"),
                "email": email or response.get("email") or previous.get("email"),
                "id_token": response.get("idToken") or response.get("id_token"),
                "refresh_token": response.get("refreshToken") or response.get("refresh_token"),
                "expires_at": time.time() + float(response.get("expiresIn") or response.get("expires_in") or 3600),
            },
        )

    def current_user_id(self) -> str | None:
        session = self._load_session()
        return session["user_id"] if session else None

    def current_email(self) -> str | None:
        session = self._load_session()
        return session.get("email") if session else None

    def sign_in(self, email: str, password: str) -> bool:
        if not self.is_available():
            logger.error("Firebase API key is not configured.")
            return False
        try:
            response = self._accounts().signInWithPassword(
                body={"email": email, "password": password, "returnSecureToken": True}
            ).execute()
        except Exception:
            logger.exception("Firebase sign-in failed.")
            return False
        self._store_session(response, email=email)
        logger.info("Signed in as %s", response.get("localId"))
        return True

    def register(self, email: str, password: str) -> bool:
        if not self.is_available():
            logger.error("Firebase API key is not configured.")
            return False
        try:
            response = self._accounts().signUp(
                body={"email": email, "password": password, "returnSecureToken": True}
            ).execute()
        except Exception:
            logger.exception("Firebase registration failed.")
            return False
        self._store_session(response, email=email)
        logger.info("Registered and signed in as %s", response.get("localId"))
        return True

    def sign_out(self) -> None:
        self._cache.delete(self.SESSION_CACHE_NAME)
        logger.info("Signed out.")

    def send_password_reset(self, email: str) -> bool:
        if not self.is_available():
            return False
        try:
            self._accounts().sendOobCode(body={"requestType": "PASSWORD_RESET", "email": email}).execute()
            return True
        except Exception:
            logger.exception("Failed to send password reset email.")
            return False

    def get_credentials(self) -> Credentials:
        """Return bearer credentials for the signed-in user.

        Raises:
            AuthRequiredError: When there is no session or the refresh token
                was rejected and interactive sign-in is required.
        """
        session = self._load_session()
        if session is None or not session.get("id_token"):
            raise AuthRequiredError()

        if float(session.get("expires_at") or 0) - EXPIRY_MARGIN_SECONDS <= time.time():
            session = self._refresh(session)
        return Credentials(token=session["id_token"])

    def _refresh(self, session: dict) -> dict:
        refresh_token = session.get("refresh_token")
        if not refresh_token:
            raise AuthRequiredError()
        try:
            response = self._http.post(
                SECURE_TOKEN_URL,
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Token refresh failed: %s", exc)
            raise AuthRequiredError() from exc
        if response.status_code != 200:
            logger.warning("Token refresh rejected with HTTP %s", response.status_code)
            raise AuthRequiredError()
        self._store_session(response.json())
        return self._load_session() or {}
