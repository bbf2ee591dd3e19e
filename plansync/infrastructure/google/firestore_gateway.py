from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httplib2
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from plansync.domain.errors import AuthRequiredError, RemoteStoreError
from plansync.domain.models import Task

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 300


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _string_value(value: str | None) -> dict:
    if value is None:
        return {"nullValue": None}
    return {"stringValue": value}


def _timestamp_value(value: datetime | None) -> dict:
    if value is None:
        return {"nullValue": None}
    return {"timestampValue": _rfc3339(value)}


def _decode_value(value: dict) -> Any:
    if "nullValue" in value:
        return None
    for key in ("stringValue", "booleanValue", "timestampValue"):
        if key in value:
            return value[key]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    # map/array/reference values are not part of the task document
    return None


def encode_task_fields(task: Task) -> dict:
    """Task -> Firestore ``fields`` map."""
    return {
        "id": _string_value(task.id),
        "title": _string_value(task.title),
        "description": _string_value(task.description),
        "dueDate": _string_value(task.due_date.isoformat() if task.due_date else None),
        "dueTime": _string_value(task.due_time),
        "completed": {"booleanValue": task.is_completed},
        "priority": _string_value(task.priority.value),
        "category": _string_value(task.category.value),
        "color": _string_value(task.color),
        "createdAt": _timestamp_value(task.created_at),
        "completedAt": _timestamp_value(task.completed_at),
    }


def decode_task_document(document: dict) -> Task:
    """Firestore document resource -> Task.

    Raises:
        RemoteStoreError: When neither the fields nor the document name carry an id.
    """
    fields = {key: _decode_value(value) for key, value in (document.get("fields") or {}).items()}
    task_id = fields.get("id") or (document.get("name") or "").rsplit("/", 1)[-1]
    if not task_id:
        raise RemoteStoreError("Firestore document has no task id")
    fields["id"] = task_id
    return Task.from_dict(fields)


class FirestoreTasksGateway:
    """Cloud Firestore collection ``users/{uid}/tasks`` through the REST API."""

    def __init__(
        self,
        project_id: str,
        credentials_provider: Callable[[], Any],
        *,
        database: str = "(default)",
        timeout: float = 30.0,
        service_factory: Callable[[Any], Any] | None = None,
    ):
        self.project_id = project_id
        self.database = database
        self.timeout = timeout
        self._credentials_provider = credentials_provider
        self._service_factory = service_factory
        self._service_cache = None
        self._service_token = None

    def is_available(self) -> bool:
        return bool(self.project_id)

    @property
    def database_path(self) -> str:
        return f"projects/{self.project_id}/databases/{self.database}"

    def _user_path(self, user_id: str) -> str:
        return f"{self.database_path}/documents/users/{user_id}"

    def _document_name(self, user_id: str, task_id: str) -> str:
        return f"{self._user_path(user_id)}/tasks/{task_id}"

    def _documents(self):
        credentials = self._credentials_provider()
        token = getattr(credentials, "token", None)
        if self._service_cache is None or token != self._service_token:
            if self._service_factory is not None:
                service = self._service_factory(credentials)
            else:
                http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self.timeout))
                service = build("firestore", "v1", http=http, cache_discovery=False)
            self._service_cache = service
            self._service_token = token
        return self._service_cache.projects().databases().documents()

    def put(self, user_id: str, task: Task) -> bool:
        try:
            # No updateMask: the stored document is replaced as a whole.
            self._documents().patch(
                name=self._document_name(user_id, task.id),
                body={"fields": encode_task_fields(task)},
            ).execute()
            return True
        except AuthRequiredError:
            logger.warning("Firestore write of %s skipped: sign-in required.", task.id)
            return False
        except Exception:
            logger.exception("Failed to write task %s to Firestore.", task.id)
            return False

    def delete(self, user_id: str, task_id: str) -> bool:
        try:
            self._documents().delete(name=self._document_name(user_id, task_id)).execute()
            return True
        except HttpError as exc:
            if exc.resp is not None and int(exc.resp.status) == 404:
                return True
            logger.exception("Failed to delete task %s from Firestore.", task_id)
            return False
        except AuthRequiredError:
            logger.warning("Firestore delete of %s skipped: sign-in required.", task_id)
            return False
        except Exception:
            logger.exception("Failed to delete task %s from Firestore.", task_id)
            return False

    def list_all(self, user_id: str) -> list[Task] | None:
        tasks: list[Task] = []
        page_token = None
        try:
            documents = self._documents()
            while True:
                response = documents.list(
                    parent=self._user_path(user_id),
                    collectionId="tasks",
                    pageSize=LIST_PAGE_SIZE,
                    pageToken=page_token,
                ).execute()
                for document in response.get("documents", []):
                    try:
                        tasks.append(decode_task_document(document))
                    except RemoteStoreError:
                        logger.warning("Skipping undecodable Firestore document %s", document.get("name"))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except AuthRequiredError:
            logger.warning("Firestore list skipped: sign-in required.")
            return None
        except Exception:
            logger.exception("Failed to list tasks from Firestore.")
            return None
        logger.debug("Fetched %d tasks for user %s", len(tasks), user_id)
        return tasks

    def batch_put(self, user_id: str, tasks: list[Task]) -> bool:
        if not tasks:
            return True
        writes = [
            {
                "update": {
                    "name": self._document_name(user_id, task.id),
                    "fields": encode_task_fields(task),
                }
            }
            for task in tasks
        ]
        try:
            self._documents().commit(database=self.database_path, body={"writes": writes}).execute()
            return True
        except AuthRequiredError:
            logger.warning("Firestore batch of %d tasks skipped: sign-in required.", len(tasks))
            return False
        except Exception:
            logger.exception("Failed to commit a batch of %d tasks to Firestore.", len(tasks))
            return False
