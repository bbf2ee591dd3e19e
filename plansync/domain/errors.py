"""Exceptions shared by the domain, the adapters and the coordinator."""

from __future__ import annotations


class TaskValidationError(ValueError):
    """Raised before a task reaches the sync core when its fields are unusable."""

    def __init__(self, message: str = "Task title must not be empty"):
        super().__init__(message)


class AuthRequiredError(Exception):
    """Raised when the stored session is invalid and interactive sign-in is needed."""

    def __init__(self, message: str = "Session expired, please sign in again"):
        super().__init__(message)


class RemoteStoreError(Exception):
    """Malformed or unexpected response from a remote store."""
