from __future__ import annotations

import re
import uuid
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from plansync.domain.errors import TaskValidationError

DEFAULT_COLOR = "#2196F3"

_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 text or epoch milliseconds into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        raw = str(value).strip().replace("Z", "+00:00")
        # RFC 3339 allows nanoseconds; datetime keeps microseconds.
        raw = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_value(cls, value: Any) -> Priority:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM

    @property
    def display_name(self) -> str:
        return _PRIORITY_META[self][0]

    @property
    def color_hex(self) -> str:
        return _PRIORITY_META[self][1]


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    STUDY = "study"
    HEALTH = "health"
    SHOPPING = "shopping"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> Category:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PERSONAL

    @property
    def display_name(self) -> str:
        return _CATEGORY_META[self][0]

    @property
    def icon(self) -> str:
        return _CATEGORY_META[self][1]

    @property
    def color_hex(self) -> str:
        return _CATEGORY_META[self][2]


_PRIORITY_META = {
    Priority.HIGH: ("High Priority", "#F44336"),
    Priority.MEDIUM: ("Medium Priority", "#FF9800"),
    Priority.LOW: ("Low Priority", "#4CAF50"),
}

_CATEGORY_META = {
    Category.WORK: ("Work", "💼", "#2196F3"),
    Category.PERSONAL: ("Personal", "🏠", "#9C27B0"),
    Category.STUDY: ("Study", "📚", "#FF9800"),
    Category.HEALTH: ("Health", "💪", "#4CAF50"),
    Category.SHOPPING: ("Shopping", "🛒", "#E91E63"),
    Category.OTHER: ("Other", "📌", "#607D8B"),
}


@dataclass(slots=True)
class Task:
    id: str = field(default_factory=_new_id)
    title: str = ""
    description: str = ""
    due_date: date | None = None
    due_time: str | None = None
    is_completed: bool = False
    priority: Priority = Priority.MEDIUM
    category: Category = Category.PERSONAL
    color: str = DEFAULT_COLOR
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def mark_completed(self, now: datetime | None = None) -> None:
        """Complete the task. Calling it on a completed task keeps the original timestamp."""
        if self.is_completed and self.completed_at is not None:
            return
        self.is_completed = True
        self.completed_at = now or utc_now()

    def mark_incomplete(self) -> None:
        self.is_completed = False
        self.completed_at = None

    def toggle_completion(self) -> None:
        if self.is_completed:
            self.mark_incomplete()
        else:
            self.mark_completed()

    def is_due_on(self, day: date | datetime) -> bool:
        if self.due_date is None:
            return False
        if isinstance(day, datetime):
            day = day.date()
        return self.due_date == day

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.is_completed:
            return False
        return self.due_date < date.today()

    def copy(self) -> Task:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "dueTime": self.due_time,
            "isCompleted": self.is_completed,
            "priority": self.priority.value,
            "category": self.category.value,
            "color": self.color,
            "createdAt": format_timestamp(self.created_at),
            "completedAt": format_timestamp(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        is_completed = bool(data.get("isCompleted", data.get("completed", False)))
        completed_at = parse_timestamp(data.get("completedAt")) if is_completed else None
        task = cls(
            id=str(data.get("id") or _new_id()),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            due_date=parse_date(data.get("dueDate")),
            due_time=data.get("dueTime") or None,
            priority=Priority.from_value(data.get("priority")),
            category=Category.from_value(data.get("category")),
            color=str(data.get("color") or DEFAULT_COLOR),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
        )
        if is_completed:
            task.mark_completed(completed_at)
        return task


def validate_title(title: str | None) -> None:
    if title is None or not title.strip():
        raise TaskValidationError()


def new_task(title: str, **fields: Any) -> Task:
    """Build a task after rejecting a blank title."""
    validate_title(title)
    return Task(title=title, **fields)


@dataclass(slots=True)
class CacheRecord:
    task: Task
    needs_sync: bool = False

    @property
    def id(self) -> str:
        return self.task.id

    @classmethod
    def from_task(cls, task: Task, needs_sync: bool = False) -> CacheRecord:
        return cls(task=task.copy(), needs_sync=needs_sync)

    def to_task(self) -> Task:
        return self.task.copy()


class SaveStatus(str, Enum):
    SAVED_LOCAL = "saved_local"
    PENDING_SYNC = "pending_sync"
    SYNCING = "syncing"
    DELETED = "deleted"
    REFUSED_OFFLINE = "refused_offline"
    NOT_FOUND = "not_found"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    NOTHING_TO_SYNC = "nothing_to_sync"
    SKIPPED = "skipped"
    NO_BACKUP = "no_backup"
    FAILED = "failed"


@dataclass(slots=True)
class SyncResult:
    status: SyncStatus
    message: str = ""
    count: int = 0
    tasks: tuple[Task, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.SYNCED, SyncStatus.NOTHING_TO_SYNC)


@dataclass(slots=True)
class MutationResult:
    status: SaveStatus
    task_id: str
    push: Future | None = None

    @property
    def ok(self) -> bool:
        return self.status not in (SaveStatus.REFUSED_OFFLINE, SaveStatus.NOT_FOUND)
